from __future__ import annotations

from fakes import blocklist_record
from rich.console import Console

from mozblocklist.blocklist.index import BlocklistIndex
from mozblocklist.models import BlockEntry, PendingBlock
from mozblocklist.report.sql import render_blocked_guids_sql
from mozblocklist.report.text import render_classification, render_pending


def _console() -> Console:
    return Console(record=True, width=160, color_system=None)


def test_classification_lists_blocked_and_new_guids() -> None:
    index = BlocklistIndex.build([BlockEntry.from_record(blocklist_record("a@b"))])
    console = _console()

    render_classification(console, index.classify(["a@b", "[new]@x"]))

    text = console.export_text()
    assert "Already Blocked" in text
    assert "a@b" in text
    assert "not yet blocked" in text
    assert "[new]@x" in text


def test_classification_reports_nothing_new() -> None:
    index = BlocklistIndex.build([BlockEntry.from_record(blocklist_record("a@b"))])
    console = _console()

    render_classification(console, index.classify(["a@b"]))

    assert "Nothing new to block" in console.export_text()


def test_render_pending_shows_entry_details() -> None:
    record = blocklist_record(
        "/^((a@b)|(c@d))$/",
        record_id="rec-1",
        version_range=[{"minVersion": "1.0", "maxVersion": "2.0", "severity": 1}],
    )
    console = _console()

    render_pending(
        console,
        [PendingBlock(entry=BlockEntry.from_record(record), comments=["[t|a] - hi"])],
        admin_url={"rec-1": "https://writer/admin/rec-1"},
    )

    text = console.export_text()
    assert "Entry rec-1 - Bad extension" in text
    assert "URL: https://writer/admin/rec-1" in text
    assert "1.0 - 2.0 (soft)" in text
    assert "GUIDs (valid): /^((a@b)|(c@d))$/" in text
    assert "[t|a] - hi" in text


def test_render_pending_flags_invalid_regex_and_empty_list() -> None:
    console = _console()

    render_pending(console, [], admin_url={})
    render_pending(
        console,
        [PendingBlock(entry=BlockEntry(guid_pattern="/^((broken)$/", record_id="x"))],
        admin_url={},
    )

    text = console.export_text()
    assert "No blocks pending" in text
    assert "GUIDs (INVALID)" in text


def test_sql_export_quotes_values() -> None:
    entry = BlockEntry.from_record(blocklist_record("a@b"))
    multi = BlockEntry.from_record(
        blocklist_record(
            'we"ird@x',
            bug=None,
            version_range=[
                {"minVersion": "0", "maxVersion": "1.0", "severity": 1},
                {"minVersion": "2.0", "maxVersion": "*", "severity": 3},
            ],
        )
    )

    sql = render_blocked_guids_sql({"a@b": entry, 'we"ird@x': multi})

    lines = sql.splitlines()
    assert lines[0] == (
        'SELECT "a@b" AS guid, "2019-06-08T13:20:00+00:00" AS created, '
        '"https://bugzilla.mozilla.org/show_bug.cgi?id=111" AS bug, 3 AS severity, '
        '"0" AS minVersion, "*" AS maxVersion, 0 AS multirange'
    )
    assert lines[1].startswith('UNION ALL SELECT "we""ird@x" AS guid')
    assert lines[1].endswith('"0" AS minVersion, "1.0" AS maxVersion, 1 AS multirange')
