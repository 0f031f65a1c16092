from __future__ import annotations

from datetime import UTC, datetime

import pytest
from fakes import blocklist_record

from mozblocklist.models import BlockEntry, MatchWarning, severity_label


def test_from_record_maps_kinto_fields() -> None:
    record = blocklist_record(
        "/^((a@b)|(c@d))$/",
        record_id="rec-1",
        version_range=[{"minVersion": "1.0", "maxVersion": "3.*", "severity": 1}],
    )
    record["prefs"] = ["extensions.x.enabled"]

    entry = BlockEntry.from_record(record)

    assert entry.record_id == "rec-1"
    assert entry.is_regex
    assert entry.bug_id == 111
    assert entry.name == "Bad extension"
    assert entry.reason_text == "Malware"
    assert entry.prefs == ["extensions.x.enabled"]
    assert not entry.blocks_all_versions
    assert entry.version_ranges[0].severity == 1
    assert entry.created_at == datetime(2019, 6, 8, 13, 20, tzinfo=UTC)


def test_from_record_prefers_details_created() -> None:
    record = blocklist_record("a@b")
    record["details"]["created"] = "2018-01-02T03:04:05Z"

    entry = BlockEntry.from_record(record)

    assert entry.created_at == datetime(2018, 1, 2, 3, 4, 5, tzinfo=UTC)


def test_from_record_defaults_missing_range_to_all_versions() -> None:
    entry = BlockEntry.from_record({"id": "x", "guid": "a@b"})

    assert entry.blocks_all_versions
    assert entry.bug_reference is None
    assert entry.bug_id is None
    assert entry.created_at is None


def test_from_record_tolerates_missing_or_odd_severity() -> None:
    record = blocklist_record(
        "a@b",
        version_range=[
            {"minVersion": "0", "maxVersion": "1.0", "severity": None},
            {"minVersion": "1.0", "maxVersion": "2.0", "severity": "1"},
            {"minVersion": "2.0", "maxVersion": "*", "severity": 2},
        ],
    )

    entry = BlockEntry.from_record(record)

    assert [item.severity for item in entry.version_ranges] == [3, 1, 2]


def test_from_record_rejects_non_objects() -> None:
    with pytest.raises(ValueError, match="must be an object"):
        BlockEntry.from_record(["a@b"])


def test_bug_id_is_none_without_id_parameter() -> None:
    entry = BlockEntry(guid_pattern="a@b", bug_reference="https://example.com/bugs/123")

    assert entry.bug_id is None


def test_severity_label_keeps_unknown_values() -> None:
    assert severity_label(1) == "soft"
    assert severity_label(3) == "hard"
    assert severity_label(2) == "unknown(2)"


def test_ambiguous_warning_message_lists_patterns() -> None:
    warning = MatchWarning(
        "c@d",
        "ambiguous",
        (BlockEntry(guid_pattern="/^((c@d))$/"), BlockEntry(guid_pattern="/c@d/")),
    )

    assert warning.message == "c@d appears in more than one regex block: /^((c@d))$/, /c@d/"
