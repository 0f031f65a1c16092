from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeBugzilla, FakeKinto, blocklist_record
from typer.testing import CliRunner

from mozblocklist import cli as cli_module
from mozblocklist.cli import app
from mozblocklist.models import BlockEntry, CollectionState

pytestmark = pytest.mark.usefixtures("isolated_config")


def _use_fakes(
    monkeypatch: pytest.MonkeyPatch,
    kinto: FakeKinto,
    bugzilla: FakeBugzilla | None = None,
) -> None:
    monkeypatch.setattr(cli_module, "_kinto_client", lambda state: kinto)
    monkeypatch.setattr(cli_module, "_bugzilla_client", lambda state: bugzilla or FakeBugzilla())


def test_expand_prints_generated_block_guids() -> None:
    result = CliRunner().invoke(app, ["expand", "/^((a@b\\.com)|(c@d))$/"])

    assert result.exit_code == 0
    assert result.output.splitlines() == ["a@b.com", "c@d"]


def test_expand_exit_code_1_for_hand_written_regex() -> None:
    result = CliRunner().invoke(app, ["expand", "/^.*@evil$/"])

    assert result.exit_code == 1


def test_stage_and_writer_together_exit_code_1() -> None:
    result = CliRunner().invoke(app, ["--stage", "--writer", "w.example", "status"])

    assert result.exit_code == 1
    assert "cannot be combined" in result.output


def test_broken_config_exit_code_1(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text("- not\n- a mapping\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["--config", str(config_path), "expand", "x"])

    assert result.exit_code == 1


def test_check_reports_blocked_and_new_guids(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_fakes(monkeypatch, FakeKinto([blocklist_record("a@b")]))

    result = CliRunner().invoke(app, ["check"], input="a@b\n# skip me\nc@d\ne@f\n")

    assert result.exit_code == 0
    assert "Already Blocked" in result.output
    assert "Here is the list of guids for kinto:" in result.output
    assert "/^((c@d)|(e@f))$/" in result.output


def test_check_with_nothing_new(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_fakes(monkeypatch, FakeKinto([blocklist_record("a@b")]))

    result = CliRunner().invoke(app, ["check", "a@b"])

    assert result.exit_code == 0
    assert "Nothing new to block" in result.output


def test_status_prints_human_label(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_fakes(monkeypatch, FakeKinto(status=CollectionState.TO_REVIEW))

    result = CliRunner().invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Blocklist staged, waiting for review" in result.output


def test_create_stages_single_guid_with_version_range(monkeypatch: pytest.MonkeyPatch) -> None:
    kinto = FakeKinto([blocklist_record("a@b")], status=CollectionState.SIGNED)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(
        app,
        ["create"],
        input="a@b\nnew@x\n\n1234\nBad Ext\nMalware\nsoft\n1.0\n2.*\ny\n",
    )

    assert result.exit_code == 0, result.output
    assert [request.guid for request in kinto.created] == ["new@x"]
    request = kinto.created[0]
    assert request.bug == "https://bugzilla.mozilla.org/show_bug.cgi?id=1234"
    assert request.name == "Bad Ext"
    assert request.reason == "Malware"
    assert int(request.severity) == 1
    assert (request.min_version, request.max_version) == ("1.0", "2.*")
    assert "Blocklist entry created" in result.output


def test_create_uses_canned_reasons_from_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text(
        "canned_reasons:\n  malware:\n    bugzilla: Long text\n    kinto: Malware\n",
        encoding="utf-8",
    )
    kinto = FakeKinto(status=CollectionState.SIGNED)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(
        app,
        ["--config", str(config_path), "create", "a@b", "c@d"],
        input="77\nBad\nmalware\n\ny\n",
    )

    assert result.exit_code == 0, result.output
    assert [request.guid for request in kinto.created] == ["/^((a@b)|(c@d))$/"]
    assert kinto.created[0].reason == "Malware"


def test_create_exit_code_2_when_review_pending(monkeypatch: pytest.MonkeyPatch) -> None:
    kinto = FakeKinto(status=CollectionState.TO_REVIEW)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(app, ["create", "new@x"])

    assert result.exit_code == 2
    assert "expected blocklist to be in states signed" in result.output
    assert kinto.created == []


class _MovingKinto(FakeKinto):
    """Staging moves to review after the first status read."""

    def get_collection_status(self) -> str:
        status = super().get_collection_status()
        self.status = str(CollectionState.TO_REVIEW)
        return status


def test_create_files_no_bug_when_staging_moves_during_prompts(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    kinto = _MovingKinto(status=CollectionState.SIGNED)
    bugzilla = FakeBugzilla(api_key="key")
    _use_fakes(monkeypatch, kinto, bugzilla)

    result = CliRunner().invoke(
        app, ["create", "new@x"], input="\nBad\nMalware\n\n\n\n\ny\n"
    )

    assert result.exit_code == 2, result.output
    assert bugzilla.created == []
    assert bugzilla.updates == []
    assert kinto.created == []
    assert "Invalid blocklist state" in result.output


def test_create_declined_prints_guid_string(monkeypatch: pytest.MonkeyPatch) -> None:
    kinto = FakeKinto(status=CollectionState.SIGNED)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(
        app, ["create", "a@b", "c@d"], input="5\nBad\nMalware\n\nn\n"
    )

    assert result.exit_code == 0
    assert kinto.created == []
    assert "/^((a@b)|(c@d))$/" in result.output


def test_reject_exit_code_2_outside_review(monkeypatch: pytest.MonkeyPatch) -> None:
    kinto = FakeKinto(status=CollectionState.SIGNED)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(app, ["reject"])

    assert result.exit_code == 2
    assert kinto.status_writes == []


def test_reject_moves_review_back_to_work_in_progress(monkeypatch: pytest.MonkeyPatch) -> None:
    kinto = FakeKinto(status=CollectionState.TO_REVIEW)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(app, ["reject"])

    assert result.exit_code == 0
    assert kinto.status_writes == ["work-in-progress"]


def test_review_requests_review_for_pending_entries(monkeypatch: pytest.MonkeyPatch) -> None:
    entry = BlockEntry.from_record(blocklist_record("a@b", record_id="rec-1"))
    kinto = FakeKinto(status=CollectionState.WORK_IN_PROGRESS, pending=[entry])
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(app, ["review"], input="y\n")

    assert result.exit_code == 0, result.output
    assert kinto.status_writes == ["to-review"]
    assert "show_bug.cgi?id=111" in result.output


def test_sign_with_nothing_staged_does_not_transition(monkeypatch: pytest.MonkeyPatch) -> None:
    kinto = FakeKinto(status=CollectionState.TO_REVIEW)
    _use_fakes(monkeypatch, kinto)

    result = CliRunner().invoke(app, ["sign"])

    assert result.exit_code == 0
    assert "No staged blocks" in result.output
    assert kinto.status_writes == []


def test_pending_guids_prints_expanded_guids(monkeypatch: pytest.MonkeyPatch) -> None:
    entry = BlockEntry(guid_pattern="/^((a@b)|(c@d))$/", record_id="rec-1")
    _use_fakes(monkeypatch, FakeKinto(pending=[entry]))

    result = CliRunner().invoke(app, ["pending-guids"])

    assert result.exit_code == 0
    assert result.output.splitlines() == ["a@b", "c@d"]


def test_list_sql_exports_blocked_guids(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_fakes(monkeypatch, FakeKinto([blocklist_record("a@b")]))

    result = CliRunner().invoke(app, ["list", "--format", "sql"], input="a@b\nnew@x\n")

    assert result.exit_code == 0
    assert result.output.startswith('SELECT "a@b" AS guid')
    assert "new@x" not in result.output


def test_list_rejects_unknown_format(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_fakes(monkeypatch, FakeKinto())

    result = CliRunner().invoke(app, ["list", "--format", "xml"])

    assert result.exit_code == 1
