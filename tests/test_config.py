from __future__ import annotations

from pathlib import Path

import pytest

from mozblocklist.config import default_config_path, load_config, resolve_endpoints


def test_load_config_reads_all_sections(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text(
        "\n".join(
            [
                "kinto:",
                "  authorization: Bearer secret",
                "bugzilla:",
                "  api_key: key-123",
                "reviewer:",
                "  name: Reviewer",
                "  email: reviewer@mozilla.com",
                "canned_reasons:",
                "  malware:",
                "    bugzilla: This add-on is malware.",
                "    kinto: Malware",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.kinto.authorization == "Bearer secret"
    assert config.bugzilla.api_key == "key-123"
    assert config.bugzilla.url == "https://bugzilla.mozilla.org"
    assert config.reviewer.configured
    assert config.canned_reasons["malware"].kinto == "Malware"


def test_missing_default_config_yields_defaults(isolated_config: Path) -> None:
    config = load_config()

    assert default_config_path() == isolated_config / "mozblocklist" / "config.yml"
    assert config.kinto.authorization is None
    assert not config.reviewer.configured
    assert config.canned_reasons == {}


def test_explicit_missing_config_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(OSError, match="Unable to read config file"):
        load_config(tmp_path / "absent.yml")


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("kinto: [unclosed", "Unable to parse config YAML"),
        ("- a\n- b\n", "Config must be a YAML object"),
        ("canned_reasons:\n  malware: just text\n", "Config validation failed"),
    ],
)
def test_invalid_config_raises_value_error(tmp_path: Path, content: str, message: str) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        load_config(config_path)


def test_resolve_endpoints_defaults_to_public_reader_and_prod_writer() -> None:
    endpoints = resolve_endpoints()

    assert endpoints.reader == "https://firefox.settings.services.mozilla.com/v1"
    assert endpoints.writer == "https://settings-writer.prod.mozaws.net/v1"


def test_resolve_endpoints_stage_uses_stage_for_both() -> None:
    endpoints = resolve_endpoints(stage=True)

    assert endpoints.reader == endpoints.writer == "https://settings-writer.stage.mozaws.net/v1"


def test_resolve_endpoints_rejects_stage_with_writer() -> None:
    with pytest.raises(ValueError, match="cannot be combined"):
        resolve_endpoints(writer="writer.example.com", stage=True)
