"""User configuration loading and remote endpoint resolution."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from mozblocklist.constants import BUGZILLA_URL, PROD_HOST, PUBLIC_HOST, STAGE_HOST, kinto_url
from mozblocklist.models import CannedReason


class KintoSettings(BaseModel):
    """Writer credentials for the settings service."""

    authorization: str | None = None


class BugzillaSettings(BaseModel):
    url: str = BUGZILLA_URL
    api_key: str | None = None


class ReviewerSettings(BaseModel):
    """Person asked to review staged blocks."""

    name: str | None = None
    email: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.name and self.email)


class MozblocklistConfig(BaseModel):
    """Validated contents of the configuration file."""

    kinto: KintoSettings = Field(default_factory=KintoSettings)
    bugzilla: BugzillaSettings = Field(default_factory=BugzillaSettings)
    reviewer: ReviewerSettings = Field(default_factory=ReviewerSettings)
    canned_reasons: dict[str, CannedReason] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RemoteEndpoints:
    """Kinto reader and writer API roots."""

    reader: str
    writer: str


def default_config_path() -> Path:
    """Return the default configuration file location."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home).expanduser() / "mozblocklist" / "config.yml"
    return Path.home() / ".config" / "mozblocklist" / "config.yml"


def load_config(path: Path | None = None) -> MozblocklistConfig:
    """Load and validate the YAML configuration.

    Without an explicit path a missing default file yields the defaults; an
    explicit path must exist.
    """
    config_path = path if path is not None else default_config_path()
    if path is None and not config_path.is_file():
        return MozblocklistConfig()

    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OSError(f"Unable to read config file: {config_path}: {exc}") from exc

    try:
        payload = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ValueError(f"Unable to parse config YAML: {config_path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValueError(f"Config must be a YAML object: {config_path}")

    try:
        return MozblocklistConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Config validation failed: {config_path}: {exc}") from exc


def resolve_endpoints(*, host: str = PUBLIC_HOST, writer: str | None = None, stage: bool = False) -> RemoteEndpoints:
    """Resolve reader and writer roots from the host options."""
    if stage and writer:
        raise ValueError("--stage and --writer cannot be combined")
    if stage:
        return RemoteEndpoints(reader=kinto_url(STAGE_HOST), writer=kinto_url(STAGE_HOST))
    return RemoteEndpoints(reader=kinto_url(host), writer=kinto_url(writer or PROD_HOST))
