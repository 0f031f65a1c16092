"""Shared models for blocklist records, staging requests and collection state."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

_BUG_ID_PATTERN = re.compile(r"id=(\d+)")

MatchWarningKind = Literal["ambiguous", "overlap"]


class Severity(IntEnum):
    """Block strength stored in a version range."""

    SOFT = 1
    HARD = 3


def severity_label(value: int) -> str:
    """Render a severity value; unknown numbers are shown, not rejected."""
    try:
        return Severity(value).name.lower()
    except ValueError:
        return f"unknown({value})"


class CollectionState(StrEnum):
    """Review lifecycle label of the staging collection."""

    WORK_IN_PROGRESS = "work-in-progress"
    TO_REVIEW = "to-review"
    TO_SIGN = "to-sign"
    SIGNED = "signed"


class VersionRange(BaseModel):
    """One version range of a block, with its severity."""

    model_config = ConfigDict(frozen=True)

    min_version: str = "0"
    max_version: str = "*"
    severity: int = Severity.HARD

    @property
    def is_all_versions(self) -> bool:
        return self.min_version == "0" and self.max_version == "*"

    def to_payload(self) -> dict[str, object]:
        return {
            "severity": int(self.severity),
            "minVersion": self.min_version,
            "maxVersion": self.max_version,
        }


class BlockEntry(BaseModel):
    """Existing or prospective blocklist record."""

    model_config = ConfigDict(frozen=True)

    guid_pattern: str
    version_ranges: list[VersionRange] = Field(default_factory=lambda: [VersionRange()])
    bug_reference: str | None = None
    name: str | None = None
    reason_text: str | None = None
    enabled: bool = True
    created_at: datetime | None = None
    record_id: str | None = None
    last_modified: int | None = None
    deleted: bool = False
    prefs: list[str] = Field(default_factory=list)

    @property
    def is_regex(self) -> bool:
        return self.guid_pattern.startswith("/")

    @property
    def bug_id(self) -> int | None:
        """Bug number from the bug reference, or None when it has no `id=N` part."""
        if not self.bug_reference:
            return None
        match = _BUG_ID_PATTERN.search(self.bug_reference)
        if match is None:
            return None
        return int(match.group(1))

    @property
    def blocks_all_versions(self) -> bool:
        return len(self.version_ranges) == 1 and self.version_ranges[0].is_all_versions

    @classmethod
    def from_record(cls, record: object) -> BlockEntry:
        """Map a raw Kinto blocklist record onto a BlockEntry."""
        if not isinstance(record, dict):
            raise ValueError(f"blocklist record must be an object, got {type(record).__name__}")

        details = record.get("details")
        if not isinstance(details, dict):
            details = {}

        ranges: list[VersionRange] = []
        raw_ranges = record.get("versionRange")
        if isinstance(raw_ranges, list):
            for raw_range in raw_ranges:
                if not isinstance(raw_range, dict):
                    continue
                ranges.append(
                    VersionRange(
                        min_version=str(raw_range.get("minVersion", "0")),
                        max_version=str(raw_range.get("maxVersion", "*")),
                        severity=_severity(raw_range.get("severity")),
                    )
                )
        if not ranges:
            ranges.append(VersionRange())

        raw_last_modified = record.get("last_modified")
        last_modified = int(raw_last_modified) if isinstance(raw_last_modified, int) else None
        raw_prefs = record.get("prefs")

        return cls(
            guid_pattern=str(record.get("guid") or ""),
            version_ranges=ranges,
            bug_reference=_optional_text(details.get("bug")),
            name=_optional_text(details.get("name")),
            reason_text=_optional_text(details.get("why")),
            enabled=bool(record.get("enabled", True)),
            created_at=_created_at(details.get("created"), last_modified),
            record_id=_optional_text(record.get("id")),
            last_modified=last_modified,
            deleted=bool(record.get("deleted", False)),
            prefs=[str(pref) for pref in raw_prefs] if isinstance(raw_prefs, list) else [],
        )


@dataclass(frozen=True, slots=True)
class MatchWarning:
    """Non-fatal classification anomaly for one candidate guid."""

    guid: str
    kind: MatchWarningKind
    entries: tuple[BlockEntry, ...]

    @property
    def message(self) -> str:
        patterns = ", ".join(entry.guid_pattern for entry in self.entries)
        if self.kind == "ambiguous":
            return f"{self.guid} appears in more than one regex block: {patterns}"
        return f"{self.guid} is blocked exactly and also matched by regex block(s): {patterns}"


@dataclass(slots=True)
class GuidClassificationResult:
    """Partition of candidate guids into already blocked and new guids."""

    existing: dict[str, BlockEntry] = field(default_factory=dict)
    new_guids: list[str] = field(default_factory=list)
    warnings: list[MatchWarning] = field(default_factory=list)


class BlockMetadata(BaseModel):
    """User supplied attributes shared by all entries of one block request."""

    name: str
    reason: str
    severity: Severity = Severity.HARD
    min_version: str = "0"
    max_version: str = "*"
    bug_reference: str | None = None


class BlockEntryCreationRequest(BaseModel):
    """One blocklist record to be created in the staging collection."""

    model_config = ConfigDict(frozen=True)

    guid: str
    bug: str | None = None
    name: str
    reason: str
    severity: Severity = Severity.HARD
    min_version: str = "0"
    max_version: str = "*"

    def to_payload(self) -> dict[str, object]:
        return {
            "guid": self.guid,
            "bug": self.bug,
            "name": self.name,
            "reason": self.reason,
            "severity": int(self.severity),
            "minVersion": self.min_version,
            "maxVersion": self.max_version,
        }

    def to_record(self) -> dict[str, object]:
        """Kinto record body for the staging addons collection."""
        return {
            "guid": self.guid,
            "prefs": [],
            "details": {
                "bug": self.bug,
                "name": self.name,
                "why": self.reason,
            },
            "enabled": True,
            "versionRange": [
                VersionRange(
                    min_version=self.min_version,
                    max_version=self.max_version,
                    severity=self.severity,
                ).to_payload()
            ],
        }


class BlocklistBugData(BaseModel):
    """Block details parsed from a blocklist request bug form."""

    id: int
    name: str
    reason: str
    guids: list[str] = Field(default_factory=list)


class CannedReason(BaseModel):
    """Reason texts used for the bug comment and for the Kinto record."""

    bugzilla: str
    kinto: str


@dataclass(slots=True)
class PendingBlock:
    """A staged entry that is not yet part of the compared collection."""

    entry: BlockEntry
    comments: list[str] = field(default_factory=list)
    already_requested: bool = False


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _severity(raw: object) -> int:
    # Unknown numbers are kept for display; missing or non-numeric values mean hard.
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw)
    return Severity.HARD


def _created_at(raw: object, last_modified: int | None) -> datetime | None:
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
            return parsed
    if last_modified is None:
        return None
    return datetime.fromtimestamp(last_modified / 1000, UTC)
