"""Creation requests for new blocklist entries."""

from __future__ import annotations

from mozblocklist.blocklist.codec import compile_guids, is_guid_regex
from mozblocklist.constants import BUG_URL_PREFIX, MAX_BLOCK_LENGTH
from mozblocklist.models import (
    BlockEntryCreationRequest,
    BlockMetadata,
    VersionRange,
    severity_label,
)


def build_entries(
    new_guids: list[str],
    metadata: BlockMetadata,
    *,
    max_length: int = MAX_BLOCK_LENGTH,
) -> list[BlockEntryCreationRequest]:
    """Build one creation request per compiled guid block.

    Version ranges only apply to a single literal guid; regex blocks always
    block all versions.
    """
    requests: list[BlockEntryCreationRequest] = []
    for guid_string in compile_guids(new_guids, max_length=max_length):
        if is_guid_regex(guid_string):
            min_version, max_version = "0", "*"
        else:
            min_version, max_version = metadata.min_version, metadata.max_version
        requests.append(
            BlockEntryCreationRequest(
                guid=guid_string,
                bug=metadata.bug_reference,
                name=metadata.name,
                reason=metadata.reason,
                severity=metadata.severity,
                min_version=min_version,
                max_version=max_version,
            )
        )
    return requests


def allows_version_range(new_guids: list[str]) -> bool:
    """Return True when a version range can be chosen for these guids."""
    return len(new_guids) == 1


def parse_bug_id(value: str) -> int | None:
    """Parse a bug id or bug link; empty input returns None."""
    text = value.strip().replace(BUG_URL_PREFIX, "")
    if not text:
        return None
    if not text.isdigit():
        raise ValueError(f"invalid bug id or link: {value!r}")
    return int(text)


def normalize_bug_reference(value: str | int) -> str:
    """Return the canonical bug URL for a bug id or bug link."""
    bug_id = parse_bug_id(str(value))
    if bug_id is None:
        raise ValueError("bug id or link cannot be empty")
    return bug_url(bug_id)


def bug_url(bug_id: int) -> str:
    return f"{BUG_URL_PREFIX}{bug_id}"


def version_range_label(ranges: list[VersionRange]) -> str:
    """Human readable version range summary."""
    if len(ranges) == 1 and ranges[0].is_all_versions:
        return "<all versions>"
    return ", ".join(
        f"{item.min_version} - {item.max_version} ({severity_label(item.severity)})"
        for item in ranges
    )
