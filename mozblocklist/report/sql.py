"""SQL export of blocked guids for joining against add-on databases."""

from __future__ import annotations

from mozblocklist.models import BlockEntry


def render_blocked_guids_sql(existing: dict[str, BlockEntry]) -> str:
    """Render one `SELECT ... UNION ALL` row per blocked guid.

    Only the first version range is exported; `multirange` flags entries with more.
    """
    rows: list[str] = []
    for guid, entry in existing.items():
        version_range = entry.version_ranges[0]
        created = entry.created_at.isoformat() if entry.created_at is not None else ""
        prefix = "UNION ALL " if rows else ""
        rows.append(
            f"{prefix}SELECT {_quote(guid)} AS guid, {_quote(created)} AS created, "
            f"{_quote(entry.bug_reference or '')} AS bug, {int(version_range.severity)} AS severity, "
            f"{_quote(version_range.min_version)} AS minVersion, "
            f"{_quote(version_range.max_version)} AS maxVersion, "
            f"{1 if len(entry.version_ranges) > 1 else 0} AS multirange"
        )
    return "\n".join(rows)


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'
