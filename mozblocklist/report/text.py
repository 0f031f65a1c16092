"""Rich text rendering for blocklist check results and pending entries."""

from __future__ import annotations

import re

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mozblocklist.blocklist.builder import version_range_label
from mozblocklist.blocklist.codec import strip_regex_delimiters
from mozblocklist.errors import MalformedPatternError
from mozblocklist.models import GuidClassificationResult, PendingBlock, severity_label


def render_classification(console: Console, result: GuidClassificationResult) -> None:
    """Render already blocked guids followed by the guids not yet blocked."""
    if result.existing:
        table = Table(title="Already Blocked")
        table.add_column("GUID")
        table.add_column("Bug")
        table.add_column("Enabled", justify="center")
        for guid, entry in result.existing.items():
            table.add_row(
                escape(guid),
                escape(entry.bug_reference or "-"),
                "yes" if entry.enabled else "[yellow]no[/yellow]",
            )
        console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]Warning: {escape(warning.message)}[/yellow]")

    if not result.new_guids:
        console.print("Nothing new to block")
        return

    console.print("[bold]Here is a list of all guids not yet blocked:[/bold]")
    for guid in result.new_guids:
        console.print(escape(guid), soft_wrap=True)


def render_guid_strings(console: Console, guid_strings: list[str]) -> None:
    console.print("[bold]Here is the list of guids for kinto:[/bold]")
    for guid_string in guid_strings:
        console.print(escape(guid_string), soft_wrap=True, highlight=False)


def render_invalid_entries(console: Console, invalid: tuple[MalformedPatternError, ...]) -> None:
    for error in invalid:
        console.print(f"[yellow]Warning: {escape(str(error))}[/yellow]")


def render_pending(
    console: Console, pending: list[PendingBlock], *, admin_url: dict[str, str]
) -> None:
    """Render staged entries with their reason, range, guids and new bug comments."""
    if not pending:
        console.print("No blocks pending")
        return

    for block in pending:
        entry = block.entry
        label = "deleted" if entry.deleted else entry.name or "-"
        console.print(f"Entry {escape(entry.record_id or '-')} - {escape(label)}")
        if not entry.enabled:
            console.print("\t[yellow]Warning: The blocklist entry is marked disabled[/yellow]")
        if entry.record_id in admin_url:
            console.print(f"\tURL: {admin_url[entry.record_id]}", soft_wrap=True)
        if entry.deleted:
            continue

        console.print(f"\tReason: {escape(entry.reason_text or '-')}")
        console.print(f"\tBug: {escape(entry.bug_reference or '-')}")
        if entry.blocks_all_versions:
            severity = severity_label(entry.version_ranges[0].severity)
            console.print(f"\tRange: Blocking all versions, severity {severity}")
        else:
            console.print("\tRange: Partial block with the following version ranges:")
            console.print(f"\t\t{escape(version_range_label(entry.version_ranges))}")

        if entry.is_regex:
            validity = "valid" if _regex_is_valid(entry.guid_pattern) else "INVALID"
            console.print(f"\tGUIDs ({validity}): {escape(entry.guid_pattern)}", soft_wrap=True)
        else:
            console.print(f"\tGUID: {escape(entry.guid_pattern)}")
        if entry.prefs:
            console.print(f"\tPrefs: {escape(', '.join(entry.prefs))}")

        if block.comments:
            console.print("\tComments since the block was staged:")
            for comment in block.comments:
                console.print("\t\t" + escape(comment).replace("\n", "\n\t\t\t"))


def _regex_is_valid(pattern: str) -> bool:
    try:
        re.compile(strip_regex_delimiters(pattern))
    except re.error:
        return False
    return True
