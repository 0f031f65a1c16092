"""CLI entrypoint for mozblocklist."""

import base64
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from mozblocklist.blocklist.builder import (
    allows_version_range,
    build_entries,
    bug_url,
    parse_bug_id,
)
from mozblocklist.blocklist.codec import compile_guids, expand_guid_string
from mozblocklist.blocklist.state import CollectionStateMachine, creation_states
from mozblocklist.config import MozblocklistConfig, RemoteEndpoints, load_config, resolve_endpoints
from mozblocklist.constants import (
    ADDONS_COLLECTION,
    BLOCKLIST_BUCKET,
    PREVIEW_BUCKET,
    PUBLIC_HOST,
)
from mozblocklist.errors import InvalidStateError
from mozblocklist.models import (
    BlocklistBugData,
    BlockMetadata,
    CannedReason,
    PendingBlock,
    Severity,
)
from mozblocklist.remote.bugzilla import BugzillaClient, fetch_blocklist_bug
from mozblocklist.remote.kinto import KintoBlocklistClient
from mozblocklist.report.sql import render_blocked_guids_sql
from mozblocklist.report.text import (
    render_classification,
    render_guid_strings,
    render_invalid_entries,
    render_pending,
)
from mozblocklist.workflow import (
    assign_blocklist_bug,
    bug_links,
    check_guids,
    file_blocklist_bug,
    load_pending,
    pending_guids,
    reject_blocklist,
    request_review,
    sign_blocklist,
    stage_entries,
    status_message,
)

EXIT_OK = 0
EXIT_OPERATIONAL_ERROR = 1
EXIT_INVALID_STATE = 2

app = typer.Typer(help="mozblocklist: Mozilla add-on blocklist curation assistant.")
console = Console()
err_console = Console(stderr=True)


@dataclass(slots=True)
class _CliContext:
    config: MozblocklistConfig
    endpoints: RemoteEndpoints


@app.callback()
def main(
    ctx: typer.Context,
    host: str = typer.Option(PUBLIC_HOST, "--host", "-H", help="The kinto host to read from."),
    writer: str | None = typer.Option(
        None, "--writer", "-W", help="The writer instance of kinto to use (default: production)."
    ),
    stage: bool = typer.Option(
        False, "--stage", "-s", help="Use the stage writer and reader instead of production."
    ),
    config_path: Path | None = typer.Option(
        None, "--config", help="Path to YAML config (default: XDG config mozblocklist/config.yml)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Check guids against the add-on blocklist and stage new blocks."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    try:
        config = load_config(config_path)
        endpoints = resolve_endpoints(host=host, writer=writer, stage=stage)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc
    ctx.obj = _CliContext(config=config, endpoints=endpoints)


@app.command("check")
def check(
    ctx: typer.Context,
    guids: list[str] | None = typer.Argument(
        None, help="Guids to check; read from stdin (one per line) when omitted."
    ),
    bug: int | None = typer.Option(
        None, "--bug", help="Take the guids from this blocklist request bug."
    ),
) -> None:
    """Find out which guids are already blocked."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        lines, _ = _collect_candidates(state, guids=guids, bug=bug, until_blank=False)
        index, result = check_guids(kinto, lines)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    render_invalid_entries(err_console, index.invalid_entries)
    render_classification(console, result)
    if result.new_guids:
        render_guid_strings(console, compile_guids(result.new_guids))
    raise typer.Exit(code=EXIT_OK)


@app.command("create")
def create(
    ctx: typer.Context,
    guids: list[str] | None = typer.Argument(
        None,
        help="Guids to block; read from stdin up to the first blank line when omitted.",
    ),
    bug: int | None = typer.Option(
        None, "--bug", help="Take the guids, name and reason from this blocklist request bug."
    ),
    can_continue: bool = typer.Option(
        False,
        "--continue",
        "-c",
        help="Allow creation when there are work in progress or in review items.",
    ),
) -> None:
    """Stage a block for the guids that are not yet blocked."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        bugzilla = _bugzilla_client(state)
        lines, bug_data = _collect_candidates(state, guids=guids, bug=bug, until_blank=True)
        index, result = check_guids(kinto, lines)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    render_invalid_entries(err_console, index.invalid_entries)
    render_classification(console, result)
    if not result.new_guids:
        raise typer.Exit(code=EXIT_OK)

    new_guids = result.new_guids
    try:
        _ensure_writer_authorization(kinto)
        CollectionStateMachine(kinto).ensure_state(creation_states(can_continue=can_continue))

        bug_id = bug_data.id if bug_data is not None else _prompt_bug_id(bugzilla)
        if bug_data is None and bug_id is not None and bugzilla.authenticated:
            bug_data = fetch_blocklist_bug(bugzilla, bug_id)

        name = typer.prompt(
            "Name for this block", default=bug_data.name if bug_data is not None else None
        )
        reason = _prompt_reason(state.config, bug_data)
        additional_info: str | None = None
        if bug_id is None:
            additional_info = typer.prompt(
                "Any additional info for the bug?", default="", show_default=False
            )
        severity = _prompt_severity()
        min_version, max_version = "0", "*"
        if allows_version_range(new_guids):
            min_version = typer.prompt("Minimum version", default="0")
            max_version = typer.prompt("Maximum version", default="*")

        metadata = BlockMetadata(
            name=name,
            reason=reason.kinto,
            severity=severity,
            min_version=min_version,
            max_version=max_version,
        )
        if not typer.confirm("Ready to create the blocklist entry?", default=False):
            console.print("In case you decide to do so later, here is the guid string:")
            for guid_string in compile_guids(new_guids):
                console.print(guid_string, soft_wrap=True, highlight=False, markup=False)
            raise typer.Exit(code=EXIT_OK)

        # Staging may have moved while prompting; no Bugzilla write before this.
        CollectionStateMachine(kinto).ensure_state(creation_states(can_continue=can_continue))
        if bug_id is None:
            bug_id = file_blocklist_bug(
                bugzilla,
                metadata=metadata,
                bug_reason=reason.bugzilla,
                guids=new_guids,
                additional_info=additional_info,
            )
            console.print(f"Created {bug_url(bug_id)} for this entry")
        elif bugzilla.authenticated:
            assign_blocklist_bug(bugzilla, bug_id=bug_id, comment=reason.bugzilla)

        requests = build_entries(
            new_guids, metadata.model_copy(update={"bug_reference": bug_url(bug_id)})
        )
        created = stage_entries(kinto, requests, can_continue=can_continue)
    except InvalidStateError as exc:
        console.print(f"[red]Invalid blocklist state: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID_STATE) from exc
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    for entry in created:
        url = kinto.record_admin_url(entry.record_id) if entry.record_id else entry.guid_pattern
        console.print(f"Blocklist entry created, see {url}", soft_wrap=True)
    raise typer.Exit(code=EXIT_OK)


@app.command("status")
def status(ctx: typer.Context) -> None:
    """Check the current blocklist staging status."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        _ensure_writer_authorization(kinto)
        current = kinto.get_collection_status()
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    console.print(status_message(current))
    raise typer.Exit(code=EXIT_OK)


@app.command("review")
def review(ctx: typer.Context) -> None:
    """Request review for pending blocklist entries."""
    state: _CliContext = ctx.obj
    reviewer = state.config.reviewer
    try:
        kinto = _kinto_client(state)
        bugzilla = _bugzilla_client(state)
        _ensure_writer_authorization(kinto)
        pending = load_pending(kinto, bugzilla, compare_with=PREVIEW_BUCKET)
        render_pending(console, pending, admin_url=_admin_urls(kinto, pending))
        if not pending:
            console.print("No blocks are in progress")
            raise typer.Exit(code=EXIT_OK)

        question = (
            f"Ready to request review from {reviewer.name}?"
            if bugzilla.authenticated and reviewer.configured
            else "Ready to request review?"
        )
        if not typer.confirm(question, default=False):
            raise typer.Exit(code=EXIT_OK)
        bugs = request_review(kinto, bugzilla, pending, reviewer=reviewer)
    except InvalidStateError as exc:
        console.print(f"[red]Invalid blocklist state: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID_STATE) from exc
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    if bugs:
        console.print(f"Requested review from {reviewer.name} for the following bugs:")
        for link in bug_links(bugs):
            console.print(f"\t{link}")
    elif not bugzilla.authenticated or not reviewer.configured:
        _print_manual_bug_links(pending, "a bugzilla API key or reviewer")
    raise typer.Exit(code=EXIT_OK)


@app.command("sign")
def sign(ctx: typer.Context) -> None:
    """Sign a pending blocklist review."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        bugzilla = _bugzilla_client(state)
        _ensure_writer_authorization(kinto)
        pending = load_pending(kinto, bugzilla, compare_with=BLOCKLIST_BUCKET)
        render_pending(console, pending, admin_url=_admin_urls(kinto, pending))
        if not pending:
            console.print("No staged blocks")
            raise typer.Exit(code=EXIT_OK)
        if not typer.confirm("Ready to sign?", default=False):
            raise typer.Exit(code=EXIT_OK)

        remove_security_group = bugzilla.authenticated and typer.confirm(
            "Remove blocklist-requests security group?", default=False
        )
        console.print("Signing blocklist...")
        bugs = sign_blocklist(
            kinto, bugzilla, pending, remove_security_group=remove_security_group
        )
    except InvalidStateError as exc:
        console.print(f"[red]Invalid blocklist state: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID_STATE) from exc
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    if bugs:
        console.print("Marked the following bugs as FIXED:")
        for link in bug_links(bugs):
            console.print(f"\t{link}")
    elif not bugzilla.authenticated:
        _print_manual_bug_links(pending, "a bugzilla API key")
    console.print("Done")
    raise typer.Exit(code=EXIT_OK)


@app.command("reject")
def reject(ctx: typer.Context) -> None:
    """Reject a pending blocklist review."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        _ensure_writer_authorization(kinto)
        reject_blocklist(kinto)
    except InvalidStateError as exc:
        console.print(f"[red]Invalid blocklist state: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID_STATE) from exc
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    console.print("Review rejected, blocklist is back to work in progress")
    raise typer.Exit(code=EXIT_OK)


@app.command("pending")
def pending(
    ctx: typer.Context,
    compare_with: str = typer.Option(
        PREVIEW_BUCKET, "--compare-with", help="Bucket to compare the staging collection with."
    ),
) -> None:
    """Show staged blocks that are not yet in the compared bucket."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        bugzilla = _bugzilla_client(state)
        _ensure_writer_authorization(kinto)
        blocks = load_pending(kinto, bugzilla, compare_with=compare_with)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    render_pending(console, blocks, admin_url=_admin_urls(kinto, blocks))
    raise typer.Exit(code=EXIT_OK)


@app.command("pending-guids")
def pending_guids_command(
    ctx: typer.Context,
    compare_with: str = typer.Option(
        PREVIEW_BUCKET, "--compare-with", help="Bucket to compare the staging collection with."
    ),
) -> None:
    """Print the guids covered by staged blocks, one per line."""
    state: _CliContext = ctx.obj
    try:
        kinto = _kinto_client(state)
        _ensure_writer_authorization(kinto)
        entries = kinto.compare_collection(compare_with)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    for guid in pending_guids([PendingBlock(entry=entry) for entry in entries]):
        typer.echo(guid)
    raise typer.Exit(code=EXIT_OK)


@app.command("list")
def list_blocklist(
    ctx: typer.Context,
    output_format: str = typer.Option(
        "json",
        "--format",
        help="json dumps all records; sql emits rows for the blocked guids read from stdin.",
    ),
) -> None:
    """Display the blocklist in various formats."""
    state: _CliContext = ctx.obj
    if output_format not in {"json", "sql"}:
        console.print("[red]Operational error: --format must be json or sql.[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR)

    try:
        kinto = _kinto_client(state)
        if output_format == "json":
            records = kinto.list_records(BLOCKLIST_BUCKET, ADDONS_COLLECTION)
            typer.echo(json.dumps({"data": records}, indent=2, sort_keys=True))
            raise typer.Exit(code=EXIT_OK)
        lines = _read_stdin_lines(until_blank=False)
        _, result = check_guids(kinto, lines)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Operational error: {exc}[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR) from exc

    typer.echo(render_blocked_guids_sql(result.existing))
    raise typer.Exit(code=EXIT_OK)


@app.command("expand")
def expand(
    pattern: str = typer.Argument(..., help="Guid string as stored in the blocklist."),
) -> None:
    """Print the guids of a generated guid string, one per line."""
    guids = expand_guid_string(pattern)
    if not guids:
        console.print("[red]Operational error: not a generated guid block; cannot expand.[/red]")
        raise typer.Exit(code=EXIT_OPERATIONAL_ERROR)
    for guid in guids:
        typer.echo(guid)
    raise typer.Exit(code=EXIT_OK)


def _kinto_client(state: _CliContext) -> KintoBlocklistClient:
    return KintoBlocklistClient(
        state.endpoints, authorization=state.config.kinto.authorization
    )


def _bugzilla_client(state: _CliContext) -> BugzillaClient:
    return BugzillaClient(state.config.bugzilla.url, state.config.bugzilla.api_key)


def _ensure_writer_authorization(kinto: KintoBlocklistClient) -> None:
    if kinto.authorized:
        return
    username = typer.prompt("Username")
    password = typer.prompt("Password", hide_input=True)
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    kinto.authorization = f"Basic {token}"


def _collect_candidates(
    state: _CliContext, *, guids: list[str] | None, bug: int | None, until_blank: bool
) -> tuple[list[str], BlocklistBugData | None]:
    if bug is not None:
        bugzilla = _bugzilla_client(state)
        bug_data = fetch_blocklist_bug(bugzilla, bug)
        if bug_data is None:
            raise ValueError(f"bug {bug} is not a blocklist bug using the form")
        return bug_data.guids, bug_data
    if guids:
        return guids, None
    return _read_stdin_lines(until_blank=until_blank), None


def _read_stdin_lines(*, until_blank: bool) -> list[str]:
    # Prompts read from the same stream, so consume it line by line.
    if sys.stdin.isatty():
        finish = "an empty line" if until_blank else "Ctrl+D"
        err_console.print(f"Waiting for guids (one per line, {finish} to finish)")
    lines: list[str] = []
    while True:
        line = sys.stdin.readline()
        if not line or (until_blank and not line.strip()):
            break
        lines.append(line.rstrip("\n"))
    return lines


def _prompt_bug_id(bugzilla: BugzillaClient) -> int | None:
    while True:
        answer = typer.prompt(
            "Bug id or link (leave empty to create)", default="", show_default=False
        )
        try:
            bug_id = parse_bug_id(answer)
        except ValueError:
            console.print("Invalid bug id or link")
            continue
        if bug_id is None and not bugzilla.authenticated:
            console.print(
                "You need to specify a bugzilla API key in the config or enter a bug id here"
            )
            continue
        return bug_id


def _prompt_reason(config: MozblocklistConfig, bug_data: BlocklistBugData | None) -> CannedReason:
    canned = config.canned_reasons
    if not canned:
        default = bug_data.reason if bug_data is not None else None
        text = typer.prompt("Reason for this block", default=default)
        return CannedReason(bugzilla=text, kinto=text)

    choices = ",".join([*canned, "custom"])
    while True:
        answer = typer.prompt(f"Reason for this block [{choices}]").strip()
        if answer == "custom":
            return CannedReason(
                bugzilla=typer.prompt("Bugzilla reason"),
                kinto=typer.prompt("Kinto reason"),
            )
        if answer in canned:
            return canned[answer]
        console.print("Unknown reason, use 'custom' for a custom reason")


def _prompt_severity() -> Severity:
    while True:
        answer = typer.prompt("Severity [HARD/soft]", default="", show_default=False)
        answer = answer.strip().lower()
        if answer in {"", "hard"}:
            return Severity.HARD
        if answer == "soft":
            return Severity.SOFT
        console.print("Invalid severity, must be hard or soft")


def _admin_urls(kinto: KintoBlocklistClient, blocks: list[PendingBlock]) -> dict[str, str]:
    return {
        block.entry.record_id: kinto.record_admin_url(block.entry.record_id)
        for block in blocks
        if block.entry.record_id
    }


def _print_manual_bug_links(blocks: list[PendingBlock], missing: str) -> None:
    console.print(f"You don't have {missing} configured. Visit these bugs manually:")
    for block in blocks:
        if block.entry.bug_reference:
            console.print(f"\t{block.entry.bug_reference}", soft_wrap=True)


if __name__ == "__main__":
    app()
