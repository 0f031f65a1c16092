"""Blocklist workflows composed from the core and the remote services.

Nothing in this module prompts; the CLI gathers answers and passes them in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from mozblocklist.blocklist.builder import bug_url
from mozblocklist.blocklist.codec import expand_guid_string
from mozblocklist.blocklist.index import BlocklistIndex
from mozblocklist.blocklist.state import CollectionStateMachine, creation_states
from mozblocklist.config import ReviewerSettings
from mozblocklist.constants import BLOCKLIST_SECURITY_GROUP, REVIEW_REQUEST_MARKER
from mozblocklist.models import (
    BlockEntry,
    BlockEntryCreationRequest,
    BlockMetadata,
    CollectionState,
    GuidClassificationResult,
    PendingBlock,
)
from mozblocklist.remote.bugzilla import BugzillaClient, comments_since, compile_description
from mozblocklist.remote.kinto import KintoBlocklistClient

_LOG = logging.getLogger(__name__)

STATUS_MESSAGES = {
    CollectionState.SIGNED: "Signed and ready",
    CollectionState.TO_SIGN: "Signed and ready",
    CollectionState.WORK_IN_PROGRESS: "Blocklist entries work in progress",
    CollectionState.TO_REVIEW: "Blocklist staged, waiting for review",
}


def load_index(kinto: KintoBlocklistClient) -> BlocklistIndex:
    """Fetch a fresh snapshot and index it."""
    return BlocklistIndex.build(kinto.load_blocklist())


def check_guids(
    kinto: KintoBlocklistClient, lines: Iterable[str]
) -> tuple[BlocklistIndex, GuidClassificationResult]:
    index = load_index(kinto)
    return index, index.classify(lines)


def stage_entries(
    kinto: KintoBlocklistClient,
    requests: list[BlockEntryCreationRequest],
    *,
    can_continue: bool = False,
) -> list[BlockEntry]:
    """Create the entries in staging, checking the collection state before each write.

    The first write moves the collection to work in progress, so later
    requests of the same batch also accept that state.
    """
    machine = CollectionStateMachine(kinto)
    allowed: set[CollectionState] = set(creation_states(can_continue=can_continue))
    created: list[BlockEntry] = []
    for request in requests:
        machine.ensure_state(allowed)
        entry = kinto.create_record(request)
        _LOG.info("staged blocklist entry %s", entry.record_id or request.guid)
        created.append(entry)
        allowed.add(CollectionState.WORK_IN_PROGRESS)
    return created


def file_blocklist_bug(
    bugzilla: BugzillaClient,
    *,
    metadata: BlockMetadata,
    bug_reason: str,
    guids: list[str],
    additional_info: str | None = None,
) -> int:
    """File a blocklist request bug assigned to the current user and return its id."""
    account = bugzilla.whoami()
    if metadata.min_version == "0" and metadata.max_version == "*":
        versions = "<all versions>"
    else:
        versions = f"{metadata.min_version} - {metadata.max_version}"
    description = compile_description(
        name=metadata.name,
        versions=versions,
        reason=bug_reason,
        severity=metadata.severity,
        guids=guids,
        additional_info=additional_info,
    )
    return bugzilla.create(
        {
            "product": "Toolkit",
            "component": "Blocklist Policy Requests",
            "version": "unspecified",
            "summary": f"Extension block request: {metadata.name}",
            "description": description,
            "whiteboard": "[extension]",
            "status": "ASSIGNED",
            "assigned_to": account.get("name"),
            "groups": [BLOCKLIST_SECURITY_GROUP],
        }
    )


def assign_blocklist_bug(bugzilla: BugzillaClient, *, bug_id: int, comment: str) -> None:
    account = bugzilla.whoami()
    bugzilla.update(
        {
            "ids": [bug_id],
            "comment": {"body": comment},
            "assigned_to": account.get("name"),
            "status": "ASSIGNED",
        }
    )


def load_pending(
    kinto: KintoBlocklistClient,
    bugzilla: BugzillaClient,
    *,
    compare_with: str,
) -> list[PendingBlock]:
    """Load staged changes, with bug comments posted since staging when possible."""
    pending = [PendingBlock(entry=entry) for entry in kinto.compare_collection(compare_with)]
    if not pending or not bugzilla.authenticated:
        return pending

    since: dict[int, datetime] = {}
    for block in pending:
        if block.entry.deleted:
            continue
        bug_id = block.entry.bug_id
        if bug_id is None:
            _LOG.warning(
                "entry %s has no bug id in %r", block.entry.record_id, block.entry.bug_reference
            )
            continue
        since[bug_id] = _staged_at(block.entry)

    comments = comments_since(bugzilla, since)
    for block in pending:
        bug_id = block.entry.bug_id
        if block.entry.deleted or bug_id is None:
            continue
        block.comments = comments.get(bug_id, [])
        block.already_requested = any(REVIEW_REQUEST_MARKER in text for text in block.comments)
    return pending


def pending_guids(pending: list[PendingBlock]) -> list[str]:
    """Guids covered by the pending entries; non-generated regexes are kept verbatim."""
    guids: list[str] = []
    for block in pending:
        if block.entry.deleted:
            continue
        expanded = expand_guid_string(block.entry.guid_pattern)
        if not expanded:
            _LOG.warning("cannot expand guid pattern %s", block.entry.guid_pattern)
            expanded = [block.entry.guid_pattern]
        guids.extend(expanded)
    return guids


def request_review(
    kinto: KintoBlocklistClient,
    bugzilla: BugzillaClient,
    pending: list[PendingBlock],
    *,
    reviewer: ReviewerSettings,
) -> list[int]:
    """Move staging to review and needinfo the reviewer on the involved bugs."""
    CollectionStateMachine(kinto).request_review()
    if not bugzilla.authenticated or not reviewer.configured:
        return []

    bugs = _bug_ids(block for block in pending if not block.already_requested)
    if bugs:
        bugzilla.update(
            {
                "ids": bugs,
                "comment": {
                    "body": f"{REVIEW_REQUEST_MARKER}. {reviewer.name}, can you review and push?"
                },
                "cc": {"add": [reviewer.email]},
                "flags": [{"name": "needinfo", "status": "?", "requestee": reviewer.email}],
            }
        )
    return bugs


def sign_blocklist(
    kinto: KintoBlocklistClient,
    bugzilla: BugzillaClient,
    pending: list[PendingBlock],
    *,
    remove_security_group: bool = False,
) -> list[int]:
    """Sign the review and resolve the involved bugs as FIXED."""
    CollectionStateMachine(kinto).sign()
    if not bugzilla.authenticated:
        return []

    bugs = _bug_ids(pending)
    if bugs:
        info: dict[str, object] = {
            "ids": bugs,
            "comment": {"body": "Done"},
            "flags": [{"name": "needinfo", "status": "X"}],
            "resolution": "FIXED",
            "status": "RESOLVED",
        }
        if remove_security_group:
            info["groups"] = {"remove": [BLOCKLIST_SECURITY_GROUP]}
        bugzilla.update(info)
    return bugs


def reject_blocklist(kinto: KintoBlocklistClient) -> None:
    CollectionStateMachine(kinto).reject()


def status_message(status: str) -> str:
    """Human readable staging collection status."""
    try:
        return STATUS_MESSAGES[CollectionState(status)]
    except ValueError:
        return f"Unknown: {status}"


def bug_links(bug_ids: list[int]) -> list[str]:
    return [bug_url(bug_id) for bug_id in bug_ids]


def _bug_ids(blocks: Iterable[PendingBlock]) -> list[int]:
    bugs: list[int] = []
    for block in blocks:
        if block.entry.deleted:
            continue
        bug_id = block.entry.bug_id
        if bug_id is None:
            _LOG.warning("skipping entry %s without bug id", block.entry.record_id)
            continue
        if bug_id not in bugs:
            bugs.append(bug_id)
    return bugs


def _staged_at(entry: BlockEntry) -> datetime:
    if entry.last_modified is not None:
        return datetime.fromtimestamp(entry.last_modified / 1000, UTC)
    return entry.created_at or datetime.fromtimestamp(0, UTC)
