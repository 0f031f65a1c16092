"""Bugzilla REST client and blocklist request bug helpers."""

from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import urlencode

from mozblocklist.models import BlocklistBugData, Severity, severity_label
from mozblocklist.remote.http import request_json

_FORM_NAME_PATTERN = re.compile(r"Extension name\|([^|]*)\|")
_FORM_GUIDS_PATTERN = re.compile(r"### Extension (?:GU)?IDs\n```([\s\S]+)\n```")
_FORM_REASON_PATTERN = re.compile(r"### Reason\n([^#]+)")
_LINK_PATTERN = re.compile(r"http(s?)://(?!(?:reviewers\.)?addons\.mozilla\.org)")
_BACKTICK_PATTERN = re.compile(r"^\s*```", re.MULTILINE)


class BugzillaClient:
    """Small subset of the Bugzilla REST API used by the blocklist workflow."""

    def __init__(self, base_url: str, api_key: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or ""

    @property
    def authenticated(self) -> bool:
        return bool(self.api_key)

    def get(self, ids: list[int]) -> dict[str, object]:
        query = urlencode({"id": ",".join(str(bug_id) for bug_id in ids)})
        return self._request("GET", f"/rest/bug?{query}")

    def get_comments(self, ids: list[int]) -> dict[str, object]:
        """Fetch comments for one or more bugs, keyed by bug id under `bugs`."""
        if not ids:
            raise ValueError("at least one bug id is required")
        query = urlencode([("ids", str(bug_id)) for bug_id in ids])
        return self._request("GET", f"/rest/bug/{ids[0]}/comment?{query}")

    def update(self, info: dict[str, object]) -> dict[str, object]:
        ids = info.get("ids")
        if not isinstance(ids, list) or not ids:
            raise ValueError("bug update requires a non-empty ids list")
        return self._request("PUT", f"/rest/bug/{ids[0]}", payload=info)

    def create(self, info: dict[str, object]) -> int:
        """Create a bug and return its id."""
        data = self._request("POST", "/rest/bug", payload=info)
        bug_id = data.get("id")
        if not isinstance(bug_id, int):
            raise ValueError("Bugzilla did not return an id for the created bug")
        return bug_id

    def whoami(self) -> dict[str, object]:
        return self._request("GET", "/rest/whoami")

    def _request(
        self, method: str, path: str, *, payload: dict[str, object] | None = None
    ) -> dict[str, object]:
        headers = {"X-BUGZILLA-API-KEY": self.api_key} if self.api_key else {}
        response = request_json(method, self.base_url + path, headers=headers, payload=payload)
        data = response.payload
        if not isinstance(data, dict):
            raise ValueError(f"unexpected Bugzilla response for {path}")
        if data.get("error"):
            raise ValueError(f"{data.get('code')} - {data.get('message')}")
        return data


def parse_blocklist_bug(bug_id: int, text: str) -> BlocklistBugData | None:
    """Parse the first comment of a blocklist request bug filed with the form.

    Returns None when the text does not follow the form.
    """
    name_match = _FORM_NAME_PATTERN.search(text)
    guids_match = _FORM_GUIDS_PATTERN.search(text)
    reason_match = _FORM_REASON_PATTERN.search(text)
    if name_match is None or guids_match is None or reason_match is None:
        return None

    name = name_match.group(1).strip()
    reason = reason_match.group(1).strip().split("\n")[0]
    guids = [line.strip() for line in guids_match.group(1).strip().split("\n") if line.strip()]
    if not name or not reason or not guids:
        return None
    return BlocklistBugData(id=bug_id, name=name, reason=reason, guids=guids)


def fetch_blocklist_bug(client: BugzillaClient, bug_id: int) -> BlocklistBugData | None:
    data = client.get_comments([bug_id])
    text = _first_comment_text(data, bug_id)
    if text is None:
        return None
    return parse_blocklist_bug(bug_id, text)


def comments_since(client: BugzillaClient, since: dict[int, datetime]) -> dict[int, list[str]]:
    """Return formatted comments posted after the given time, per bug."""
    if not since:
        return {}
    data = client.get_comments(sorted(since))
    bugs = data.get("bugs")
    if not isinstance(bugs, dict):
        raise ValueError("unexpected Bugzilla comment response")

    comments: dict[int, list[str]] = {}
    for raw_id, entry in bugs.items():
        bug_id = int(raw_id)
        comments[bug_id] = []
        if not isinstance(entry, dict) or bug_id not in since:
            continue
        for comment in entry.get("comments") or []:
            if not isinstance(comment, dict):
                continue
            created = datetime.fromisoformat(str(comment.get("creation_time")))
            if created > since[bug_id]:
                comments[bug_id].append(
                    f"[{comment.get('time')}|{comment.get('author')}] - {comment.get('text')}"
                )
    return comments


def compile_description(
    *,
    name: str,
    versions: str,
    reason: str,
    severity: Severity,
    guids: list[str],
    additional_info: str | None = None,
    platform_versions: str = "<all platforms>",
) -> str:
    """Markdown description for a new blocklist request bug."""
    description = _table(
        [
            ["Extension name", name],
            ["Extension versions affected", versions],
            ["Platforms affected", platform_versions],
            ["Block severity", severity_label(severity)],
        ]
    )
    description += "\n### Reason\n" + _unlink(reason)
    description += "\n\n### Extension GUIDs\n```\n" + _strip_backticks("\n".join(guids)) + "\n```"
    if additional_info and additional_info.strip():
        description += "\n\n### Additional Information\n" + _unlink(additional_info.strip())
    return description


def _first_comment_text(data: dict[str, object], bug_id: int) -> str | None:
    bugs = data.get("bugs")
    if not isinstance(bugs, dict):
        return None
    entry = bugs.get(str(bug_id))
    if not isinstance(entry, dict):
        return None
    comments = entry.get("comments")
    if not isinstance(comments, list) or not comments or not isinstance(comments[0], dict):
        return None
    text = comments[0].get("text")
    return text if isinstance(text, str) else None


def _table(rows: list[list[str]]) -> str:
    def escape(cell: str) -> str:
        return cell.replace("\\", "\\\\").replace("|", "\\|")

    body = "|\n|".join("|".join(escape(cell) for cell in row) for row in rows)
    return "| | |\n|-|-|\n|" + body + "|\n"


def _unlink(text: str) -> str:
    return _LINK_PATTERN.sub(lambda match: f"hxxp{match.group(1)}://", text)


def _strip_backticks(text: str) -> str:
    return _BACKTICK_PATTERN.sub("", text).strip()
