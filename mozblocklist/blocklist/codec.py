"""Guid list <-> alternation regex block encoding."""

from __future__ import annotations

import re

from mozblocklist.constants import MAX_BLOCK_LENGTH

_ESCAPE_PATTERN = re.compile(r"[\\$^*+.?(){}|\[\]]")
_BLOCK_PREFIX = "/^(("
_BLOCK_SUFFIX = "))$/"
_SEPARATOR = ")|("
_WRAPPER_LENGTH = len(_BLOCK_PREFIX) + len(_BLOCK_SUFFIX)

_ID = r"(?:[A-Za-z0-9_\-{}@.]|\\[.{}])+"
_ALTERNATION = rf"\({_ID}\)(?:\|\({_ID}\))*"
_EXPANDABLE_PATTERN = re.compile(rf"/\^(?:\({_ALTERNATION}\)|{_ALTERNATION})\$/")


def regex_escape(text: str) -> str:
    """Escape regex metacharacters the way blocklist regex blocks expect."""
    return _ESCAPE_PATTERN.sub(lambda match: "\\" + match.group(0), text)


def compile_guids(guids: list[str], *, max_length: int = MAX_BLOCK_LENGTH) -> list[str]:
    """Compile guids into one literal guid or several bounded regex blocks.

    A single guid is returned verbatim. Multiple guids are escaped and packed
    greedily, in order, into `/^((a)|(b))$/` blocks no longer than `max_length`;
    a guid that alone exceeds the limit still gets a block of its own.
    """
    if not guids:
        raise ValueError("at least one guid is required to build a guid string")
    for guid in guids:
        if "\n" in guid:
            raise ValueError(f"guid contains a line break: {guid!r}")

    if len(guids) == 1:
        return [guids[0]]

    blocks: list[list[str]] = []
    current: list[str] = []
    current_length = _WRAPPER_LENGTH
    for guid in guids:
        escaped = regex_escape(guid)
        added_length = len(escaped) + (len(_SEPARATOR) if current else 0)
        if current and current_length + added_length > max_length:
            blocks.append(current)
            current = []
            current_length = _WRAPPER_LENGTH
            added_length = len(escaped)
        current.append(escaped)
        current_length += added_length
    blocks.append(current)

    return [_BLOCK_PREFIX + _SEPARATOR.join(block) + _BLOCK_SUFFIX for block in blocks]


def expand_guid_string(block: str) -> list[str]:
    """Return the guids of a literal guid or a generated alternation block.

    Hand written regexes that do not follow the generated shape are not
    reversible and yield an empty list.
    """
    if not block.startswith("/"):
        return [block]
    if _EXPANDABLE_PATTERN.fullmatch(block) is None:
        return []

    body = block[len("/^") : -len("$/")]
    if body.startswith("((") and body.endswith("))"):
        body = body[1:-1]
    body = body[1:-1].replace("\\", "")

    guids: list[str] = []
    seen: set[str] = set()
    for guid in body.split(_SEPARATOR):
        if guid in seen:
            continue
        seen.add(guid)
        guids.append(guid)
    return guids


def is_guid_regex(pattern: str) -> bool:
    """Return True for guid patterns stored as `/.../` regexes."""
    return pattern.startswith("/")


def strip_regex_delimiters(pattern: str) -> str:
    """Return the regex source inside the `/.../` delimiters."""
    return pattern[1:-1]
