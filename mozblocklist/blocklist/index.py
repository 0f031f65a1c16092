"""Exact and regex blocklist membership index."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from mozblocklist.blocklist.codec import strip_regex_delimiters
from mozblocklist.constants import COMMENT_CHAR
from mozblocklist.errors import MalformedPatternError
from mozblocklist.models import BlockEntry, GuidClassificationResult, MatchWarning

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegexBlock:
    pattern: re.Pattern[str]
    entry: BlockEntry


@dataclass(frozen=True, slots=True)
class BlocklistIndex:
    """Blocklist entries split into exact guids and compiled regex blocks."""

    exact_guids: dict[str, BlockEntry] = field(default_factory=dict)
    regex_entries: tuple[RegexBlock, ...] = ()
    invalid_entries: tuple[MalformedPatternError, ...] = ()

    @classmethod
    def build(cls, entries: Iterable[BlockEntry]) -> BlocklistIndex:
        """Build an index from a snapshot; malformed regexes are recorded, not fatal."""
        exact_guids: dict[str, BlockEntry] = {}
        regex_entries: list[RegexBlock] = []
        invalid_entries: list[MalformedPatternError] = []

        for entry in entries:
            if entry.deleted or not entry.guid_pattern:
                continue
            if not entry.is_regex:
                exact_guids[entry.guid_pattern] = entry
                continue
            try:
                pattern = re.compile(strip_regex_delimiters(entry.guid_pattern))
            except re.error as exc:
                error = MalformedPatternError(entry, str(exc))
                _LOG.warning("skipping blocklist entry %s: %s", entry.record_id or "-", error)
                invalid_entries.append(error)
                continue
            regex_entries.append(RegexBlock(pattern=pattern, entry=entry))

        return cls(
            exact_guids=exact_guids,
            regex_entries=tuple(regex_entries),
            invalid_entries=tuple(invalid_entries),
        )

    def match_regexes(self, guid: str) -> list[BlockEntry]:
        """Return every regex entry matching the guid, in index order."""
        return [block.entry for block in self.regex_entries if block.pattern.search(guid)]

    def classify(self, candidates: Iterable[str]) -> GuidClassificationResult:
        """Split candidate lines into already blocked guids and new guids.

        Lines are trimmed; blank lines and `#` comments are skipped. An exact
        guid match wins over regex matches. When several regex blocks match, the
        first one in index order wins and the anomaly is reported as a warning.
        """
        result = GuidClassificationResult()
        seen_new: set[str] = set()

        for line in candidates:
            guid = line.strip()
            if not guid or guid.startswith(COMMENT_CHAR):
                continue

            regex_matches = self.match_regexes(guid)
            exact = self.exact_guids.get(guid)
            if exact is not None:
                result.existing[guid] = exact
                if regex_matches:
                    self._warn(result, MatchWarning(guid, "overlap", (exact, *regex_matches)))
                continue

            if regex_matches:
                result.existing[guid] = regex_matches[0]
                if len(regex_matches) > 1:
                    self._warn(result, MatchWarning(guid, "ambiguous", tuple(regex_matches)))
                continue

            if guid not in seen_new:
                seen_new.add(guid)
                result.new_guids.append(guid)

        return result

    @staticmethod
    def _warn(result: GuidClassificationResult, warning: MatchWarning) -> None:
        _LOG.warning("%s", warning.message)
        result.warnings.append(warning)
