"""Staging collection state guard and review transitions."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from mozblocklist.errors import InvalidStateError
from mozblocklist.models import CollectionState

_LOG = logging.getLogger(__name__)

CREATE_STATES = frozenset({CollectionState.SIGNED})
CONTINUE_STATES = frozenset(
    {CollectionState.SIGNED, CollectionState.WORK_IN_PROGRESS, CollectionState.TO_REVIEW}
)


class CollectionStore(Protocol):
    """Remote holder of the staging collection status label."""

    def get_collection_status(self) -> str: ...

    def set_collection_status(self, status: CollectionState) -> None: ...


def assert_state(current: str, allowed: Iterable[str]) -> None:
    """Raise InvalidStateError unless `current` is one of the `allowed` states."""
    allowed_states = {str(state) for state in allowed}
    if str(current) not in allowed_states:
        raise InvalidStateError(current, allowed_states)


def creation_states(*, can_continue: bool) -> frozenset[CollectionState]:
    """States from which new entries may be staged."""
    return CONTINUE_STATES if can_continue else CREATE_STATES


class CollectionStateMachine:
    """Guard for mutating operations on the staging collection.

    The status is read from the store right before every check; other
    operators may move the collection between two invocations.
    """

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def current_state(self) -> str:
        return self.store.get_collection_status()

    def ensure_state(self, allowed: Iterable[str]) -> str:
        current = self.current_state()
        assert_state(current, allowed)
        return current

    def request_review(self) -> None:
        """Move work in progress to review."""
        self._transition({CollectionState.WORK_IN_PROGRESS}, CollectionState.TO_REVIEW)

    def sign(self) -> None:
        """Approve a review, asking the signer to publish it."""
        self._transition({CollectionState.TO_REVIEW}, CollectionState.TO_SIGN)

    def reject(self) -> None:
        """Send a review back to work in progress."""
        self._transition({CollectionState.TO_REVIEW}, CollectionState.WORK_IN_PROGRESS)

    def _transition(self, allowed: set[CollectionState], target: CollectionState) -> None:
        current = self.ensure_state(allowed)
        _LOG.info("moving staging collection from %s to %s", current, target)
        self.store.set_collection_status(target)
