"""Blocklist core: guid codec, membership index, entry builder and state guard."""

from mozblocklist.blocklist.builder import build_entries
from mozblocklist.blocklist.codec import compile_guids, expand_guid_string
from mozblocklist.blocklist.index import BlocklistIndex
from mozblocklist.blocklist.state import CollectionStateMachine, assert_state

__all__ = [
    "BlocklistIndex",
    "CollectionStateMachine",
    "assert_state",
    "build_entries",
    "compile_guids",
    "expand_guid_string",
]
