"""Kinto settings service client for the add-on blocklist collections."""

from __future__ import annotations

import json
import logging
from urllib.parse import urljoin

from mozblocklist.config import RemoteEndpoints
from mozblocklist.constants import (
    ADDONS_COLLECTION,
    BLOCKLIST_BUCKET,
    PREVIEW_BUCKET,
    STAGING_BUCKET,
)
from mozblocklist.models import BlockEntry, BlockEntryCreationRequest, CollectionState
from mozblocklist.remote.http import request_json

_LOG = logging.getLogger(__name__)

_COMPARED_FIELDS = ("guid", "enabled", "versionRange", "details", "prefs")
_MAX_PAGES = 1000


class KintoBlocklistClient:
    """Reads the published blocklist and manages the staging collection.

    Reads of the published collection go to the public reader; everything that
    touches staging goes to the writer and needs an Authorization header.
    """

    def __init__(self, endpoints: RemoteEndpoints, *, authorization: str | None = None) -> None:
        self.endpoints = endpoints
        self.authorization = authorization

    @property
    def authorized(self) -> bool:
        return bool(self.authorization)

    def load_blocklist(self) -> list[BlockEntry]:
        """Fetch the published blocklist snapshot."""
        records = self.list_records(BLOCKLIST_BUCKET, ADDONS_COLLECTION)
        return [BlockEntry.from_record(record) for record in records]

    def list_records(
        self, bucket: str, collection: str, *, writer: bool = False
    ) -> list[dict[str, object]]:
        """List all records of a collection, following pagination."""
        root = self.endpoints.writer if writer else self.endpoints.reader
        url: str | None = self._collection_url(root, bucket, collection) + "/records"
        records: list[dict[str, object]] = []
        pages = 0
        while url is not None:
            pages += 1
            if pages > _MAX_PAGES:
                raise ValueError(f"too many result pages listing {bucket}/{collection}")
            response = request_json("GET", url, headers=self._headers(writer=writer))
            records.extend(_records_from_payload(response.payload, url=url))
            next_page = response.headers.get("next-page")
            url = urljoin(url, next_page) if next_page else None
        _LOG.debug("loaded %d records from %s/%s", len(records), bucket, collection)
        return records

    def get_collection_status(self) -> str:
        """Read the review status label of the staging collection."""
        url = self._collection_url(self.endpoints.writer, STAGING_BUCKET, ADDONS_COLLECTION)
        response = request_json("GET", url, headers=self._headers(writer=True))
        data = _data_object(response.payload, url=url)
        status = data.get("status")
        if not isinstance(status, str) or not status:
            raise ValueError(f"staging collection at {url} has no status")
        return status

    def set_collection_status(self, status: CollectionState) -> None:
        url = self._collection_url(self.endpoints.writer, STAGING_BUCKET, ADDONS_COLLECTION)
        request_json(
            "PATCH",
            url,
            headers=self._headers(writer=True),
            payload={"data": {"status": str(status)}},
        )

    def create_record(self, request: BlockEntryCreationRequest) -> BlockEntry:
        """Create one blocklist record in the staging collection."""
        url = (
            self._collection_url(self.endpoints.writer, STAGING_BUCKET, ADDONS_COLLECTION)
            + "/records"
        )
        headers = self._headers(writer=True)
        headers["If-None-Match"] = "*"
        response = request_json("POST", url, headers=headers, payload={"data": request.to_record()})
        return BlockEntry.from_record(_data_object(response.payload, url=url))

    def compare_collection(self, compare_with: str = PREVIEW_BUCKET) -> list[BlockEntry]:
        """Return staging entries that differ from the `compare_with` bucket.

        Records missing from staging but present in the compared bucket are
        returned with `deleted` set.
        """
        staged = self.list_records(STAGING_BUCKET, ADDONS_COLLECTION, writer=True)
        if compare_with == STAGING_BUCKET:
            return [BlockEntry.from_record(record) for record in staged]

        compared = self.list_records(compare_with, ADDONS_COLLECTION, writer=True)
        compared_by_id = {str(record.get("id")): record for record in compared}
        staged_ids: set[str] = set()

        pending: list[BlockEntry] = []
        for record in staged:
            record_id = str(record.get("id"))
            staged_ids.add(record_id)
            other = compared_by_id.get(record_id)
            if other is None or _record_fingerprint(other) != _record_fingerprint(record):
                pending.append(BlockEntry.from_record(record))

        for record_id, record in compared_by_id.items():
            if record_id not in staged_ids:
                pending.append(BlockEntry.from_record({**record, "deleted": True}))
        return pending

    def record_admin_url(self, record_id: str) -> str:
        return (
            f"{self.endpoints.writer}/admin/#/buckets/{STAGING_BUCKET}/collections/"
            f"{ADDONS_COLLECTION}/records/{record_id}/attributes"
        )

    def _headers(self, *, writer: bool) -> dict[str, str]:
        if not writer:
            return {}
        if not self.authorization:
            raise ValueError("Kinto writer access requires an authorization header")
        return {"Authorization": self.authorization}

    @staticmethod
    def _collection_url(root: str, bucket: str, collection: str) -> str:
        return f"{root.rstrip('/')}/buckets/{bucket}/collections/{collection}"


def _data_object(payload: object, *, url: str) -> dict[str, object]:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise ValueError(f"unexpected Kinto response from {url}")
    return payload["data"]


def _records_from_payload(payload: object, *, url: str) -> list[dict[str, object]]:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise ValueError(f"unexpected Kinto record listing from {url}")
    return [record for record in payload["data"] if isinstance(record, dict)]


def _record_fingerprint(record: dict[str, object]) -> tuple[str, ...]:
    return tuple(json.dumps(record.get(name), sort_keys=True) for name in _COMPARED_FIELDS)
