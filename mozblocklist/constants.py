"""Shared constants for blocklist hosts, limits and markers."""

from __future__ import annotations

COMMENT_CHAR = "#"

# Kinto stores the guid field with a length cap; generated regex blocks stay below it.
MAX_BLOCK_LENGTH = 4250

PUBLIC_HOST = "firefox.settings.services.mozilla.com"
PROD_HOST = "settings-writer.prod.mozaws.net"
STAGE_HOST = "settings-writer.stage.mozaws.net"

BLOCKLIST_BUCKET = "blocklists"
PREVIEW_BUCKET = "blocklists-preview"
STAGING_BUCKET = "staging"
ADDONS_COLLECTION = "addons"

BUGZILLA_URL = "https://bugzilla.mozilla.org"
BUG_URL_PREFIX = f"{BUGZILLA_URL}/show_bug.cgi?id="
BLOCKLIST_SECURITY_GROUP = "blocklist-requests"
REVIEW_REQUEST_MARKER = "The block has been staged"


def kinto_url(host: str) -> str:
    """Return the Kinto v1 API root for a host name."""
    return f"https://{host}/v1"
