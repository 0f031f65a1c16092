"""Mozilla add-on blocklist curation assistant."""

__version__ = "0.4.0"
