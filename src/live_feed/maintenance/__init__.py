"""Live feed maintenance (size limit, re-enrichment, archival)."""

__all__ = ["feed_maintainer"]
