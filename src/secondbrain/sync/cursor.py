"""Persisted "last successful sync" watermark."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from secondbrain.errors import ConfigurationError
from secondbrain.state import StateStore, write_state

LOGGER = logging.getLogger(__name__)

CURSOR_FORMAT = "%Y-%m-%d %H:%M:%S"
_ACCEPTED_FORMATS = (CURSOR_FORMAT, "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def parse_timestamp(value: str) -> datetime:
    """Parse a cursor string as UTC. Naive values are taken to be UTC already."""
    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")
    for fmt in _ACCEPTED_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalise to aware UTC; naive values are interpreted as local time."""
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return to_utc(value).strftime(CURSOR_FORMAT)


class SyncCursor:
    """Reads and advances the sync watermark stored in a state file."""

    def __init__(self, store: StateStore, default: str) -> None:
        self.store = store
        self.default = default

    def get(self) -> datetime:
        """Return the stored watermark, or the configured default.

        Raises `ConfigurationError` when the default itself is unusable.
        """
        content = None
        try:
            content = self.store.read()
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning(
                "Could not read %s: %s. Will use default: %s", self.store.location, exc, self.default
            )

        if content is not None and content.strip():
            try:
                return parse_timestamp(content)
            except ValueError:
                LOGGER.warning(
                    "Could not parse date from %s: %r. Will use default: %s",
                    self.store.location,
                    content.strip(),
                    self.default,
                )
        else:
            LOGGER.debug("No stored sync cursor at %s, using default", self.store.location)

        try:
            return parse_timestamp(self.default or "")
        except ValueError as exc:
            raise ConfigurationError(
                f"Could not parse default last-run date: {self.default!r}"
            ) from exc

    def set(self, timestamp: datetime) -> bool:
        """Persist `timestamp` as UTC. Returns False when a transient I/O error
        left the stored cursor unchanged."""
        value = format_timestamp(timestamp)
        written = write_state(self.store, value, what="sync cursor")
        if written:
            LOGGER.info("Updated last sync time in %s: %s (UTC)", self.store.location, value)
        return written
