"""Persistent cache of resolution outcomes."""

import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .models import CacheEntry, CacheKey

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"
FIELD_COUNT = 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_expiry(expiry: datetime) -> str:
    """Format an expiry as RFC 3339 in UTC."""
    return _as_utc(expiry).isoformat().replace("+00:00", "Z")


def parse_expiry(text: str) -> datetime:
    """Parse an RFC 3339 timestamp. Raises ValueError when malformed."""
    value = text.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp without offset: {text}")
    return parsed.astimezone(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class ResolutionCache:
    """Resolution outcomes keyed on (package, ecosystem, current version, constraint).

    The cache is loaded once at startup and written once at shutdown. An
    instance built without a path never touches the filesystem.
    """

    def __init__(self, path: Path | None = None, clock=utcnow):
        """Initialize the cache.

        Args:
            path: File the cache is loaded from and persisted to
            clock: Callable returning the current aware datetime
        """
        self.path = path
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def new_entry(
        self,
        key: CacheKey,
        absolute_latest: str,
        constraint_latest: str,
        ttl: timedelta,
    ) -> CacheEntry:
        return CacheEntry(
            package_name=key.package_name,
            ecosystem=key.ecosystem,
            current_version=key.current_version,
            constraint=key.constraint,
            absolute_latest=absolute_latest,
            constraint_latest=constraint_latest,
            expiry=self._clock() + ttl,
        )

    def get(self, key: CacheKey) -> CacheEntry | None:
        """Return the entry for a key, or None when absent or expired.

        Expired entries are evicted as a side effect of the miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry

    def set(self, entry: CacheEntry) -> None:
        entry.expiry = _as_utc(entry.expiry)
        with self._lock:
            self._entries[entry.key] = entry

    def prune_expired(self) -> int:
        """Remove all expired entries and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def load(self) -> None:
        """Replace the in-memory entries with the ones stored on disk.

        A missing or unreadable file is an empty cache; malformed records are
        skipped.
        """
        if self.path is None:
            return

        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            content = ""
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read cache file %s: %s", self.path, e)
            content = ""

        entries: dict[CacheKey, CacheEntry] = {}
        for line_number, line in enumerate(content.splitlines(), start=1):
            entry = self._parse_record(line)
            if entry is None:
                if line.strip():
                    logger.warning("Skipping malformed cache record on line %d", line_number)
                continue
            entries[entry.key] = entry

        with self._lock:
            self._entries = entries
        logger.debug("Loaded %d cache entries from %s", len(entries), self.path)

    def persist(self) -> None:
        """Prune expired entries and replace the cache file with the rest."""
        if self.path is None:
            return

        self.prune_expired()
        with self._lock:
            records = [
                record
                for record in (self._format_record(entry) for entry in self._entries.values())
                if record is not None
            ]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                handle.writelines(f"{record}\n" for record in records)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d cache entries to %s", len(records), self.path)

    @staticmethod
    def _parse_record(line: str) -> CacheEntry | None:
        parts = line.strip().split(FIELD_SEPARATOR)
        if len(parts) != FIELD_COUNT:
            return None
        try:
            expiry = parse_expiry(parts[6])
        except ValueError:
            return None
        return CacheEntry(
            package_name=parts[0],
            ecosystem=parts[1],
            current_version=parts[2],
            constraint=parts[3],
            absolute_latest=parts[4],
            constraint_latest=parts[5],
            expiry=expiry,
        )

    @staticmethod
    def _format_record(entry: CacheEntry) -> str | None:
        fields = [
            entry.package_name,
            entry.ecosystem,
            entry.current_version,
            entry.constraint,
            entry.absolute_latest,
            entry.constraint_latest,
        ]
        if any(FIELD_SEPARATOR in field or "\n" in field or "\r" in field for field in fields):
            logger.debug("Not persisting cache entry for %s: unsupported characters", entry.package_name)
            return None
        return FIELD_SEPARATOR.join([*fields, format_expiry(entry.expiry)])
