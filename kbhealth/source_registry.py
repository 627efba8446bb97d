"""
Source Registry - per-source configuration and live sync status.

Status is an explicit state machine:

    idle | success | error | cancelled --begin_sync--> syncing
    syncing --complete_sync(outcome)--> success | error | cancelled

begin_sync and complete_sync are linearizable per source id: each entry has
its own lock, and the counters live inside the guarded entry. Every
transition is written through to the SourceStore before the lock is released.
"""

import logging
import threading
import uuid
from dataclasses import replace

from .exceptions import AlreadySyncing, InvalidTicket, NotFound
from .interfaces import SourceStore
from .models import DataSource, SourceStatus, SyncOutcome, SyncTicket, utcnow

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Holds sources and gates sync runs to at most one per source."""

    def __init__(self, store: SourceStore):
        self._store = store
        self._registry_lock = threading.Lock()
        self._entries: dict[str, DataSource] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._tickets: dict[str, str] = {}
        self._load()

    def _load(self):
        """Load persisted sources, recovering runs interrupted by a restart."""
        for source in self._store.load_all():
            if source.status == SourceStatus.SYNCING:
                logger.warning(f"Source {source.id} was syncing at shutdown; marking as error")
                source.status = SourceStatus.ERROR
                source.error_count += 1
                source.last_error = "interrupted"
                self._store.save(source)
            self._entries[source.id] = source
            self._locks[source.id] = threading.Lock()

    def _lock_for(self, source_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(source_id)
        if lock is None:
            raise NotFound(f"Source not found: {source_id}")
        return lock

    def _entry(self, source_id: str) -> DataSource:
        """Entry for a source; call with its lock held. It may have been removed while waiting."""
        entry = self._entries.get(source_id)
        if entry is None:
            raise NotFound(f"Source not found: {source_id}")
        return entry

    # ─────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────

    def register(self, source: DataSource) -> DataSource:
        """Add a new source. Raises ValueError if the id is taken."""
        with self._registry_lock:
            if source.id in self._entries:
                raise ValueError(f"Source already registered: {source.id}")
            entry = replace(source, status=SourceStatus.IDLE)
            self._store.save(entry)
            self._entries[entry.id] = entry
            self._locks[entry.id] = threading.Lock()
        logger.info(f"Registered source {entry.id} ({entry.platform.value}) {entry.base_url}")
        return replace(entry)

    def remove(self, source_id: str) -> None:
        """Remove a source. A syncing source cannot be removed."""
        with self._lock_for(source_id):
            entry = self._entry(source_id)
            if entry.status == SourceStatus.SYNCING:
                raise AlreadySyncing(source_id)
            with self._registry_lock:
                self._store.delete(source_id)
                del self._entries[source_id]
                del self._locks[source_id]

    def get(self, source_id: str) -> DataSource:
        """Snapshot of one source. Raises NotFound."""
        with self._lock_for(source_id):
            return replace(self._entry(source_id))

    def list(self) -> list[DataSource]:
        """Snapshots of all sources in registration order."""
        with self._registry_lock:
            ids = list(self._entries)
        sources = []
        for source_id in ids:
            try:
                sources.append(self.get(source_id))
            except NotFound:
                continue
        return sources

    def set_enabled(self, source_id: str, enabled: bool) -> DataSource:
        """Enable or disable a source. Independent of its sync status."""
        with self._lock_for(source_id):
            entry = self._entry(source_id)
            entry.enabled = enabled
            self._store.save(entry)
            return replace(entry)

    # ─────────────────────────────────────────────────────────────
    # Sync transitions
    # ─────────────────────────────────────────────────────────────

    def begin_sync(self, source_id: str) -> SyncTicket:
        """
        Transition a source to syncing and hand out the single-use ticket.

        Disabled sources may still be synced by explicit id.

        Raises:
            NotFound: Unknown source id
            AlreadySyncing: Another run owns the source
        """
        with self._lock_for(source_id):
            entry = self._entry(source_id)
            if entry.status == SourceStatus.SYNCING:
                raise AlreadySyncing(source_id)
            ticket = SyncTicket(source_id=source_id, token=uuid.uuid4().hex, started_at=utcnow())
            entry.status = SourceStatus.SYNCING
            self._store.save(entry)
            self._tickets[source_id] = ticket.token
            return ticket

    def complete_sync(
        self,
        ticket: SyncTicket,
        outcome: SyncOutcome,
        articles_count: int | None = None,
        error: str | None = None,
    ) -> DataSource:
        """
        Apply a run's outcome.

        - success: last_sync_at=now, sync_count+1, articles_count updated
        - error: error_count+1, last_sync_at and articles_count retained
        - cancelled: counters and last_sync_at retained, articles_count updated
          (upserts made before cancellation are kept)

        Raises:
            InvalidTicket: The ticket was already used or does not own the source
        """
        with self._lock_for(ticket.source_id):
            if self._tickets.get(ticket.source_id) != ticket.token:
                raise InvalidTicket(f"Ticket does not own source {ticket.source_id}")
            del self._tickets[ticket.source_id]

            entry = self._entry(ticket.source_id)
            outcome = SyncOutcome(outcome)
            if outcome == SyncOutcome.SUCCESS:
                entry.status = SourceStatus.SUCCESS
                entry.last_sync_at = utcnow()
                entry.sync_count += 1
                entry.last_error = None
                if articles_count is not None:
                    entry.articles_count = articles_count
            elif outcome == SyncOutcome.ERROR:
                entry.status = SourceStatus.ERROR
                entry.error_count += 1
                entry.last_error = error or "sync failed"
            else:
                entry.status = SourceStatus.CANCELLED
                if articles_count is not None:
                    entry.articles_count = articles_count

            self._store.save(entry)
            logger.info(
                f"Source {entry.id} sync {outcome.value}: "
                f"syncs={entry.sync_count} errors={entry.error_count} articles={entry.articles_count}"
            )
            return replace(entry)
