"""Reconciliation of Eventbrite events against the local content store."""
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from fetcher.eventbrite_source import EventbriteSource, EventSourceError
from processor.event_mapper import EventMapper
from processor.models import MalformedEventError, RemoteEvent, SyncConfig, SyncResult
from storage.content_store import DynamoDBContentStore, StoreError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventReconciler:
    """
    Mirrors the live Eventbrite events into the local content store.

    A run deletes expired records, fetches the live events, then creates or
    updates one record per remote event keyed on ``eventbrite_id``.
    """

    NOW_FORMAT = '%Y-%m-%d %H:%M:%S'

    def __init__(
        self,
        config: SyncConfig,
        source: EventbriteSource,
        store: DynamoDBContentStore,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the reconciler.

        Args:
            config: Sync settings, fixed for the run
            source: Remote event source
            store: Local content store
            clock: Returns the current time (default: UTC now)
        """
        self.config = config
        self.source = source
        self.store = store
        self.clock = clock
        self.mapper = EventMapper(
            post_type=config.post_type,
            sync_owner=config.sync_owner
        )

    def sync(self) -> SyncResult:
        """
        Run one sync pass.

        Expiry is applied even when the fetch fails afterwards.

        Returns:
            SyncResult; success is False only when the fetch failed
        """
        result = SyncResult(success=False)

        try:
            result.deleted = self.delete_expired(result)
        except Exception as e:
            error_msg = f"Unexpected error deleting expired events: {e}"
            logger.error(error_msg, exc_info=True)
            result.errors.append(error_msg)

        request_url = EventbriteSource.live_events_url(self.config.endpoint)
        try:
            raw_events = self.source.fetch(request_url, self.config.token)
        except EventSourceError as e:
            error_msg = f"Failed to fetch events from Eventbrite: {e}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            return result

        result.fetched = len(raw_events)
        result.success = True

        for raw_event in raw_events:
            try:
                self.reconcile_event(raw_event, result)
            except Exception as e:
                event_id = raw_event.get('id') if isinstance(raw_event, dict) else None
                error_msg = f"Unexpected error syncing event {event_id!r}: {e}"
                logger.error(error_msg, exc_info=True)
                result.errors.append(error_msg)
                continue

        logger.info(
            f"Sync complete: {result.added} added, {result.updated} updated, "
            f"{result.deleted} deleted, {len(result.errors)} errors"
        )
        return result

    def delete_expired(self, result: SyncResult) -> int:
        """
        Permanently delete records whose end time has passed.

        Matching ids are collected before any delete is issued.

        Args:
            result: SyncResult that collects error messages

        Returns:
            Count of deleted records
        """
        now = self.clock().strftime(self.NOW_FORMAT)
        logger.info(f"Deleting events that ended before {now}")

        try:
            expired = self.store.find_by_metadata_range(
                self.config.post_type, 'eventbrite_end', '<', now, 'date'
            )
        except StoreError as e:
            error_msg = f"Failed to query expired events: {e}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            return 0

        expired_ids = [record.local_id for record in expired]
        deleted = 0
        for local_id in expired_ids:
            if self.store.delete(local_id, permanent=True):
                deleted += 1
            else:
                error_msg = f"Failed to delete expired record {local_id}"
                logger.error(error_msg)
                result.errors.append(error_msg)

        logger.info(f"Deleted {deleted} expired events")
        return deleted

    def reconcile_event(self, raw_event: Any, result: SyncResult) -> None:
        """
        Create or update the local record for one remote event.

        Failures are recorded on the result and never raised.

        Args:
            raw_event: Decoded event object from the API
            result: SyncResult to update
        """
        try:
            event = RemoteEvent.from_api(raw_event)
        except MalformedEventError as e:
            event_id = raw_event.get('id') if isinstance(raw_event, dict) else None
            error_msg = f"Skipping malformed event {event_id!r}: {e}"
            logger.warning(error_msg)
            result.errors.append(error_msg)
            return

        try:
            existing = self.store.find_by_metadata(
                self.config.post_type, 'eventbrite_id', event.id
            )
        except StoreError as e:
            error_msg = f"Failed to look up event {event.id}: {e}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            return

        if not existing:
            if self.create_record(event, result):
                result.added += 1
            return

        if len(existing) > 1:
            logger.warning(
                f"Found {len(existing)} records for event {event.id}, "
                f"updating {existing[0].local_id}"
            )
        if self.update_record(existing[0].local_id, event, result):
            result.updated += 1

    def create_record(self, event: RemoteEvent, result: SyncResult) -> bool:
        """
        Insert a record for a new event and stamp its admin edit link.

        Args:
            event: Validated RemoteEvent
            result: SyncResult that collects error messages

        Returns:
            True if the record was inserted
        """
        created_at = self.clock().strftime('%Y-%m-%d %H:%M:%S.%f')
        record = self.mapper.build_record(event, created_at=created_at)

        local_id = self.store.insert(record)
        if not local_id:
            error_msg = f"Failed to insert record for event {event.id}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            return False

        # Not retried later: request_url is only ever written here.
        if not self.store.set_metadata(
            local_id, 'request_url', self.config.edit_link(local_id)
        ):
            error_msg = f"Failed to set request_url on record {local_id}"
            logger.error(error_msg)
            result.errors.append(error_msg)

        logger.info(f"Created record {local_id} for event {event.id}")
        return True

    def update_record(
        self,
        local_id: str,
        event: RemoteEvent,
        result: SyncResult
    ) -> bool:
        """
        Refresh an existing record from the remote event.

        Args:
            local_id: Record to update
            event: Validated RemoteEvent
            result: SyncResult that collects error messages

        Returns:
            True if every field was written
        """
        if not self.store.update(local_id, {'title': event.name}):
            error_msg = f"Failed to update record {local_id} for event {event.id}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            return False

        failed = [
            key
            for key, value in self.mapper.build_update_metadata(event).items()
            if not self.store.set_metadata(local_id, key, value)
        ]
        if failed:
            error_msg = (
                f"Failed to update metadata {', '.join(failed)} "
                f"on record {local_id}"
            )
            logger.error(error_msg)
            result.errors.append(error_msg)
            return False

        logger.debug(f"Updated record {local_id} for event {event.id}")
        return True
