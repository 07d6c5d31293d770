"""Mapping of remote Eventbrite events onto local record fields."""
import logging
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from processor.models import LocalEventRecord, RemoteEvent

logger = logging.getLogger(__name__)


# Metadata written only when a record is created.
CREATE_ONLY_KEYS = ('eventbrite_id', 'request_url')


def normalize_timestamp(timestamp: str) -> str:
    """
    Replace the ``T`` separator and ``Z`` marker with spaces.

    The trailing space left by ``Z`` is kept so that stored values compare
    consistently against each other.

    Args:
        timestamp: Remote timestamp (e.g., "2021-05-01T10:00:00Z")

    Returns:
        Normalized timestamp (e.g., "2021-05-01 10:00:00 ")
    """
    return timestamp.replace('T', ' ').replace('Z', ' ')


def strip_tags(html: str) -> str:
    """Return the text content of an HTML fragment."""
    if not html:
        return ''
    return BeautifulSoup(html, 'html.parser').get_text()


def to_meta_value(value: Any) -> str:
    """Render a metadata value the way the store keeps it."""
    if value is None:
        return ''
    return str(value)


class EventMapper:
    """Translates RemoteEvent objects into the local record schema."""

    def __init__(self, post_type: str, sync_owner: str):
        """
        Initialize the mapper.

        Args:
            post_type: Record type name for synced events
            sync_owner: Account identity used as the record author
        """
        self.post_type = post_type
        self.sync_owner = sync_owner

    def build_metadata(self, event: RemoteEvent) -> Dict[str, str]:
        """
        Build the metadata mapping for a remote event.

        Args:
            event: Validated RemoteEvent

        Returns:
            Dictionary of metadata key to stored string value
        """
        metadata = {
            'eventbrite_description': strip_tags(event.description_html),
            'eventbrite_id': event.id,
            'eventbrite_url': event.url,
            'eventbrite_start': normalize_timestamp(event.start_utc),
            'eventbrite_end': normalize_timestamp(event.end_utc),
            'eventbrite_created': event.created,
            'eventbrite_changed': event.changed,
            'eventbrite_capacity': event.capacity,
            'eventbrite_status': event.status,
            'eventbrite_currency': event.currency,
        }
        return {key: to_meta_value(value) for key, value in metadata.items()}

    def build_update_metadata(self, event: RemoteEvent) -> Dict[str, str]:
        """Metadata refreshed when an existing record is reconciled again."""
        return {
            key: value
            for key, value in self.build_metadata(event).items()
            if key not in CREATE_ONLY_KEYS
        }

    def build_record(
        self,
        event: RemoteEvent,
        created_at: Optional[str] = None
    ) -> LocalEventRecord:
        """
        Build a new local record for a previously unseen remote event.

        Args:
            event: Validated RemoteEvent
            created_at: Creation timestamp to stamp on the record

        Returns:
            LocalEventRecord without a local_id
        """
        return LocalEventRecord(
            post_type=self.post_type,
            title=event.name,
            body='',
            author=self.sync_owner,
            status='published',
            created_at=created_at,
            metadata=self.build_metadata(event)
        )
