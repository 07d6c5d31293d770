"""Data models for Eventbrite event sync."""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


DEFAULT_ENDPOINT = 'https://www.eventbriteapi.com/v3/'
DEFAULT_EDIT_LINK_TEMPLATE = '{site_url}/wp-admin/post.php?post={local_id}&action=edit'


class MalformedEventError(ValueError):
    """Raised when a remote event is missing a field or has the wrong type."""


def _nested(payload: Dict[str, Any], outer: str, inner: str) -> Any:
    container = payload.get(outer)
    if not isinstance(container, dict):
        raise MalformedEventError(f"missing object field: {outer}")
    if inner not in container:
        raise MalformedEventError(f"missing field: {outer}.{inner}")
    return container[inner]


def _require_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise MalformedEventError(
            f"field {name} must be a string, got {type(value).__name__}"
        )
    return value


def _optional_str(value: Any, name: str) -> Optional[str]:
    if value is None:
        return None
    return _require_str(value, name)


@dataclass(frozen=True)
class RemoteEvent:
    """Event as returned by the Eventbrite owned_events API."""
    id: str
    name: str
    description_html: str
    url: str
    start_utc: str
    end_utc: str
    created: Optional[str]
    changed: Optional[str]
    capacity: Optional[int]
    status: str
    currency: Optional[str]

    @classmethod
    def from_api(cls, payload: Any) -> 'RemoteEvent':
        """
        Build a RemoteEvent from a decoded API event object.

        Args:
            payload: One element of the response's ``events`` field

        Returns:
            RemoteEvent

        Raises:
            MalformedEventError: If a required field is absent or mistyped
        """
        if not isinstance(payload, dict):
            raise MalformedEventError(
                f"event must be an object, got {type(payload).__name__}"
            )

        event_id = _require_str(payload.get('id'), 'id')
        if not event_id.strip():
            raise MalformedEventError("field id must not be empty")

        description = payload.get('description')
        if description is None:
            description_html = ''
        elif isinstance(description, dict):
            description_html = _optional_str(
                description.get('html'), 'description.html'
            ) or ''
        else:
            raise MalformedEventError("field description must be an object")

        capacity = payload.get('capacity')
        if capacity is not None and (
            isinstance(capacity, bool) or not isinstance(capacity, int)
        ):
            raise MalformedEventError(
                f"field capacity must be an integer, got {type(capacity).__name__}"
            )

        return cls(
            id=event_id,
            name=_require_str(_nested(payload, 'name', 'text'), 'name.text'),
            description_html=description_html,
            url=_require_str(payload.get('url'), 'url'),
            start_utc=_require_str(_nested(payload, 'start', 'utc'), 'start.utc'),
            end_utc=_require_str(_nested(payload, 'end', 'utc'), 'end.utc'),
            created=_optional_str(payload.get('created'), 'created'),
            changed=_optional_str(payload.get('changed'), 'changed'),
            capacity=capacity,
            status=_require_str(payload.get('status'), 'status'),
            currency=_optional_str(payload.get('currency'), 'currency'),
        )


@dataclass
class LocalEventRecord:
    """Record held in the local content store."""
    post_type: str
    title: str
    author: str
    status: str = 'published'
    body: str = ''
    local_id: Optional[str] = None
    created_at: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class SyncResult:
    """Result of sync operation."""
    success: bool
    added: int = 0
    updated: int = 0
    deleted: int = 0
    fetched: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SyncConfig:
    """Static settings for one sync run."""
    token: str
    sync_owner: str
    endpoint: str = DEFAULT_ENDPOINT
    post_type: str = 'eventbrite_events'
    site_url: str = ''
    edit_link_template: str = DEFAULT_EDIT_LINK_TEMPLATE
    table_name: str = 'eventbrite-events'
    timeout: int = 30
    log_level: str = 'INFO'

    def __post_init__(self):
        # The link is formatted after a record is inserted, so a broken
        # template must be rejected before any run starts.
        try:
            self.edit_link('local-id')
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"Invalid edit link template {self.edit_link_template!r}: {e}"
            ) from e

    @classmethod
    def from_env(cls) -> 'SyncConfig':
        """Read configuration from environment variables."""
        return cls(
            token=os.environ.get('EVENTBRITE_TOKEN', ''),
            sync_owner=os.environ.get('SYNC_OWNER', ''),
            endpoint=os.environ.get('EVENTBRITE_ENDPOINT', DEFAULT_ENDPOINT),
            post_type=os.environ.get('POST_TYPE', 'eventbrite_events'),
            site_url=os.environ.get('SITE_URL', '').rstrip('/'),
            edit_link_template=os.environ.get(
                'EDIT_LINK_TEMPLATE', DEFAULT_EDIT_LINK_TEMPLATE
            ),
            table_name=os.environ.get('TABLE_NAME', 'eventbrite-events'),
            timeout=int(os.environ.get('TIMEOUT_SECONDS', '30')),
            log_level=os.environ.get('LOG_LEVEL', 'INFO'),
        )

    def edit_link(self, local_id: str) -> str:
        """Admin edit link for a stored record."""
        return self.edit_link_template.format(
            site_url=self.site_url, local_id=local_id
        )
