"""AWS Lambda handler for Eventbrite Events Sync."""
import json
import logging
import time
from typing import Any, Dict, Optional

from fetcher.eventbrite_source import EventbriteSource
from processor.event_reconciler import EventReconciler
from processor.models import SyncConfig, SyncResult
from storage.content_store import DynamoDBContentStore


# Attributes present on every LogRecord; anything else came in via ``extra``.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def run_sync(
    config: SyncConfig,
    source: Optional[EventbriteSource] = None,
    store: Optional[DynamoDBContentStore] = None
) -> SyncResult:
    """
    Build the components for a run and reconcile once.

    Args:
        config: Sync settings
        source: Event source (default: EventbriteSource)
        store: Content store (default: DynamoDBContentStore on config.table_name)

    Returns:
        SyncResult of the run
    """
    if source is None:
        source = EventbriteSource(timeout=config.timeout)
    if store is None:
        store = DynamoDBContentStore(table_name=config.table_name)

    return EventReconciler(config=config, source=source, store=store).sync()


def sync_events(
    config: Optional[SyncConfig] = None,
    source: Optional[EventbriteSource] = None,
    store: Optional[DynamoDBContentStore] = None
) -> bool:
    """
    Sync Eventbrite events into the content store.

    Args:
        config: Sync settings (default: read from the environment)
        source: Event source override
        store: Content store override

    Returns:
        True if the events were fetched and reconciled
    """
    if config is None:
        config = SyncConfig.from_env()
    return run_sync(config, source=source, store=store).success


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Eventbrite Events Sync.

    Invoked on a schedule by EventBridge or manually through the sync
    endpoint; both payloads are ignored.

    Args:
        event: EventBridge or API Gateway event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    logger = logging.getLogger(__name__)
    try:
        config = SyncConfig.from_env()
    except ValueError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {str(e)}")
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Invalid configuration',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }

    setup_logging(config.log_level)

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'table_name': config.table_name,
            'post_type': config.post_type,
            'timeout_seconds': config.timeout
        }
    )

    try:
        logger.info("Synchronizing Eventbrite events")
        result = run_sync(config)
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    statistics = {
        'events_fetched': result.fetched,
        'events_added': result.added,
        'events_updated': result.updated,
        'events_deleted': result.deleted,
        'duration_seconds': round(duration, 2)
    }

    if not result.success:
        logger.error(
            "Failed to fetch events from Eventbrite",
            extra={'events_deleted': result.deleted, 'errors': result.errors}
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Failed to fetch Eventbrite events',
                'note': 'Expired events were still removed',
                'statistics': statistics,
                'errors': result.errors
            })
        }

    logger.info(
        "Lambda execution completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'events_added': result.added,
            'events_updated': result.updated,
            'events_deleted': result.deleted,
            'errors': result.errors
        }
    )

    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Sync completed successfully',
            'statistics': statistics,
            'errors': result.errors
        })
    }
