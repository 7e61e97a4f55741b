"""AWS Lambda handler for the Fayetteville events sync."""
import json
import logging
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from processor.aggregator import EventAggregator
from processor.models import SyncReport
from settings import Settings
from sources.registry import UnknownSourceError, build_adapters
from storage.dynamodb_manager import DynamoDBManager
from storage.reconciler import Reconciler

# Attributes every LogRecord has; anything else came in through `extra=`
_STANDARD_ATTRS = set(logging.LogRecord('', 0, '', 0, '', (), None).__dict__) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in log_data:
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

    # Create new handler with JSON formatter
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    # Set log level
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def create_store(settings: Settings) -> DynamoDBManager:
    return DynamoDBManager(
        table_name=settings.events_table_name,
        venues_table_name=settings.venues_table_name,
        sources_table_name=settings.sources_table_name,
        region_name=settings.aws_region,
    )


def run_sync(
    settings: Settings,
    store: Optional[DynamoDBManager] = None,
    source: Optional[str] = None,
    dry_run: bool = False,
    cleanup: bool = False,
    cleanup_only: bool = False,
    enhanced: Optional[bool] = None,
    now: Optional[datetime] = None
) -> SyncReport:
    """
    Aggregate, reconcile and clean up.

    Without a store only aggregation runs (preview). With a store the
    events are synced, and cleanup runs when requested.

    Args:
        settings: Runtime configuration
        store: Event store, or None for a preview
        source: Restrict to one adapter
        dry_run: Compute changes without writing
        cleanup: Run lifecycle cleanup after syncing
        cleanup_only: Skip fetching and only run cleanup
        enhanced: Override settings.enhanced
        now: Reference time

    Returns:
        SyncReport with whichever stages ran

    Raises:
        UnknownSourceError: If source names no adapter
    """
    logger = logging.getLogger(__name__)
    report = SyncReport()
    reconciler = None
    if store is not None:
        reconciler = Reconciler(
            store,
            stale_hours=settings.stale_hours,
            archive_grace_hours=settings.archive_grace_hours,
        )

    if not cleanup_only:
        adapters = build_adapters(
            source=source,
            timeout=settings.timeout_seconds,
            enhanced=settings.enhanced if enhanced is None else enhanced,
        )
        report.aggregation = EventAggregator(adapters).collect(now=now)

        if reconciler is not None:
            logger.info("Synchronizing events with DynamoDB")
            report.sync = reconciler.sync(report.aggregation.events, dry_run=dry_run, now=now)

    if reconciler is not None and (cleanup or cleanup_only):
        logger.info("Running lifecycle cleanup")
        report.cleanup = reconciler.cleanup(dry_run=dry_run, now=now)

    return report


def summarize(report: SyncReport) -> Dict[str, Any]:
    """Statistics for a report, without the event list."""
    summary: Dict[str, Any] = {}
    if report.aggregation is not None:
        summary['aggregation'] = {
            'total_fetched': report.aggregation.total_fetched,
            'unique_events': len(report.aggregation.events),
            'source_counts': report.aggregation.source_counts,
            'failed_sources': report.aggregation.failed_sources,
        }
    if report.sync is not None:
        summary['sync'] = asdict(report.sync)
    if report.cleanup is not None:
        summary['cleanup'] = asdict(report.cleanup)
    return summary


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the scheduled events sync.

    The event payload may set 'source', 'dry_run', 'cleanup',
    'cleanup_only' and 'enhanced'; cleanup runs by default.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    settings = Settings.from_env()
    event = event or {}

    # Initialize logging
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    # Log Lambda execution start
    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'table_name': settings.events_table_name,
            'source': event.get('source') or 'all',
            'timeout_seconds': settings.timeout_seconds
        }
    )

    try:
        store = create_store(settings)
        report = run_sync(
            settings,
            store=store,
            source=event.get('source'),
            dry_run=bool(event.get('dry_run', False)),
            cleanup=bool(event.get('cleanup', True)),
            cleanup_only=bool(event.get('cleanup_only', False)),
            enhanced=event.get('enhanced'),
        )

    except UnknownSourceError as e:
        logger.error(f"Invalid source requested: {e}", extra={'error_type': type(e).__name__})
        duration = time.time() - start_time
        return {
            'statusCode': 400,
            'body': json.dumps({
                'message': 'Unknown source',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    except Exception as e:
        # Calculate execution duration
        duration = time.time() - start_time

        # Log error
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        # Return error response
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    # Calculate execution duration
    duration = time.time() - start_time
    statistics = summarize(report)
    statistics['duration_seconds'] = round(duration, 2)

    errors = []
    if report.sync is not None:
        errors.extend(report.sync.error_messages)
    if report.cleanup is not None:
        errors.extend(report.cleanup.error_messages)

    # Log execution summary
    logger.info(
        "Lambda execution completed successfully",
        extra={'statistics': statistics, 'errors': errors}
    )

    # Return success response
    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Sync completed successfully',
            'statistics': statistics,
            'errors': errors
        })
    }
