"""DynamoDB manager for event storage operations."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from processor.models import (
    MANUAL_SOURCE,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    EventKey,
    TouchRequest,
    UpsertRequest,
)

logger = logging.getLogger(__name__)

KEY_ATTRIBUTE = 'event_key'


def to_iso(value: datetime) -> str:
    """UTC ISO timestamp; all stored instants share this format so they compare as strings."""
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


def _key_from_item(item: Dict[str, Any]) -> EventKey:
    return EventKey(source_id=item['source_id'], external_id=item['external_id'])


class DynamoDBManager:
    """
    Manager for DynamoDB operations.

    Event rows are keyed by their natural key "<source>#<external id>".
    Venue directory and per-source sync bookkeeping live in their own tables.
    """

    def __init__(
        self,
        table_name: str,
        venues_table_name: Optional[str] = None,
        sources_table_name: Optional[str] = None,
        region_name: Optional[str] = None
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            table_name: Name of the events table
            venues_table_name: Name of the venue directory table
            sources_table_name: Name of the per-source sync table
            region_name: AWS region (default: from the environment)
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.venues_table = self.dynamodb.Table(venues_table_name) if venues_table_name else None
        self.sources_table = self.dynamodb.Table(sources_table_name) if sources_table_name else None
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def _scan(self, table, **kwargs) -> List[Dict[str, Any]]:
        """Scan a table, following pagination."""
        response = table.scan(**kwargs)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = table.scan(ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs)
            items.extend(response.get('Items', []))

        return items

    def get_content_hashes(self) -> Dict[str, str]:
        """
        Load the change-detection snapshot.

        Returns:
            Mapping of event id to content hash for every non-cancelled row

        Raises:
            ClientError: If the scan fails
        """
        logger.info("Scanning DynamoDB table for content hashes")
        try:
            items = self._scan(
                self.table,
                FilterExpression=Attr('status').ne(STATUS_CANCELLED),
                ProjectionExpression='#id, content_hash',
                ExpressionAttributeNames={'#id': 'id'},
            )
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        hashes = {item['id']: item.get('content_hash', '') for item in items if 'id' in item}
        logger.info(f"Retrieved {len(hashes)} content hashes from DynamoDB")
        return hashes

    def get_venues(self) -> List[Dict[str, Any]]:
        """
        Load the venue directory.

        Returns:
            Rows with 'id', 'name' and optional 'aliases'; empty when no
            venues table is configured
        """
        if self.venues_table is None:
            return []
        try:
            venues = self._scan(self.venues_table)
        except ClientError as e:
            logger.error(f"Error scanning venues table: {e}")
            raise
        logger.info(f"Retrieved {len(venues)} venues from DynamoDB")
        return venues

    def upsert_event(self, request: UpsertRequest) -> None:
        """
        Insert or update one event row by natural key.

        Fields set to None are removed from an existing row. Status and
        created_at are only written when the row does not have them yet,
        so re-upserting never changes an existing row's status.

        Args:
            request: Row fields and natural key

        Raises:
            ClientError: If the write fails
        """
        names = {'#status': 'status', '#created_at': 'created_at'}
        values: Dict[str, Any] = {':confirmed': STATUS_CONFIRMED}
        set_clauses = []
        remove_clauses = []

        for index, (field, value) in enumerate(sorted(request.fields.items())):
            if field in ('status', 'created_at', KEY_ATTRIBUTE):
                continue
            placeholder = f"#f{index}"
            names[placeholder] = field
            if value is None:
                remove_clauses.append(placeholder)
            else:
                values[f":v{index}"] = value
                set_clauses.append(f"{placeholder} = :v{index}")

        values[':created_at'] = request.fields.get('updated_at') or to_iso(datetime.now(timezone.utc))
        set_clauses.append('#status = if_not_exists(#status, :confirmed)')
        set_clauses.append('#created_at = if_not_exists(#created_at, :created_at)')

        expression = 'SET ' + ', '.join(set_clauses)
        if remove_clauses:
            expression += ' REMOVE ' + ', '.join(remove_clauses)

        self.table.update_item(
            Key={KEY_ATTRIBUTE: request.key.value},
            UpdateExpression=expression,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )

    def touch_event(self, request: TouchRequest) -> None:
        """
        Refresh last_seen_at on an existing row.

        Raises:
            ClientError: If the row is missing or the write fails
        """
        self.table.update_item(
            Key={KEY_ATTRIBUTE: request.key.value},
            UpdateExpression='SET last_seen_at = :seen',
            ConditionExpression=Attr(KEY_ATTRIBUTE).exists(),
            ExpressionAttributeValues={':seen': request.last_seen_at},
        )

    def find_past_events(self, cutoff: datetime) -> List[EventKey]:
        """
        Confirmed events that ended before the cutoff.

        Args:
            cutoff: Events ending before this instant qualify

        Returns:
            Natural keys of matching rows
        """
        items = self._scan(
            self.table,
            FilterExpression=(
                Attr('status').eq(STATUS_CONFIRMED) & Attr('end_at').lt(to_iso(cutoff))
            ),
            ProjectionExpression='source_id, external_id',
        )
        return [_key_from_item(item) for item in items]

    def find_stale_events(self, cutoff: datetime, now: datetime) -> List[EventKey]:
        """
        Confirmed, still-upcoming, non-manual events not seen since the cutoff.

        Args:
            cutoff: Rows last seen before this instant qualify
            now: Only events ending after this instant qualify

        Returns:
            Natural keys of matching rows
        """
        items = self._scan(
            self.table,
            FilterExpression=(
                Attr('status').eq(STATUS_CONFIRMED)
                & Attr('last_seen_at').lt(to_iso(cutoff))
                & Attr('source_id').ne(MANUAL_SOURCE)
                & Attr('end_at').gt(to_iso(now))
            ),
            ProjectionExpression='source_id, external_id',
        )
        return [_key_from_item(item) for item in items]

    def set_status(self, keys: List[EventKey], status: str) -> Tuple[int, List[str]]:
        """
        Move confirmed rows to a new status.

        Rows that are no longer confirmed are left untouched.

        Args:
            keys: Natural keys to update
            status: Target status

        Returns:
            Tuple of (rows updated, error messages)
        """
        if not keys:
            return 0, []

        logger.info(f"Setting status '{status}' on {len(keys)} events")
        updated = 0
        errors = []
        now = to_iso(datetime.now(timezone.utc))

        for key in keys:
            try:
                self.table.update_item(
                    Key={KEY_ATTRIBUTE: key.value},
                    UpdateExpression='SET #status = :status, updated_at = :now',
                    ConditionExpression=Attr('status').eq(STATUS_CONFIRMED),
                    ExpressionAttributeNames={'#status': 'status'},
                    ExpressionAttributeValues={':status': status, ':now': now},
                )
                updated += 1
            except ClientError as e:
                if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                    logger.warning(f"Event {key.value} is no longer confirmed; skipped")
                    continue
                error_msg = f"Error setting status on {key.value}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        logger.info(f"Successfully set status '{status}' on {updated} events")
        return updated, errors

    def record_source_sync(self, source: str, count: int, status: str = 'success') -> bool:
        """
        Record the outcome of a source's latest sync.

        Args:
            source: Source tag
            count: Events written for the source
            status: Outcome label

        Returns:
            True if recorded, False if no table is configured or the write failed
        """
        if self.sources_table is None:
            return False
        try:
            self.sources_table.put_item(Item={
                'source_id': source,
                'last_sync_at': to_iso(datetime.now(timezone.utc)),
                'last_sync_count': count,
                'last_sync_status': status,
            })
            return True
        except ClientError as e:
            logger.error(f"Error recording sync for source {source}: {e}")
            return False
