"""Shared fixtures for the test suite."""
import os
from datetime import datetime

import boto3
import pytest
from moto import mock_aws

from processor.date_parsing import LOCAL_TZ
from processor.models import CanonicalEvent, Venue

EVENTS_TABLE = 'test-events'
VENUES_TABLE = 'test-venues'
SOURCES_TABLE = 'test-sources'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


def _create_table(dynamodb, name, key):
    return dynamodb.create_table(
        TableName=name,
        KeySchema=[{'AttributeName': key, 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': key, 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def dynamodb_tables():
    """Create mock events, venues and sources tables."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        tables = {
            'events': _create_table(dynamodb, EVENTS_TABLE, 'event_key'),
            'venues': _create_table(dynamodb, VENUES_TABLE, 'id'),
            'sources': _create_table(dynamodb, SOURCES_TABLE, 'source_id'),
        }
        yield tables


def local(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=LOCAL_TZ)


def build_event(**overrides) -> CanonicalEvent:
    """A valid canonical event; keyword arguments replace any field."""
    fields = dict(
        id='test_1',
        source='test_source',
        source_id='1',
        title='Test Event',
        description='A test event',
        start=local(2025, 10, 4, 19),
        end=local(2025, 10, 4, 21),
        venue=Venue(name='Festival Park', address='335 Ray Ave', zip_code='28301'),
        categories=['Live Music'],
        url='https://example.com/events/1',
        last_modified=local(2025, 9, 30, 8),
    )
    fields.update(overrides)
    return CanonicalEvent(**fields)


@pytest.fixture
def make_event():
    return build_event
