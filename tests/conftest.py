"""Shared fixtures for the test suite."""
import os
from unittest.mock import patch

import boto3
import pytest
from moto import mock_aws


TABLE_NAME = 'test-eventbrite-events'


@pytest.fixture
def aws_credentials():
    """Fake AWS credentials so boto3 never reaches a real account."""
    env_vars = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'local_id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'local_id', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


def make_api_event(event_id='E1', **overrides):
    """Build an event object shaped like the Eventbrite API returns it."""
    event = {
        'id': event_id,
        'name': {'text': f'Event {event_id}', 'html': f'Event {event_id}'},
        'description': {
            'text': 'Join us',
            'html': '<p>Join <strong>us</strong></p>'
        },
        'url': f'https://www.eventbrite.com/e/{event_id}',
        'start': {
            'timezone': 'America/New_York',
            'local': '2099-01-01T10:00:00',
            'utc': '2099-01-01T15:00:00Z'
        },
        'end': {
            'timezone': 'America/New_York',
            'local': '2099-01-01T12:00:00',
            'utc': '2099-01-01T17:00:00Z'
        },
        'created': '2024-01-01T00:00:00Z',
        'changed': '2024-01-02T00:00:00Z',
        'capacity': 100,
        'status': 'live',
        'currency': 'USD'
    }
    event.update(overrides)
    return event


@pytest.fixture
def api_event():
    """A well-formed API event."""
    return make_api_event()
