#!/usr/bin/env python3
"""
Shared pytest configuration and fixtures for the fraud report service tests.

Environment defaults are set before any project module is imported so the
module-level settings and the Flask app pick them up. Every external
service (Twilio, the ledger) is mocked; the report store runs on a
temporary SQLite file per test.
"""

import os
import tempfile

os.environ.setdefault('TWILIO_ACCOUNT_SID', 'ACtest_account_sid')
os.environ.setdefault('TWILIO_AUTH_TOKEN', 'test_auth_token')
os.environ.setdefault('TWILIO_PHONE_NUMBER', '+15550001111')
os.environ.setdefault('REPORTS_DB_FILE', os.path.join(tempfile.gettempdir(), 'test_fraud_reports.db'))
os.environ['RATELIMIT_ENABLED'] = 'false'
os.environ['VALIDATE_TWILIO_SIGNATURE'] = 'false'
os.environ['SIMULATE_TRANSCRIPTION'] = 'false'
os.environ.pop('POLYGON_AMOY_RPC', None)
os.environ.pop('DIAMOND_CONTRACT_ADDRESS', None)

import pytest
from unittest.mock import MagicMock, patch

from errors import ConsumerNotFoundError
from identity import IdentityResolver
from models import FraudReport
from report_store import ReportStore

TEST_BASE_URL = 'https://example.test'

REGISTERED_CONSUMERS = {
    '111122223333': ('Asha Devi', '9876543210'),
    '444455556666': ('Ramesh Kumar', '12345'),
    '777788889999': ('Meena Sharma', ''),
}


@pytest.fixture
def store(tmp_path):
    """Report store backed by a throwaway SQLite file."""
    return ReportStore(str(tmp_path / 'reports.db'))


@pytest.fixture
def make_report(store):
    """Persist a report with sensible defaults; keyword overrides allowed."""
    def _make(call_sid='CA123', **overrides):
        fields = {
            'aadhaar': '111122223333',
            'name': 'Asha Devi',
            'mobile': '+919876543210',
            'call_sid': call_sid,
        }
        fields.update(overrides)
        return store.create(FraudReport(**fields))
    return _make


def fake_ledger_lookup(aadhaar):
    try:
        return REGISTERED_CONSUMERS[aadhaar]
    except KeyError:
        raise ConsumerNotFoundError('Consumer not found with this Aadhaar number')


@pytest.fixture
def resolver():
    return IdentityResolver(fake_ledger_lookup)


@pytest.fixture
def twilio_client():
    """Twilio REST client double whose calls.create returns CallSid CA123."""
    mock_client = MagicMock()
    mock_client.calls.create.return_value = MagicMock(sid='CA123')
    return mock_client


@pytest.fixture
def client(store, twilio_client, resolver):
    """Flask test client wired to the temp store and mocked collaborators."""
    from app import app

    config = {
        'TESTING': True,
        'BASE_URL': TEST_BASE_URL,
        'VALIDATE_TWILIO_SIGNATURE': False,
        'SIMULATE_TRANSCRIPTION': False,
    }
    with patch.dict(app.config, config), \
         patch('app.report_store', store), \
         patch('app.twilio_client', twilio_client), \
         patch('app.identity_resolver', resolver):
        with app.test_client() as test_client:
            yield test_client
