#!/usr/bin/env python3
"""
Outbound call initiation.

Both entry points place a call whose voice webhook is this service's
/api/voice and then persist an 'initiated' report keyed by the CallSid.
No report is written when the lookup or the call placement fails.
"""

import settings
from identity import IdentityResolver
from logging_config import get_logger
from models import CallStatus, FraudReport
from report_store import ReportStore
from telephony import place_call
from utils import format_dial_number

logger = get_logger(__name__)


def callback_url(base_url: str, endpoint: str) -> str:
    return f"{base_url}/api/{endpoint}"


def start_report_call(twilio_client, store: ReportStore, *, aadhaar: str, name: str,
                      mobile: str, base_url: str,
                      from_number=settings.TWILIO_PHONE_NUMBER) -> FraudReport:
    call_sid = place_call(
        twilio_client,
        to_number=mobile,
        from_number=from_number,
        voice_url=callback_url(base_url, 'voice'),
        status_callback_url=callback_url(base_url, 'call-status'),
        status_events=settings.STATUS_CALLBACK_EVENTS,
    )
    report = FraudReport(
        aadhaar=aadhaar,
        name=name,
        mobile=mobile,
        call_sid=call_sid,
        call_status=CallStatus.INITIATED,
    )
    return store.create(report)


def initiate_test_call(twilio_client, store: ReportStore, phone_number: str, base_url: str,
                       from_number=settings.TWILIO_PHONE_NUMBER) -> FraudReport:
    """Call an arbitrary number on behalf of the placeholder test consumer."""
    mobile = format_dial_number(phone_number)
    logger.info(f"Starting test call to {mobile}")
    return start_report_call(
        twilio_client, store,
        aadhaar=settings.TEST_CALL_AADHAAR,
        name=settings.TEST_CALL_NAME,
        mobile=mobile,
        base_url=base_url,
        from_number=from_number,
    )


def initiate_fraud_report_call(twilio_client, store: ReportStore, resolver: IdentityResolver,
                               aadhaar: str, base_url: str,
                               from_number=settings.TWILIO_PHONE_NUMBER) -> FraudReport:
    """
    Look the citizen up on the ledger and call their registered number.

    Raises:
        ValidationError, ConsumerNotFoundError, InvalidPhoneError: from the lookup
        ConfigurationError, UpstreamError: call placement or persistence failed
    """
    name, mobile = resolver.resolve(aadhaar)
    logger.info(f"Resolved consumer for fraud report call; dialing {mobile}")
    return start_report_call(
        twilio_client, store,
        aadhaar=str(aadhaar).strip(),
        name=name,
        mobile=mobile,
        base_url=base_url,
        from_number=from_number,
    )
