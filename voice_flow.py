#!/usr/bin/env python3
"""
Call lifecycle for fraud complaints.

Each provider webhook maps to one handler here. Handlers build the next
TwiML instruction and update the stored report for the CallSid. Twilio
delivers the recording and transcription callbacks in no guaranteed order
and may deliver them twice, so every handler reads the current report,
applies only forward status moves, and writes just the fields it owns.

Store failures are logged and swallowed: the provider must always get its
acknowledgement or it will retry the event.

Known limitation: a language selection or transcript arriving for a CallSid
with no stored report (inbound calls) is dropped, not queued.
"""

from typing import Dict, Optional

from twilio.twiml.voice_response import VoiceResponse

import classifier
import settings
from errors import ReportStoreError
from logging_config import get_logger
from models import CallStatus, FraudReport, Language, can_transition, parse_call_status, utcnow
from report_store import ReportStore

logger = get_logger(__name__)

ALTERNATE_LANGUAGE_DIGIT = '2'

WELCOME_MESSAGE = 'Welcome to the Ration Distribution System.'
LANGUAGE_MENU = 'For English, press 1. For Hindi, press 2.'

RECORD_PROMPTS = {
    Language.DEFAULT: 'Please record your complaint after the beep.',
    Language.ALTERNATE: 'Kripya apni shikayat darj karne ke liye beep ke baad boliye.',
}

THANK_YOU_MESSAGES = {
    Language.DEFAULT: 'Thank you for your report. We will take appropriate action. Goodbye.',
    Language.ALTERNATE: 'Aapki shikayat ke liye dhanyavaad. Hum uchit karyavahi karenge. Alvida.',
}


def _url(base_url: str, endpoint: str) -> str:
    return f"{base_url}/api/{endpoint}"


def _say(response: VoiceResponse, text: str, language: Language) -> None:
    if language == Language.ALTERNATE:
        response.say(text, voice='Polly.Aditi', language=language.value)
    else:
        response.say(text)


def select_language(digits: Optional[str]) -> Language:
    """'2' picks the alternate language; anything else, including nothing, the default."""
    if (digits or '').strip() == ALTERNATE_LANGUAGE_DIGIT:
        return Language.ALTERNATE
    return Language.DEFAULT


def _find_report(store: ReportStore, call_sid: Optional[str]) -> Optional[FraudReport]:
    if not call_sid:
        return None
    try:
        return store.find_by_call_id(call_sid)
    except ReportStoreError:
        logger.exception(f"Could not load report for call {call_sid}")
        return None


def _update_report(store: ReportStore, call_sid: str, fields: Dict) -> bool:
    try:
        return store.update_by_call_id(call_sid, fields)
    except ReportStoreError:
        logger.exception(f"Could not update report for call {call_sid}")
        return False


def _with_status(fields: Dict, report: FraudReport, target: CallStatus) -> Dict:
    if can_transition(report.call_status, target):
        fields['call_status'] = target
    else:
        logger.info(f"Ignoring status {target.value} for call {report.call_sid} "
                    f"(currently {report.call_status.value})")
    return fields


# ------------------------------------------------------------------ handlers

def welcome_response(base_url: str) -> VoiceResponse:
    """Greeting plus a one-digit language menu posting to /api/language."""
    response = VoiceResponse()
    response.say(WELCOME_MESSAGE)
    gather = response.gather(
        num_digits=1,
        action=_url(base_url, 'language'),
        method='POST',
        action_on_empty_result=True,
    )
    gather.say(LANGUAGE_MENU)
    return response


def handle_language_selection(store: ReportStore, call_sid: Optional[str],
                              digits: Optional[str], base_url: str) -> VoiceResponse:
    language = select_language(digits)
    logger.info(f"Call {call_sid} selected language {language.value}")

    report = _find_report(store, call_sid)
    if report is None:
        logger.warning(f"No report for call {call_sid}; language {language.value} not stored")
    else:
        fields = _with_status({'language': language}, report, CallStatus.LANGUAGE_SELECTED)
        _update_report(store, call_sid, fields)

    response = VoiceResponse()
    _say(response, RECORD_PROMPTS[language], language)
    response.record(
        action=_url(base_url, 'recording-complete'),
        method='POST',
        max_length=settings.MAX_RECORDING_SECONDS,
        play_beep=True,
        transcribe=True,
        transcribe_callback=_url(base_url, 'transcription-callback'),
        recording_status_callback=_url(base_url, 'recording-status'),
        recording_status_callback_event='in-progress completed',
    )
    return response


def handle_recording_complete(store: ReportStore, call_sid: Optional[str],
                              recording_url: Optional[str]) -> VoiceResponse:
    """Store the recording, close out the report and thank the caller."""
    report = _find_report(store, call_sid)
    language = report.language if report else Language.DEFAULT

    if report is None:
        logger.warning(f"No report for call {call_sid}; recording {recording_url} not stored")
    elif recording_url:
        fields = {}
        if report.completed_at is None:
            fields['completed_at'] = utcnow()
        if not report.recording_url:
            fields['recording_url'] = recording_url
        _update_report(store, call_sid, _with_status(fields, report, CallStatus.COMPLETED))
        logger.info(f"Recording stored for call {call_sid}")

    response = VoiceResponse()
    _say(response, THANK_YOU_MESSAGES[language], language)
    response.hangup()
    return response


def apply_transcription(store: ReportStore, call_sid: Optional[str],
                        transcript: Optional[str]) -> Optional[FraudReport]:
    """
    Classify a transcript and store it with its summary and severity.

    Returns:
        The updated report, or None if nothing was stored (no report, no
        text, transcript already present, or a store failure)
    """
    if not call_sid or not transcript:
        logger.info(f"Transcription for call {call_sid} has no text; ignored")
        return None

    report = _find_report(store, call_sid)
    if report is None:
        logger.warning(f"No report for call {call_sid}; transcript dropped")
        return None
    if report.transcript:
        logger.info(f"Call {call_sid} already has a transcript; duplicate ignored")
        return None

    summary, severity = classifier.classify(transcript, report.language)
    fields = _with_status(
        {'transcript': transcript, 'fraud_summary': summary, 'fraud_severity': severity},
        report, CallStatus.TRANSCRIBED,
    )
    if not _update_report(store, call_sid, fields):
        return None

    logger.info(f"Report for call {call_sid} updated with transcription ({severity.value})")
    report.transcript = transcript
    report.fraud_summary = summary
    report.fraud_severity = severity
    report.call_status = fields.get('call_status', report.call_status)
    return report


def handle_call_status(store: ReportStore, call_sid: Optional[str],
                       provider_status: Optional[str]) -> bool:
    """Mirror a provider call-status event onto the report. True if stored."""
    status = parse_call_status(provider_status)
    logger.info(f"Call status: {provider_status} for {call_sid}")
    if status is None:
        logger.info(f"Unrecognized call status {provider_status!r}; ignored")
        return False

    report = _find_report(store, call_sid)
    if report is None:
        return False
    fields = _with_status({}, report, status)
    if not fields:
        return False
    return _update_report(store, call_sid, fields)


def handle_recording_status(store: ReportStore, call_sid: Optional[str],
                            recording_status: Optional[str]) -> bool:
    """An 'in-progress' recording event moves the report to 'recording'."""
    if (recording_status or '').strip().lower() != 'in-progress':
        return False
    report = _find_report(store, call_sid)
    if report is None:
        return False
    fields = _with_status({}, report, CallStatus.RECORDING)
    if not fields:
        return False
    return _update_report(store, call_sid, fields)
