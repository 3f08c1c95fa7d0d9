#!/usr/bin/env python3
"""
Tests for the call lifecycle handlers, run directly against a temp store.
"""

from unittest.mock import MagicMock

import pytest

import voice_flow
from errors import ReportStoreError
from models import CallStatus, Language, Severity

BASE_URL = 'https://example.test'


def test_welcome_gathers_one_digit():
    xml = str(voice_flow.welcome_response(BASE_URL))
    assert 'Welcome to the Ration Distribution System.' in xml
    assert '<Gather' in xml
    assert 'numDigits="1"' in xml
    assert f'action="{BASE_URL}/api/language"' in xml
    assert 'actionOnEmptyResult="true"' in xml
    assert 'For English, press 1. For Hindi, press 2.' in xml


def test_welcome_is_repeatable():
    assert str(voice_flow.welcome_response(BASE_URL)) == str(voice_flow.welcome_response(BASE_URL))


@pytest.mark.parametrize('digits,expected', [
    ('2', Language.ALTERNATE),
    (' 2 ', Language.ALTERNATE),
    ('1', Language.DEFAULT),
    ('', Language.DEFAULT),
    (None, Language.DEFAULT),
    ('9', Language.DEFAULT),
])
def test_select_language(digits, expected):
    assert voice_flow.select_language(digits) == expected


class TestLanguageSelection:

    def test_alternate_language_persisted(self, store, make_report):
        make_report('CA123')
        xml = str(voice_flow.handle_language_selection(store, 'CA123', '2', BASE_URL))

        report = store.find_by_call_id('CA123')
        assert report.language == Language.ALTERNATE
        assert report.call_status == CallStatus.LANGUAGE_SELECTED
        assert 'Kripya apni shikayat' in xml
        assert 'language="hi-IN"' in xml

    def test_record_instruction(self, store, make_report):
        make_report('CA123')
        xml = str(voice_flow.handle_language_selection(store, 'CA123', '1', BASE_URL))

        assert 'Please record your complaint after the beep.' in xml
        assert '<Record' in xml
        assert f'action="{BASE_URL}/api/recording-complete"' in xml
        assert f'transcribeCallback="{BASE_URL}/api/transcription-callback"' in xml
        assert 'transcribe="true"' in xml
        assert 'maxLength="60"' in xml
        assert store.find_by_call_id('CA123').language == Language.DEFAULT

    def test_unknown_call_still_prompts(self, store):
        xml = str(voice_flow.handle_language_selection(store, 'CA404', '2', BASE_URL))
        assert '<Record' in xml
        assert store.find_by_call_id('CA404') is None

    def test_store_failure_still_prompts(self):
        broken = MagicMock()
        broken.find_by_call_id.side_effect = ReportStoreError('Database unavailable')
        xml = str(voice_flow.handle_language_selection(broken, 'CA123', '2', BASE_URL))
        assert '<Record' in xml


class TestRecordingComplete:

    def test_marks_completed(self, store, make_report):
        make_report('CA123')
        xml = str(voice_flow.handle_recording_complete(store, 'CA123', 'https://x/Recordings/RE1'))

        report = store.find_by_call_id('CA123')
        assert report.recording_url == 'https://x/Recordings/RE1'
        assert report.call_status == CallStatus.COMPLETED
        assert report.completed_at is not None
        assert 'Thank you for your report.' in xml
        assert '<Hangup' in xml

    def test_thanks_in_selected_language(self, store, make_report):
        make_report('CA123', language=Language.ALTERNATE)
        xml = str(voice_flow.handle_recording_complete(store, 'CA123', 'https://x/Recordings/RE1'))
        assert 'dhanyavaad' in xml

    def test_recording_reference_set_once(self, store, make_report):
        make_report('CA123')
        voice_flow.handle_recording_complete(store, 'CA123', 'https://x/Recordings/RE1')
        first_completed_at = store.find_by_call_id('CA123').completed_at
        voice_flow.handle_recording_complete(store, 'CA123', 'https://x/Recordings/RE2')

        report = store.find_by_call_id('CA123')
        assert report.recording_url == 'https://x/Recordings/RE1'
        assert report.completed_at == first_completed_at

    def test_unknown_call_hangs_up(self, store):
        xml = str(voice_flow.handle_recording_complete(store, 'CA404', 'https://x/Recordings/RE1'))
        assert '<Hangup' in xml
        assert store.count() == 0

    def test_store_failure_hangs_up(self):
        broken = MagicMock()
        broken.find_by_call_id.side_effect = ReportStoreError('Database unavailable')
        xml = str(voice_flow.handle_recording_complete(broken, 'CA123', 'https://x/Recordings/RE1'))
        assert '<Hangup' in xml


class TestTranscription:

    def test_classifies_and_stores(self, store, make_report):
        make_report('CA123')
        updated = voice_flow.apply_transcription(store, 'CA123', 'The dealer demanded a bribe')

        report = store.find_by_call_id('CA123')
        assert updated is not None
        assert report.transcript == 'The dealer demanded a bribe'
        assert report.fraud_severity == Severity.HIGH
        assert 'There was a demand for bribes.' in report.fraud_summary
        assert report.call_status == CallStatus.TRANSCRIBED

    def test_before_recording_then_recording_completes(self, store, make_report):
        make_report('CA123')
        voice_flow.apply_transcription(store, 'CA123', 'They gave me less rice')
        voice_flow.handle_recording_complete(store, 'CA123', 'https://x/Recordings/RE1')

        report = store.find_by_call_id('CA123')
        assert report.transcript == 'They gave me less rice'
        assert report.recording_url == 'https://x/Recordings/RE1'
        assert report.call_status == CallStatus.COMPLETED

    def test_after_recording_keeps_completed(self, store, make_report):
        make_report('CA123')
        voice_flow.handle_recording_complete(store, 'CA123', 'https://x/Recordings/RE1')
        voice_flow.apply_transcription(store, 'CA123', 'Poor quality wheat')

        report = store.find_by_call_id('CA123')
        assert report.call_status == CallStatus.COMPLETED
        assert report.fraud_severity == Severity.LOW

    def test_uses_report_language(self, store, make_report):
        make_report('CA123', language=Language.ALTERNATE)
        voice_flow.apply_transcription(store, 'CA123', 'less rice')
        assert store.find_by_call_id('CA123').fraud_summary.startswith('शिकायत विश्लेषण')

    def test_duplicate_delivery_ignored(self, store, make_report):
        make_report('CA123')
        voice_flow.apply_transcription(store, 'CA123', 'bribe')
        assert voice_flow.apply_transcription(store, 'CA123', 'waiting') is None
        assert store.find_by_call_id('CA123').transcript == 'bribe'

    def test_unknown_call_dropped(self, store):
        assert voice_flow.apply_transcription(store, 'CA404', 'bribe') is None
        assert store.count() == 0

    def test_empty_text_ignored(self, store, make_report):
        make_report('CA123')
        assert voice_flow.apply_transcription(store, 'CA123', '') is None
        assert store.find_by_call_id('CA123').transcript is None

    def test_store_failure_swallowed(self):
        broken = MagicMock()
        broken.find_by_call_id.side_effect = ReportStoreError('Database unavailable')
        assert voice_flow.apply_transcription(broken, 'CA123', 'bribe') is None


class TestStatusCallbacks:

    def test_provider_status_stored(self, store, make_report):
        make_report('CA123')
        assert voice_flow.handle_call_status(store, 'CA123', 'ringing') is True
        assert store.find_by_call_id('CA123').call_status == CallStatus.RINGING

    def test_failure_status_from_any_open_state(self, store, make_report):
        make_report('CA123', call_status=CallStatus.RINGING)
        voice_flow.handle_call_status(store, 'CA123', 'no-answer')
        assert store.find_by_call_id('CA123').call_status == CallStatus.NO_ANSWER

    def test_backward_status_ignored(self, store, make_report):
        make_report('CA123', call_status=CallStatus.LANGUAGE_SELECTED)
        assert voice_flow.handle_call_status(store, 'CA123', 'in-progress') is False
        assert store.find_by_call_id('CA123').call_status == CallStatus.LANGUAGE_SELECTED

    def test_terminal_status_is_final(self, store, make_report):
        make_report('CA123', call_status=CallStatus.COMPLETED)
        voice_flow.handle_call_status(store, 'CA123', 'failed')
        assert store.find_by_call_id('CA123').call_status == CallStatus.COMPLETED

    def test_unknown_status_and_call(self, store, make_report):
        make_report('CA123')
        assert voice_flow.handle_call_status(store, 'CA123', 'queued') is False
        assert voice_flow.handle_call_status(store, 'CA404', 'completed') is False
        assert store.count() == 1

    def test_recording_in_progress(self, store, make_report):
        make_report('CA123', call_status=CallStatus.LANGUAGE_SELECTED)
        assert voice_flow.handle_recording_status(store, 'CA123', 'in-progress') is True
        assert store.find_by_call_id('CA123').call_status == CallStatus.RECORDING

    def test_recording_completed_event_ignored(self, store, make_report):
        make_report('CA123', call_status=CallStatus.RECORDING)
        assert voice_flow.handle_recording_status(store, 'CA123', 'completed') is False
        assert store.find_by_call_id('CA123').call_status == CallStatus.RECORDING
