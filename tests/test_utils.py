import socket
import unittest

import settings
from errors import InvalidPhoneError, ValidationError
from utils import (
    find_free_port,
    format_dial_number,
    normalize_mobile,
    playable_recording_url,
    recording_sid_from_url,
    validate_aadhaar,
    validate_recording_sid,
)


class TestPhoneNumbers(unittest.TestCase):
    def test_format_dial_number(self):
        self.assertEqual(format_dial_number('919876543210'), '+919876543210')
        self.assertEqual(format_dial_number(' +15551234567 '), '+15551234567')

    def test_format_dial_number_accepts_numeric_value(self):
        self.assertEqual(format_dial_number(919876543210), '+919876543210')

    def test_format_dial_number_requires_value(self):
        with self.assertRaises(ValidationError):
            format_dial_number('')
        with self.assertRaises(ValidationError):
            format_dial_number(None)

    def test_normalize_mobile(self):
        self.assertEqual(normalize_mobile('9876543210'), '+919876543210')
        self.assertEqual(normalize_mobile('+919876543210'), '+919876543210')

    def test_normalize_mobile_rejects_short_or_missing(self):
        for mobile in (None, '', '98765'):
            with self.assertRaises(InvalidPhoneError):
                normalize_mobile(mobile)


class TestIdentifiers(unittest.TestCase):
    def test_validate_aadhaar(self):
        self.assertEqual(validate_aadhaar(' 111122223333 '), '111122223333')
        self.assertEqual(validate_aadhaar(111122223333), '111122223333')
        for bad in ('', None, '1111', '11112222333a'):
            with self.assertRaises(ValidationError):
                validate_aadhaar(bad)

    def test_validate_recording_sid(self):
        self.assertEqual(validate_recording_sid('RE1'), 'RE1')
        for bad in ('', 'RE1.mp3', '../secrets'):
            with self.assertRaises(ValidationError):
                validate_recording_sid(bad)


class TestRecordingUrls(unittest.TestCase):
    def test_recording_sid_from_url(self):
        self.assertEqual(recording_sid_from_url('https://x/Recordings/RE1'), 'RE1')
        self.assertEqual(recording_sid_from_url('https://x/Recordings/RE1.mp3'), 'RE1')
        self.assertIsNone(recording_sid_from_url(None))
        self.assertIsNone(recording_sid_from_url(''))

    def test_playable_recording_url(self):
        self.assertEqual(
            playable_recording_url('https://example.test', 'https://x/Recordings/RE1'),
            'https://example.test/api/recording/RE1',
        )
        self.assertIsNone(playable_recording_url('https://example.test', None))


class TestBaseUrl(unittest.TestCase):
    def test_public_url_wins(self):
        environ = {'PUBLIC_BASE_URL': 'https://prod.example/', 'DYNAMIC_BASE_URL': 'https://tunnel.example'}
        self.assertEqual(settings.resolve_base_url(environ), 'https://prod.example')

    def test_tunnel_url(self):
        self.assertEqual(settings.resolve_base_url({'DYNAMIC_BASE_URL': 'https://tunnel.example'}),
                         'https://tunnel.example')

    def test_default(self):
        self.assertEqual(settings.resolve_base_url({}), settings.DEFAULT_BASE_URL)


class TestFindFreePort(unittest.TestCase):
    def test_skips_port_in_use(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(('127.0.0.1', 0))
            taken = busy.getsockname()[1]
            port = find_free_port(taken, host='127.0.0.1')
        self.assertGreater(port, taken)


if __name__ == "__main__":
    unittest.main()
