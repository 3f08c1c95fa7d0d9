import re
import socket
from typing import Optional

import settings
from errors import InvalidPhoneError, ValidationError
from logging_config import get_logger

# Get logger for this module
logger = get_logger(__name__)

RECORDING_SID_PATTERN = re.compile(r'^[A-Za-z0-9]+$')


def format_dial_number(phone_number: str) -> str:
    """
    Prefix a raw phone number with '+' unless it already carries one.
    Used for manual test calls where the caller supplies the country code.
    """
    phone_number = str(phone_number or '').strip()
    if not phone_number:
        raise ValidationError('Phone number is required')
    return phone_number if phone_number.startswith('+') else f'+{phone_number}'


def normalize_mobile(mobile: Optional[str],
                     country_code: str = settings.DEFAULT_COUNTRY_CODE,
                     min_length: int = settings.MIN_PHONE_LENGTH) -> str:
    """
    Validate a mobile number returned by the ledger and put it in dialing form.

    Raises:
        InvalidPhoneError: the number is absent or shorter than min_length
    """
    mobile = (mobile or '').strip()
    if len(mobile) < min_length:
        raise InvalidPhoneError('Valid mobile number not found for this Aadhaar')
    return mobile if mobile.startswith(country_code) else f'{country_code}{mobile}'


def validate_aadhaar(aadhaar) -> str:
    aadhaar = str(aadhaar or '').strip()
    if not aadhaar:
        raise ValidationError('Aadhaar number is required')
    if not aadhaar.isdigit() or len(aadhaar) != settings.AADHAAR_LENGTH:
        raise ValidationError(f'Aadhaar number must be {settings.AADHAAR_LENGTH} digits')
    return aadhaar


def validate_recording_sid(recording_sid: str) -> str:
    if not recording_sid or not RECORDING_SID_PATTERN.match(recording_sid):
        raise ValidationError('Invalid recording identifier')
    return recording_sid


def recording_sid_from_url(recording_url: Optional[str]) -> Optional[str]:
    """Last path segment of a provider recording URL, without extension."""
    if not recording_url:
        return None
    last_segment = recording_url.rstrip('/').split('/')[-1]
    return last_segment.split('.')[0] or None


def playable_recording_url(base_url: str, recording_url: Optional[str]) -> Optional[str]:
    recording_sid = recording_sid_from_url(recording_url)
    if not recording_sid:
        return None
    return f"{base_url}/api/recording/{recording_sid}"


def find_free_port(start_port: int, max_attempts: int = 50, host: str = '0.0.0.0') -> int:
    """
    Return the first port at or above start_port that can be bound.
    """
    for port in range(start_port, start_port + max_attempts):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                logger.warning(f"Port {port} is already in use, trying {port + 1}...")
                continue
            return port
    raise OSError(f"No free port found in range {start_port}-{start_port + max_attempts - 1}")
