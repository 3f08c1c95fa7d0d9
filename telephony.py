#!/usr/bin/env python3
"""
Twilio integration: client construction, outbound calls and recording
downloads.
"""

from typing import Iterator, Optional

import requests
from twilio.base.exceptions import TwilioException
from twilio.request_validator import RequestValidator
from twilio.rest import Client

from errors import ConfigurationError, UpstreamError
from logging_config import get_logger

logger = get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
RECORDING_CHUNK_SIZE = 8192


def create_twilio_client(account_sid: Optional[str], auth_token: Optional[str]) -> Client:
    if not account_sid or not auth_token:
        raise ConfigurationError('Twilio credentials not configured')
    return Client(account_sid, auth_token)


def create_request_validator(auth_token: Optional[str]) -> RequestValidator:
    if not auth_token:
        raise ConfigurationError('Twilio auth token not configured')
    return RequestValidator(auth_token)


def place_call(client: Optional[Client], to_number: str, from_number: Optional[str],
               voice_url: str, status_callback_url: str, status_events) -> str:
    """
    Start an outbound call that fetches its instructions from voice_url.

    Returns:
        str: the CallSid assigned by Twilio

    Raises:
        ConfigurationError: no client or no caller id configured
        UpstreamError: Twilio rejected the call
    """
    if client is None:
        raise ConfigurationError('Twilio credentials not configured')
    if not from_number:
        raise ConfigurationError('Twilio phone number not configured')

    logger.info(f"Placing call to {to_number} with webhook {voice_url}")
    try:
        call = client.calls.create(
            method='POST',
            url=voice_url,
            to=to_number,
            from_=from_number,
            status_callback=status_callback_url,
            status_callback_event=list(status_events),
            status_callback_method='POST',
        )
    except TwilioException as e:
        logger.exception("Twilio rejected outbound call")
        raise UpstreamError('Failed to make call', str(e)) from e

    logger.info(f"Call initiated: {call.sid}")
    return call.sid


def recording_media_url(account_sid: str, recording_sid: str) -> str:
    return f"{TWILIO_API_BASE}/Accounts/{account_sid}/Recordings/{recording_sid}.mp3"


def open_recording_stream(account_sid: Optional[str], auth_token: Optional[str],
                          recording_sid: str, range_header: Optional[str] = None,
                          timeout: int = 30) -> requests.Response:
    """
    Open a streaming download of a recording's mp3 audio.

    range_header is forwarded so players can seek. The caller owns the
    returned response and must close it.
    """
    if not account_sid or not auth_token:
        raise ConfigurationError('Twilio credentials not configured')

    url = recording_media_url(account_sid, recording_sid)
    headers = {'Range': range_header} if range_header else None
    try:
        response = requests.get(url, auth=(account_sid, auth_token), headers=headers,
                                stream=True, timeout=timeout)
    except requests.RequestException as e:
        logger.exception(f"Error fetching recording {recording_sid}")
        raise UpstreamError('Error fetching recording', str(e)) from e

    if not response.ok:
        logger.error(f"Twilio returned {response.status_code} for recording {recording_sid}")
        response.close()
        raise UpstreamError('Error fetching recording', f"HTTP {response.status_code}")
    return response


def iter_recording(response: requests.Response) -> Iterator[bytes]:
    """Yield audio chunks from an open recording download, then close it."""
    try:
        for chunk in response.iter_content(chunk_size=RECORDING_CHUNK_SIZE):
            if chunk:
                yield chunk
    except requests.RequestException:
        logger.exception("Recording stream interrupted")
    finally:
        response.close()


def fetch_account(client: Optional[Client], account_sid: Optional[str]) -> dict:
    """Fetch the Twilio account to confirm the configured credentials work."""
    if client is None or not account_sid:
        raise ConfigurationError('Twilio credentials not configured')
    try:
        account = client.api.accounts(account_sid).fetch()
    except TwilioException as e:
        logger.exception("Twilio credential check failed")
        raise UpstreamError('Twilio credential check failed', str(e)) from e
    return {'accountName': account.friendly_name, 'status': account.status}
