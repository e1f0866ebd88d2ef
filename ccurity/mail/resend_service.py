"""
Resend API client for the admin mailbox.
"""
import logging
import os
from typing import Optional, Dict, Any, List

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 20  # seconds
DEFAULT_FROM = 'Ccurity <noreply@app.ccurity.com.mx>'


class ResendError(Exception):
    """Raised when Resend rejects a request"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _setting(name: str, default: str = '') -> str:
    return getattr(settings, name, None) or os.getenv(name, default)


def get_api_base() -> str:
    return _setting('RESEND_API_BASE', 'https://api.resend.com').rstrip('/')


def default_sender() -> str:
    return _setting('RESEND_FROM', DEFAULT_FROM)


def send_email(to: List[str], subject: str, html: Optional[str] = None, text: Optional[str] = None,
               cc: Optional[List[str]] = None, bcc: Optional[List[str]] = None,
               from_address: Optional[str] = None, reply_to: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Send one email through Resend.

    Returns:
        Parsed response body (contains the Resend ``id``)

    Raises:
        ResendError: missing API key, provider error or unreachable provider
    """
    api_key = _setting('RESEND_API_KEY')
    if not api_key:
        raise ResendError('RESEND_API_KEY is not configured')

    payload = {
        'from': from_address or default_sender(),
        'to': to,
        'subject': subject,
    }
    if html:
        payload['html'] = html
    if text:
        payload['text'] = text
    if cc:
        payload['cc'] = cc
    if bcc:
        payload['bcc'] = bcc
    if reply_to:
        payload['reply_to'] = reply_to

    try:
        response = requests.post(
            f"{get_api_base()}/emails",
            json=payload,
            headers={'Authorization': f'Bearer {api_key}'},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"Resend unreachable: {e}")
        raise ResendError(f'Resend unreachable: {e}')
    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code >= 400:
        message = body.get('message') or response.text or 'Resend request failed'
        logger.error(f"Resend send failed ({response.status_code}): {message}")
        raise ResendError(message, response.status_code)

    logger.info(f"Email {body.get('id')} sent to {', '.join(to)}")
    return body
