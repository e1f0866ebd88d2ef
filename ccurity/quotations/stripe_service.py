"""
Stripe service for quotation payments.
Creates the product, price and payment link of a published quotation through
the Stripe REST API, deactivates them on unpublish and verifies webhook
signatures.
"""
import hashlib
import hmac
import logging
import os
from typing import Optional, Dict, Any, List

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 20  # seconds
CURRENCY = 'mxn'


class StripeError(Exception):
    """Raised when Stripe answers with a non-2xx status"""

    def __init__(self, endpoint, message, status_code=None):
        super().__init__(f"Stripe {endpoint} error: {message}")
        self.endpoint = endpoint
        self.status_code = status_code


def _setting(name: str, default: str = '') -> str:
    return getattr(settings, name, None) or os.getenv(name, default)


def get_api_base() -> str:
    return _setting('STRIPE_API_BASE', 'https://api.stripe.com/v1').rstrip('/')


def is_configured() -> bool:
    return bool(_setting('STRIPE_SECRET_KEY'))


def stripe_request(endpoint: str, data: Dict[str, str]) -> Dict[str, Any]:
    """
    POST a form-encoded request to the Stripe API.

    Args:
        endpoint: API path such as '/products'
        data: Flat dict of form fields (nested keys already bracketed)

    Returns:
        Parsed JSON body
    """
    url = f"{get_api_base()}{endpoint}"
    response = requests.post(
        url,
        data=data,
        headers={'Authorization': f"Bearer {_setting('STRIPE_SECRET_KEY')}"},
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code >= 400:
        try:
            message = response.json().get('error', {}).get('message') or response.text
        except ValueError:
            message = response.text
        raise StripeError(endpoint, message, response.status_code)
    return response.json()


def create_product(name: str, description: str) -> str:
    return stripe_request('/products', {'name': name, 'description': description})['id']


def create_price(product_id: str, unit_amount: int, currency: str = CURRENCY,
                 recurring_interval: Optional[str] = None) -> str:
    data = {
        'product': product_id,
        'unit_amount': str(unit_amount),
        'currency': currency,
    }
    if recurring_interval:
        data['recurring[interval]'] = recurring_interval
    return stripe_request('/prices', data)['id']


def create_payment_link(price_id: str, quantity: int = 1, redirect_url: Optional[str] = None) -> Dict[str, str]:
    data = {
        'line_items[0][price]': price_id,
        'line_items[0][quantity]': str(quantity),
    }
    if redirect_url:
        data['after_completion[type]'] = 'redirect'
        data['after_completion[redirect][url]'] = redirect_url
    result = stripe_request('/payment_links', data)
    return {'id': result['id'], 'url': result['url']}


def generate_payment_link(title: str, total_cents: int, redirect_url: Optional[str] = None,
                          payment_type: str = 'one_time') -> Dict[str, str]:
    """
    Create product + price + payment link for a quotation.

    Recurring quotations (pólizas) are billed monthly; the payment link infers
    subscription mode from the recurring price.

    Returns:
        dict with product_id, price_id, payment_link_id and payment_link_url
    """
    is_recurring = payment_type == 'recurring'
    product_id = create_product(
        f"{'Póliza' if is_recurring else 'Cotización'}: {title}",
        f"{'Pago mensual' if is_recurring else 'Pago de cotización'} - {title}",
    )
    price_id = create_price(product_id, total_cents, CURRENCY, 'month' if is_recurring else None)
    link = create_payment_link(price_id, 1, redirect_url)
    logger.info(f"Stripe payment link {link['id']} created for '{title}' ({total_cents} cents)")
    return {
        'product_id': product_id,
        'price_id': price_id,
        'payment_link_id': link['id'],
        'payment_link_url': link['url'],
    }


def deactivate_quotation(payment_link_id: Optional[str], product_id: Optional[str]) -> List[str]:
    """
    Deactivate the payment link and archive the product.

    Prices attached to a payment link cannot be deactivated; disabling the
    link is enough to stop new checkouts. Failures are logged and returned.
    """
    errors = []
    if payment_link_id:
        try:
            stripe_request(f'/payment_links/{payment_link_id}', {'active': 'false'})
        except (StripeError, requests.RequestException) as e:
            errors.append(f"Payment link: {e}")
    if product_id:
        try:
            stripe_request(f'/products/{product_id}', {'active': 'false'})
        except (StripeError, requests.RequestException) as e:
            errors.append(f"Product: {e}")
    if errors:
        logger.error(f"Stripe deactivation warnings: {errors}")
    return errors


def parse_signature_header(header: str) -> Dict[str, List[str]]:
    """Group the ``key=value`` pairs of a Stripe-Signature header; keys may repeat"""
    parts: Dict[str, List[str]] = {}
    for item in header.split(','):
        key, _, value = item.strip().partition('=')
        if key and value:
            parts.setdefault(key, []).append(value)
    return parts


def verify_webhook_signature(payload: bytes, header: str, secret: str) -> bool:
    """
    Check ``Stripe-Signature`` (t=...,v1=...) against HMAC-SHA256 of '<t>.<payload>'.

    During a secret rotation Stripe sends one v1 per active secret; any match passes.
    """
    parts = parse_signature_header(header or '')
    timestamps = parts.get('t') or []
    signatures = parts.get('v1') or []
    if not timestamps or not signatures:
        return False
    signed_payload = f"{timestamps[0]}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, signature) for signature in signatures)
