"""
Storage for contract signing images.
Decodes the base64 data URLs sent by the signing page, checks that they are
real images and stores them in Azure Blob Storage when a connection string
is configured, otherwise in Django's default storage.
"""
import base64
import binascii
import io
import logging
import os
import re

from PIL import Image, UnidentifiedImageError
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r'^data:(?P<mime>image/[a-zA-Z0-9.+-]+);base64,(?P<data>.+)$', re.DOTALL)

EXTENSIONS = {
    'image/png': 'png',
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/webp': 'webp',
    'image/gif': 'gif',
}

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class InvalidImageError(ValueError):
    """The submitted value is not a usable base64 image"""


def _setting(name, default=''):
    return getattr(settings, name, None) or os.getenv(name, default)


def decode_data_url(data_url):
    """
    Split a ``data:image/<type>;base64,<payload>`` string.

    Returns:
        (mime type, raw bytes)

    Raises:
        InvalidImageError: malformed data URL, bad base64 or non-image payload
    """
    match = DATA_URL_RE.match((data_url or '').strip())
    if not match:
        raise InvalidImageError('Malformed data URL')

    mime = match.group('mime').lower()
    if mime not in EXTENSIONS:
        raise InvalidImageError(f'Unsupported image type: {mime}')

    try:
        raw = base64.b64decode(match.group('data'), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImageError('Invalid base64 payload')

    if not raw or len(raw) > MAX_IMAGE_BYTES:
        raise InvalidImageError('Image is empty or too large')

    try:
        Image.open(io.BytesIO(raw)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise InvalidImageError('Payload is not a valid image')

    return mime, raw


def upload_to_azure(path, raw, mime):
    from azure.storage.blob import BlobServiceClient, ContentSettings

    service = BlobServiceClient.from_connection_string(_setting('AZURE_STORAGE_CONNECTION_STRING'))
    blob = service.get_blob_client(container=_setting('AZURE_STORAGE_CONTAINER', 'contracts'), blob=path)
    blob.upload_blob(raw, overwrite=True, content_settings=ContentSettings(content_type=mime))
    return blob.url


def delete_from_azure(path):
    from azure.storage.blob import BlobServiceClient

    service = BlobServiceClient.from_connection_string(_setting('AZURE_STORAGE_CONNECTION_STRING'))
    service.get_blob_client(container=_setting('AZURE_STORAGE_CONTAINER', 'contracts'), blob=path).delete_blob()


def store_signature_image(contract_id, token, kind, mime, raw):
    """
    Store one decoded signing image under ``<contract>/<token>/<kind>_<timestamp>.<ext>``.

    Returns:
        (storage name, public URL); the name is what `discard_signature_images` takes
    """
    timestamp = int(timezone.now().timestamp() * 1000)
    path = f"{contract_id}/{token}/{kind}_{timestamp}.{EXTENSIONS[mime]}"

    if _setting('AZURE_STORAGE_CONNECTION_STRING'):
        name = path
        url = upload_to_azure(path, raw, mime)
    else:
        name = default_storage.save(f"contracts/{path}", ContentFile(raw))
        url = default_storage.url(name)

    logger.debug(f"Stored {kind} image for contract {contract_id} at {url}")
    return name, url


def discard_signature_images(names):
    """Remove images stored for a submission that was never recorded"""
    use_azure = bool(_setting('AZURE_STORAGE_CONNECTION_STRING'))
    for name in names:
        try:
            if use_azure:
                delete_from_azure(name)
            else:
                default_storage.delete(name)
        except Exception as e:
            logger.warning(f"Could not remove signing image {name}: {e}")
