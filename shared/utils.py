"""Shared utility functions for the field operations application.

This module contains image and data-URI helpers used by both the backend
and the field client.
"""

import base64
import binascii
import io
import logging
import re
from functools import lru_cache, wraps
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w-]+=[\w.-]+)*)(?P<base64>;base64)?,(?P<data>.*)$', re.DOTALL)

MIME_BY_FORMAT = {
    'JPEG': 'image/jpeg',
    'PNG': 'image/png',
    'WEBP': 'image/webp',
    'GIF': 'image/gif',
}


class CorruptedImageError(Exception):
    """Raised when image data is corrupted and cannot be processed."""
    pass


def handle_image_errors(func):
    """Decorator to handle image processing errors consistently.

    Converts Pillow decoding failures and malformed payloads into
    CorruptedImageError and logs them. The decorated function should accept
    image_path and/or image_data as keyword arguments for proper error
    message formatting.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        image_path = kwargs.get('image_path')
        image_data = kwargs.get('image_data')

        def log_and_raise(msg, exc):
            error_source = f"file '{image_path}'" if image_path else f"image data (size: {len(image_data) if image_data else 0} bytes)"
            logger.error(f"{msg} - {error_source}: {exc}")
            raise CorruptedImageError(f"{msg}: {exc}") from exc

        try:
            return func(*args, **kwargs)
        except CorruptedImageError:
            raise
        except UnidentifiedImageError as e:
            log_and_raise("Corrupted or unsupported image format", e)
        except FileNotFoundError:
            raise
        except OSError as e:
            log_and_raise("Corrupted image file", e)
        except (binascii.Error, ValueError) as e:
            log_and_raise("Error processing image", e)

    return wrapper


def is_data_uri(value):
    """Return True when value looks like an embedded ``data:`` payload."""
    return isinstance(value, str) and value.startswith('data:') and ',' in value


def encode_data_uri(data, mime_type):
    """Encode raw bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(uri):
    """Decode a data URI into ``(mime_type, bytes)``.

    Raises:
        ValueError: If the value is not a data URI or its payload is not valid base64
    """
    if not isinstance(uri, str):
        raise ValueError("Data URI must be a string")
    match = DATA_URI_PATTERN.match(uri.strip())
    if not match:
        raise ValueError("Value is not a data URI")
    mime_type = match.group('mime') or 'text/plain'
    payload = match.group('data')
    if match.group('base64'):
        try:
            return mime_type, base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
    return mime_type, payload.encode('utf-8')


@lru_cache(maxsize=128)
def calculate_fit_size(original_width, original_height, max_size):
    """Calculate dimensions fitting inside ``max_size`` while keeping aspect ratio.

    Cached since photo batches from one camera share dimensions.

    Returns:
        tuple: (width, height); unchanged when already small enough
    """
    if original_width <= max_size and original_height <= max_size:
        return (original_width, original_height)

    ratio = min(max_size / original_width, max_size / original_height)
    return (max(1, int(original_width * ratio)), max(1, int(original_height * ratio)))


@handle_image_errors
def normalize_image(image_data=None, image_path=None, max_size=1600, output_format='JPEG', quality=85):
    """Decode an image, downscale it and return it as a data URI.

    Args:
        image_data (bytes, optional): Raw image bytes
        image_path (str, optional): Path to an image file on disk
        max_size (int): Longest edge of the output image
        output_format (str): Pillow format name, JPEG for photos and PNG for drawings
        quality (int): JPEG quality

    Returns:
        str: data URI of the normalized image

    Raises:
        CorruptedImageError: When the image cannot be decoded
    """
    if not image_data and not image_path:
        raise ValueError("normalize_image called without image_data or image_path")

    if image_path:
        img = Image.open(image_path)
    else:
        img = Image.open(io.BytesIO(image_data))
    img.load()

    new_size = calculate_fit_size(img.width, img.height, max_size)
    if new_size != img.size:
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    # JPEG has no alpha channel
    if output_format == 'JPEG' and img.mode in ('RGBA', 'P', 'LA'):
        img = img.convert('RGB')

    buffer = io.BytesIO()
    if output_format == 'JPEG':
        img.save(buffer, format=output_format, quality=quality)
    else:
        img.save(buffer, format=output_format)
    return encode_data_uri(buffer.getvalue(), MIME_BY_FORMAT.get(output_format, 'application/octet-stream'))


@handle_image_errors
def open_data_uri_image(image_data=None):
    """Open a data URI payload as a loaded Pillow image."""
    _, raw = decode_data_uri(image_data)
    img = Image.open(io.BytesIO(raw))
    img.load()
    return img
