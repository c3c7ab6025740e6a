"""
Drawn signature handling for the W-9 fill engine.

The widget sends a drawn signature as a PNG data URL; API callers may send
raw image bytes or bare base64. Anything Pillow can open is accepted.
"""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
from typing import Tuple, Union

from PIL import Image, UnidentifiedImageError

from export.w9_errors import ImageDecodeError


def signature_bytes(signature: Union[bytes, str]) -> bytes:
    """Raw image bytes from bytes, a ``data:`` URL, or bare base64."""
    if isinstance(signature, (bytes, bytearray)):
        return bytes(signature)
    text = (signature or "").strip()
    if not text:
        raise ImageDecodeError("Signature is empty")
    if text.startswith("data:"):
        _, _, text = text.partition(",")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Signature is not valid base64: {e}") from e


def decode_signature_image(signature: Union[bytes, str]) -> Image.Image:
    """
    Decode a drawn signature into an RGBA image.

    Raises:
        ImageDecodeError: the payload is not an image Pillow can read
    """
    raw = signature_bytes(signature)
    try:
        image = Image.open(BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode signature image: {e}") from e
    if image.width <= 0 or image.height <= 0:
        raise ImageDecodeError("Signature image has no pixels")
    return image.convert("RGBA")


def fit_within(size: Tuple[int, int], max_width: float, max_height: float) -> Tuple[float, float]:
    """Scale ``size`` to fit the box, preserving the aspect ratio."""
    width, height = size
    scale = min(max_width / width, max_height / height)
    return width * scale, height * scale
