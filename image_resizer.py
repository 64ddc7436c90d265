import base64
import binascii
import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from errors import MissingInput

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_DIMENSION = 1600


def decode_base64_image(data: str) -> bytes:
    """Accepts either bare base64 or a `data:image/...;base64,` URL."""
    if not data:
        raise MissingInput("No verification image was provided.")
    if data.startswith('data:'):
        data = data.split(',', 1)[-1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MissingInput("Verification image is not valid base64.") from e


def normalize_verification_image(image_bytes: bytes) -> bytes:
    """
    Re-encodes an uploaded photo as an RGB JPEG no larger than MAX_DIMENSION
    on its longest side, which is what the verification model is sent.
    """
    if not image_bytes:
        raise MissingInput("No verification image was provided.")
    if len(image_bytes) > MAX_UPLOAD_BYTES:
        raise MissingInput("Verification image is larger than 10MB.", {"sizeBytes": len(image_bytes)})

    try:
        with Image.open(BytesIO(image_bytes)) as img:
            if img.mode in ('RGBA', 'LA'):
                background = Image.new(img.mode[:-1], img.size, (255, 255, 255) if img.mode == 'RGBA' else 255)
                background.paste(img, mask=img.getchannel('A'))
                img = background
            img.thumbnail((MAX_DIMENSION, MAX_DIMENSION))
            output_buffer = BytesIO()
            img.convert('RGB').save(output_buffer, "JPEG", quality=85)
    except (UnidentifiedImageError, OSError) as e:
        logging.warning(f"Rejected verification upload that is not a readable image: {e}")
        raise MissingInput("Uploaded file is not a readable image.") from e

    return output_buffer.getvalue()
