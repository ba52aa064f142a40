"""
Image intake: validate an uploaded image and encode it as a base64 data URL
the inference service accepts.
"""

import base64
import io
import re
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from picschedule.errors import InvalidImageError
from picschedule.event_models import ExtractionRequest
from picschedule.logging_helper import Log

# Maximum upload size accepted from the user
MAX_UPLOAD_SIZE = 10 * 1024 * 1024
# Maximum encoded image size in bytes (20MB - provider limit)
MAX_IMAGE_SIZE = 20 * 1024 * 1024
# Maximum image dimensions (prevent extremely large images)
MAX_IMAGE_DIMENSION = 10000

_DATA_URL = re.compile(r"^data:image/(jpeg|png|gif|bmp|webp);base64,(?P<data>[A-Za-z0-9+/=]+)$", re.IGNORECASE)


def validate_data_url(image_data: Optional[str]) -> bool:
    """Check for a data:image/<fmt>;base64, prefix followed by base64 characters."""
    if not image_data:
        return False
    return _DATA_URL.match(image_data) is not None


def _validate_image(image: Image.Image) -> None:
    """
    Validate image before encoding.

    Raises:
        InvalidImageError: image is empty or unreadable
    """
    width, height = image.size
    if width == 0 or height == 0:
        raise InvalidImageError(f"Invalid image dimensions: {width}x{height}")

    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        Log.warn(f"Image too large: {width}x{height}, may need resizing")
        # Continue anyway - the provider downsamples large images


def _image_to_base64(image: Image.Image) -> str:
    """
    Convert PIL Image to a base64 encoded JPEG.

    Raises:
        InvalidImageError: image cannot be encoded under MAX_IMAGE_SIZE
    """
    # Convert to RGB if necessary (removes transparency)
    if image.mode != 'RGB':
        image = image.convert('RGB')

    buffer = io.BytesIO()
    # Use JPEG format with quality 85 to reduce size
    image.save(buffer, format='JPEG', quality=85, optimize=True)
    image_bytes = buffer.getvalue()

    if len(image_bytes) > MAX_IMAGE_SIZE:
        Log.warn(f"Image size {len(image_bytes)} bytes exceeds limit, compressing...")
        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=60, optimize=True)
        image_bytes = buffer.getvalue()

        if len(image_bytes) > MAX_IMAGE_SIZE:
            raise InvalidImageError(f"Image too large even after compression: {len(image_bytes)} bytes")

    base64_string = base64.b64encode(image_bytes).decode('utf-8')
    Log.info(f"Image converted to base64: {len(base64_string)} chars")
    return base64_string


def request_from_bytes(data: bytes, filename: Optional[str] = None) -> ExtractionRequest:
    """
    Build an ExtractionRequest from raw image bytes.

    Args:
        data: Image file contents (any format Pillow reads)
        filename: Original filename, kept for logs

    Returns:
        ExtractionRequest with a JPEG data URL

    Raises:
        InvalidImageError: empty, oversized or unreadable image
    """
    if not data:
        raise InvalidImageError("No image provided")
    if len(data) > MAX_UPLOAD_SIZE:
        raise InvalidImageError("Image file too large. Please select a file under 10MB.")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            _validate_image(image)
            encoded = _image_to_base64(image)
    except (UnidentifiedImageError, OSError) as e:
        Log.kv({"stage": "image", "result": "failed", "reason": "unreadable", "filename": filename})
        raise InvalidImageError(f"Invalid or malformed image data: {e}") from e

    Log.kv({"stage": "image", "result": "encoded", "filename": filename, "chars": len(encoded)})
    return ExtractionRequest(image_data=f"data:image/jpeg;base64,{encoded}", filename=filename)


def request_from_path(path: Union[str, Path]) -> ExtractionRequest:
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise InvalidImageError(f"Cannot read image file {path}: {e}") from e
    return request_from_bytes(data, filename=path.name)
