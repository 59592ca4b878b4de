"""
Cloudinary helpers: unsigned image upload and URL-based enhancement.

Image enhancement never touches pixels here.  Cloudinary applies effects
named in the delivery URL, so an "enhanced" image is just the original
URL with an effect segment inserted after ``/upload/``.
"""
from __future__ import annotations

import requests
import structlog
from django.conf import settings

from core.exceptions import ImageUploadError

logger = structlog.get_logger(__name__)

UPLOAD_URL = 'https://api.cloudinary.com/v1_1/{cloud}/image/upload'

# effect name in the URL, allowed range
EFFECTS = {
    'brightness': ('e_brightness', -100, 100),
    'contrast': ('e_contrast', -100, 100),
    'saturation': ('e_saturation', -100, 100),
    'sharpness': ('e_sharpen', 0, 100),
}


def validate_upload(f) -> None:
    size_mb = (getattr(f, 'size', 0) or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValueError('File too large')
    ctype = getattr(f, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValueError('Unsupported file type')


def upload_image(f) -> str:
    """Upload ``f`` with the unsigned preset and return its ``secure_url``."""
    validate_upload(f)
    url = UPLOAD_URL.format(cloud=settings.CLOUDINARY_CLOUD_NAME)
    name = getattr(f, 'name', None) or 'upload.jpg'
    ctype = getattr(f, 'content_type', None) or 'image/jpeg'
    try:
        r = requests.post(
            url,
            data={'upload_preset': settings.CLOUDINARY_UPLOAD_PRESET},
            files={'file': (name, f, ctype)},
            timeout=settings.CLOUDINARY_TIMEOUT,
        )
        result = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning('cloudinary_upload_failed', error=str(e))
        raise ImageUploadError('Cloudinary upload failed') from e
    secure_url = result.get('secure_url')
    if secure_url:
        logger.info('cloudinary_upload_ok', public_id=result.get('public_id'), bytes=result.get('bytes'))
        return secure_url
    message = (result.get('error') or {}).get('message') or 'Cloudinary upload failed'
    logger.warning('cloudinary_upload_rejected', status_code=r.status_code, error=message)
    raise ImageUploadError(message)


def build_transformation(brightness: int = 0, contrast: int = 0, saturation: int = 0, sharpness: int = 0) -> str:
    """Return the effect segment, e.g. ``e_brightness:20,e_contrast:10``.

    Adjustments left at zero are omitted.  Out-of-range values raise
    ``ValueError``.
    """
    values = {'brightness': brightness, 'contrast': contrast, 'saturation': saturation, 'sharpness': sharpness}
    parts = []
    for key, value in values.items():
        effect, low, high = EFFECTS[key]
        value = int(value or 0)
        if not low <= value <= high:
            raise ValueError(f'{key} must be between {low} and {high}')
        if value != 0:
            parts.append(f'{effect}:{value}')
    return ','.join(parts)


def apply_transformations(image_url: str, **adjustments) -> str:
    transformation = build_transformation(**adjustments)
    if not transformation:
        return image_url
    parts = image_url.split('/upload/')
    if len(parts) != 2:
        return image_url
    return f'{parts[0]}/upload/{transformation}/{parts[1]}'
