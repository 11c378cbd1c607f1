"""
Image handling for uploads and room labels.
Photos are downscaled and re-encoded as JPEG before they are stored.
"""
import io
import json
import os
from typing import Any, Dict, Optional

import qrcode
import structlog
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from ..config import settings


# HEIC/HEIF support for phone photos
register_heif_opener()

logger = structlog.get_logger(__name__)


def compress_image(image_bytes: bytes, max_dim: Optional[int] = None, quality: Optional[int] = None) -> bytes:
    """
    Downscale an image so its longest side fits ``max_dim`` and encode it as JPEG.

    Args:
        image_bytes: Original image bytes (any format Pillow can open)
        max_dim: Longest side in pixels (default from settings)
        quality: JPEG quality 1-95 (default from settings)

    Returns:
        JPEG bytes

    Raises:
        ValueError: when the bytes are not a readable image
    """
    max_dim = max_dim or settings.image_max_dim
    quality = quality or settings.image_jpeg_quality
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError("File is not a readable image") from e

    # Flatten transparency onto white
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        rgb_img = Image.new("RGB", img.size, (255, 255, 255))
        rgb_img.paste(img, mask=img.split()[-1])
        img = rgb_img
    elif img.mode != "RGB":
        img = img.convert("RGB")

    width, height = img.size
    if max(width, height) > max_dim:
        if width > height:
            new_size = (max_dim, int(height * max_dim / width))
        else:
            new_size = (int(width * max_dim / height), max_dim)
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    output = io.BytesIO()
    img.save(output, format="JPEG", quality=quality, optimize=True)
    compressed = output.getvalue()
    logger.info(
        "image_compressed",
        original_size=len(image_bytes),
        compressed_size=len(compressed),
        original_dimensions=f"{width}x{height}",
        dimensions=f"{img.size[0]}x{img.size[1]}",
    )
    return compressed


def jpeg_name(filename: Optional[str]) -> str:
    stem = os.path.splitext(filename or "image")[0] or "image"
    return f"{stem}.jpg"


def room_qr_png(room: Dict[str, Any], size: int = 300) -> bytes:
    """PNG QR code identifying a room, for door labels."""
    data = json.dumps({
        "roomId": room.get("$id"),
        "roomNumber": room.get("roomNumber"),
        "building": room.get("building"),
        "floor": room.get("floor"),
    }, separators=(",", ":"))

    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.resize((size, size), Image.Resampling.NEAREST)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
