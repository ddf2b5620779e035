from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from quiklens.domain.entities.geometry import Dimensions
from quiklens.domain.errors import DecodeError


def decode_image(data: bytes) -> Image.Image:
    """Open image bytes with EXIF orientation applied."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError(f"Unsupported or corrupt image: {exc}") from exc
    fmt = img.format
    img = ImageOps.exif_transpose(img)
    # exif_transpose returns a copy without the original format
    img.format = fmt
    return img


def media_type_of(img: Image.Image) -> str:
    return Image.MIME.get(img.format or "", "image/png")


def dimensions_of(img: Image.Image) -> Dimensions:
    return Dimensions(width=img.width, height=img.height)


def probe_dimensions(data: bytes) -> Dimensions:
    return dimensions_of(decode_image(data))


def to_array(img: Image.Image) -> np.ndarray:
    """RGB float32 array in [0, 1], shape (H, W, 3)."""
    return np.asarray(img.convert("RGB")).astype(np.float32) / 255.0


def encode_array(array: np.ndarray, fmt: str = "PNG", quality: int = 95) -> bytes:
    arr = np.clip(array, 0.0, 1.0).astype(np.float32)
    if arr.ndim == 3:
        arr = arr[..., :3]
    # 2D arrays become mode L, (H, W, 3) arrays mode RGB
    img = Image.fromarray((arr * 255.0 + 0.5).astype("uint8"))
    return encode_image(img, fmt, quality)


def encode_image(img: Image.Image, fmt: str = "PNG", quality: int = 95) -> bytes:
    fmt = fmt.upper()
    if fmt in ("JPG", "JPEG"):
        fmt = "JPEG"
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
    buf = BytesIO()
    if fmt == "JPEG":
        img.save(buf, format=fmt, quality=quality)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()
