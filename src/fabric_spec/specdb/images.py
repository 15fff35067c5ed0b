from __future__ import annotations

import base64
import binascii
import io
import mimetypes
import os
import re
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import InputError
from ..logging import get_logger
from .constants import MAX_IMAGE_BYTES, MAX_IMAGE_SIDE


LOG = get_logger("fabric-spec-images")

_DATA_URL = re.compile(r"data:(image/[A-Za-z0-9.+-]+);base64,(.*)", re.DOTALL)


def parse_data_url(data_url: object) -> Tuple[str, bytes]:
    """Return (mime, bytes) for an image data URL; InputError otherwise."""
    if not isinstance(data_url, str) or not data_url.strip():
        raise InputError("Image is required")
    m = _DATA_URL.fullmatch(data_url.strip())
    if not m:
        raise InputError("이미지 파일만 업로드 가능합니다.")
    mime, b64 = m.groups()
    try:
        data = base64.b64decode(re.sub(r"\s+", "", b64), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputError("이미지 데이터를 읽을 수 없습니다.") from exc
    if not data:
        raise InputError("Image is required")
    return mime.lower(), data


def to_data_url(mime: str, data: bytes) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def shrink_data_url(
    data_url: str,
    *,
    max_bytes: int = MAX_IMAGE_BYTES,
    max_side: int = MAX_IMAGE_SIDE,
) -> str:
    """Downscale and recompress an oversized image; small images pass through.

    Fails with InputError rather than returning a payload still over max_bytes.
    """
    mime, data = parse_data_url(data_url)
    if len(data) <= max_bytes:
        return data_url

    LOG.info("Image is %.2f MiB; compressing to <= %.2f MiB", len(data) / 1048576, max_bytes / 1048576)
    try:
        with Image.open(io.BytesIO(data)) as im:
            im = ImageOps.exif_transpose(im)
            if im.mode not in ("RGB", "L"):
                im = im.convert("RGB")
            im.thumbnail((max_side, max_side))
            for quality in (85, 75, 65, 50):
                buf = io.BytesIO()
                im.save(buf, format="JPEG", quality=quality, optimize=True)
                out = buf.getvalue()
                if len(out) <= max_bytes:
                    LOG.info(
                        "Image compressed %.2f MiB -> %.2f MiB (quality=%d)",
                        len(data) / 1048576,
                        len(out) / 1048576,
                        quality,
                    )
                    return to_data_url("image/jpeg", out)
    except (UnidentifiedImageError, OSError) as exc:
        LOG.error("Image compression failed for %s payload: %s", mime, exc)
        raise InputError("이미지 압축 중 오류가 발생했습니다.") from exc

    raise InputError("이미지를 충분히 압축할 수 없습니다.")


def data_url_from_path(path: str) -> str:
    """Read an image file into a base64 data URL."""
    mime, _ = mimetypes.guess_type(path)
    if not mime:
        ext = os.path.splitext(path)[1].lower()
        if ext in {".jpg", ".jpeg", ".jpe", ".jfif"}:
            mime = "image/jpeg"
        elif ext == ".heic":
            mime = "image/heic"
    if not mime or not mime.startswith("image/"):
        LOG.error("Unsupported MIME type for extraction: %s", mime)
        raise InputError("이미지 파일만 업로드 가능합니다.")
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        LOG.error("Failed to read source file for data URL: %s", e)
        raise InputError(f"이미지 파일을 읽는 중 오류가 발생했습니다: {path}") from e
    return to_data_url(mime, data)
