# market/logic/images.py
# 아이템 이미지: 요청의 data URI/base64 → 원본 바이트, 응답 직전에만 다시 data URI
from __future__ import annotations

import base64
import binascii
import re
from typing import Iterable, List

from market.config import project_rules as R
from market.errors import ValidationError
from market.models import ItemImage

_DATA_URI = re.compile(r"^data:(?P<ctype>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)


def decode_image(data: str, content_type: str | None = None, filename: str | None = None, *, index: int = 0) -> ItemImage:
    raw = (data or "").strip()
    ctype = content_type
    m = _DATA_URI.match(raw)
    if m:
        raw = m.group("payload")
        ctype = ctype or m.group("ctype")

    try:
        blob = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image data is not valid base64")
    if not blob:
        raise ValidationError("Image data is empty")

    return ItemImage(
        data=blob,
        content_type=ctype or R.DEFAULT_IMAGE_CONTENT_TYPE,
        filename=filename or f"image-{index + 1}",
    )


def decode_images(images: Iterable) -> List[ItemImage]:
    """schemas.ImageIn 목록 → ItemImage 목록 (아직 세션에 붙이지 않음)"""
    out: List[ItemImage] = []
    for i, img in enumerate(images or []):
        out.append(decode_image(img.data, img.content_type, img.filename, index=i))
    return out


def encode_image(image: ItemImage) -> dict:
    payload = base64.b64encode(image.data).decode("ascii")
    return {
        "data": f"data:{image.content_type};base64,{payload}",
        "content_type": image.content_type,
        "filename": image.filename,
    }
