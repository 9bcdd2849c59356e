from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass

from PIL import Image, ImageOps

from ..core.exceptions import ValidationError

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def mirror_horizontally(image: Image.Image) -> Image.Image:
    """Flip left-right, the same transform a mirrored front-camera preview applies."""
    return ImageOps.mirror(image)


@dataclass(frozen=True)
class ImagePayload:
    """Encoded still image (a selfie) as stored on attendance records."""

    data: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_image(cls, image: Image.Image, *, quality: int = 85) -> "ImagePayload":
        buf = io.BytesIO()
        image.convert("RGB").save(buf, format="JPEG", quality=quality)
        return cls(data=buf.getvalue(), mime_type="image/jpeg")

    def to_image(self) -> Image.Image:
        return Image.open(io.BytesIO(self.data))

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImagePayload":
        m = _DATA_URI_RE.match(uri or "")
        if not m:
            raise ValidationError("Image is not a valid data URI")
        try:
            data = base64.b64decode(m.group("data"), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("Image is not a valid data URI") from e
        return cls(data=data, mime_type=m.group("mime"))
