"""RGBA pixel buffers and the Pillow/PNG/base64 conversions around them.

A pixel buffer is a flat ``bytes`` object, 4 bytes per pixel in RGBA order.
Pixel ``i`` occupies ``buf[4 * i : 4 * i + 4]``.
"""

from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from PIL import Image

PixelBuffer = Union[bytes, bytearray, memoryview]

BYTES_PER_PIXEL = 4
PNG_DATA_URL_PREFIX = "data:image/png;base64,"
OPAQUE_WHITE = (255, 255, 255, 255)


def pixel_count(buf: PixelBuffer) -> int:
    return len(buf) // BYTES_PER_PIXEL


def encode_b64(buf: PixelBuffer) -> str:
    return base64.b64encode(bytes(buf)).decode("ascii")


def decode_b64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise ValueError(f"invalid base64 pixel payload: {exc}") from exc


@dataclass(frozen=True)
class RgbaFrame:
    """Raw RGBA pixels together with the geometry needed to rebuild an image."""

    width: int
    height: int
    pixels: bytes

    @classmethod
    def from_image(cls, image: Image.Image) -> "RgbaFrame":
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls(width=rgba.width, height=rgba.height, pixels=rgba.tobytes())

    @classmethod
    def from_png(cls, data: bytes) -> "RgbaFrame":
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return cls.from_image(img)

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.pixels)

    @property
    def total_pixels(self) -> int:
        return pixel_count(self.pixels)


def load_png_file(path: str | Path) -> RgbaFrame:
    with Image.open(path) as img:
        img.load()
        return RgbaFrame.from_image(img)


def encode_png(frame: RgbaFrame) -> bytes:
    buf = io.BytesIO()
    frame.to_image().save(buf, format="PNG")
    return buf.getvalue()


def _flatten_onto_white(image: Image.Image, size: tuple[int, int]) -> bytes:
    rgba = image.convert("RGBA")
    if rgba.size != size:
        rgba = rgba.resize(size, Image.NEAREST)
    floor = Image.new("RGBA", size, OPAQUE_WHITE)
    floor.alpha_composite(rgba)
    return floor.tobytes()


def png_round_trip(frame: RgbaFrame) -> bytes:
    """Encode ``frame`` as PNG, decode it again and flatten it onto white."""
    with Image.open(io.BytesIO(encode_png(frame))) as decoded:
        decoded.load()
        return _flatten_onto_white(decoded, (frame.width, frame.height))


def to_data_url(frame: RgbaFrame) -> str:
    return PNG_DATA_URL_PREFIX + base64.b64encode(encode_png(frame)).decode("ascii")


def data_url_to_pixels(data_url: str, width: int, height: int) -> bytes:
    if not data_url.startswith(PNG_DATA_URL_PREFIX):
        raise ValueError("expected a PNG data URL")
    png = decode_b64(data_url[len(PNG_DATA_URL_PREFIX) :])
    with Image.open(io.BytesIO(png)) as decoded:
        decoded.load()
        return _flatten_onto_white(decoded, (width, height))
