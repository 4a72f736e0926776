"""PNG decoding and TGA encoding on top of Pillow.

The converter only talks to :class:`ImageCodec`; :class:`PillowCodec` is the
stock implementation.  Every decoded image is normalised to RGBA so the TGA
writer always emits 32-bit files (GoldSrc / VGUI2 refuse 8-bit Targas).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

from PIL import Image

PathLike = Union[str, Path]

RGBA_CHANNELS = 4

# Errors Pillow raises for unreadable, corrupt or unwritable images.
# Broken PNG chunks surface as SyntaxError from the plugin's chunk reader.
PILLOW_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


class ConversionError(Exception):
    """Base error for anything that stops a single file from converting."""

    def __init__(self, path: PathLike, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class DecodeFailure(ConversionError):
    pass


class EncodeFailure(ConversionError):
    pass


@dataclass
class ImageBuffer:
    pixels: bytes
    width: int
    height: int
    channels: int = RGBA_CHANNELS

    def __post_init__(self):
        expected = self.width * self.height * self.channels
        if len(self.pixels) != expected:
            raise ValueError(
                f"Pixel data is {len(self.pixels)} bytes, expected {expected} "
                f"for {self.width}x{self.height}x{self.channels}."
            )


class ImageCodec(Protocol):
    def decode(self, path: PathLike) -> ImageBuffer: ...

    def encode(self, path: PathLike, buffer: ImageBuffer) -> None: ...


def ensure_rgba(img: Image.Image) -> Image.Image:
    # Preserve existing alpha; if none, add an opaque channel
    if img.mode == "RGBA":
        return img
    if img.mode == "RGB":
        rgba = Image.new("RGBA", img.size, (0, 0, 0, 255))
        rgba.paste(img)
        return rgba
    if img.mode in ("I", "F") or img.mode.startswith("I;16"):
        # 16-bit / float greyscale: squash to 8 bits before widening
        img = img.convert("I").point(lambda v: v * (1 / 256)).convert("L")
    return img.convert("RGBA")


class PillowCodec:
    """Decode anything Pillow can open and write TGA files.

    ``rle`` selects run-length encoded output (``compression="tga_rle"``),
    which is what most Targa writers emit by default.
    """

    def __init__(self, rle: bool = True):
        self.rle = rle

    def decode(self, path: PathLike) -> ImageBuffer:
        try:
            with Image.open(path) as img:
                rgba = ensure_rgba(img)
                width, height = rgba.size
                pixels = rgba.tobytes()
        except PILLOW_ERRORS as exc:
            raise DecodeFailure(path, str(exc) or type(exc).__name__) from exc
        return ImageBuffer(pixels, width, height, RGBA_CHANNELS)

    def encode(self, path: PathLike, buffer: ImageBuffer) -> None:
        if buffer.channels != RGBA_CHANNELS:
            raise EncodeFailure(path, f"expected {RGBA_CHANNELS} channels, got {buffer.channels}")
        try:
            img = Image.frombytes("RGBA", (buffer.width, buffer.height), buffer.pixels)
            img.save(path, format="TGA", compression="tga_rle" if self.rle else None)
        except PILLOW_ERRORS as exc:
            raise EncodeFailure(path, str(exc) or type(exc).__name__) from exc
