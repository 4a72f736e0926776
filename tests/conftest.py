import io
import os
import struct
import zlib
from pathlib import Path

import pytest
from PIL import Image

from png2tga_codec import DecodeFailure, EncodeFailure, ImageBuffer


@pytest.fixture
def make_png():
    def _make(path: Path, mode: str = "RGB", size=(8, 4), color=None) -> Path:
        if color is None:
            color = {"L": 128, "LA": (128, 200), "P": 3, "RGB": (10, 20, 30), "RGBA": (10, 20, 30, 40)}[mode]
        img = Image.new(mode, size, color)
        if mode == "P":
            img.putpalette([i % 256 for i in range(768)])
        img.save(path, format="PNG")
        return path

    return _make


class FakeCodec:
    """Records calls; writes a marker file instead of a real TGA."""

    def __init__(self, fail_decode=(), fail_encode=()):
        self.decoded = []
        self.encoded = []
        self.fail_decode = {Path(p) for p in fail_decode}
        self.fail_encode = {Path(p) for p in fail_encode}

    def decode(self, path):
        path = Path(path)
        self.decoded.append(path)
        if path in self.fail_decode:
            raise DecodeFailure(path, "bad data")
        return ImageBuffer(b"\x00\x00\x00\xff", 1, 1)

    def encode(self, path, buffer):
        path = Path(path)
        if path in self.fail_encode:
            raise EncodeFailure(path, "disk full")
        path.write_bytes(b"converted")
        self.encoded.append(path)


@pytest.fixture
def fake_codec():
    return FakeCodec


def _chunk(cid: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + cid + data + struct.pack(">I", zlib.crc32(cid + data))


@pytest.fixture
def make_broken_png():
    """PNG whose pixel data is split over two IDAT chunks, the second with a
    mangled chunk type, so it opens fine and fails mid-``load()``."""

    def _make(path: Path, size=(32, 32)) -> Path:
        buf = io.BytesIO()
        Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3)).save(buf, format="PNG")
        raw = buf.getvalue()

        chunks = []
        pos = 8
        while pos < len(raw):
            length, cid = struct.unpack(">I4s", raw[pos:pos + 8])
            chunks.append((cid, raw[pos + 8:pos + 8 + length]))
            pos += 12 + length

        idat = b"".join(data for cid, data in chunks if cid == b"IDAT")
        half = len(idat) // 2
        out = raw[:8]
        for cid, data in chunks:
            if cid == b"IDAT":
                continue
            if cid == b"IEND":
                out += _chunk(b"IDAT", idat[:half]) + _chunk(b"I\x00AT", idat[half:])
            out += _chunk(cid, data)

        path.write_bytes(out)
        return path

    return _make
