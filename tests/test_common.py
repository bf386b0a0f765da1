"""Tests for workshot.common utilities."""

import hashlib
import json

import pytest
from PIL import Image, ImageDraw

from conftest import BEFORE_COLOR, make_broken_png, make_image
from workshot.common import (
    image_size,
    load_font,
    open_image,
    parse_hex_color,
    sha256_file,
    write_json_atomic,
)
from workshot.errors import ImageDecodeError


class TestParseHexColor:
    def test_with_hash(self):
        assert parse_hex_color("#e04c77") == (224, 76, 119)

    def test_without_hash(self):
        assert parse_hex_color("1A1A1A") == (26, 26, 26)

    def test_white(self):
        assert parse_hex_color("#FFFFFF") == (255, 255, 255)


class TestLoadFont:
    def test_returns_usable_font(self):
        font = load_font(36)
        canvas = Image.new("RGB", (10, 10))
        bbox = ImageDraw.Draw(canvas).textbbox((0, 0), "AFTER", font=font)
        assert bbox[2] > bbox[0]


class TestOpenImage:
    def test_decodes_fully(self, tmp_path):
        path = make_image(tmp_path / "a.jpg", (64, 48), BEFORE_COLOR, fmt="JPEG")
        img = open_image(path)
        assert img.size == (64, 48)
        # Usable after the file handle is closed.
        path.unlink()
        assert img.getpixel((10, 10)) is not None

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageDecodeError, match="Before image could not be decoded"):
            open_image(tmp_path / "nope.jpg", label="Before image")

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "a.jpg"
        path.write_text("hello")
        with pytest.raises(ImageDecodeError):
            open_image(path)

    def test_broken_png_chunk(self, tmp_path):
        path = make_broken_png(tmp_path / "before.png")
        with pytest.raises(ImageDecodeError, match="Before image"):
            open_image(path, label="Before image")

    def test_decode_error_is_value_error(self, tmp_path):
        path = tmp_path / "a.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n")
        with pytest.raises(ValueError):
            open_image(path)


class TestImageSize:
    def test_reads_header(self, tmp_path):
        path = make_image(tmp_path / "a.png", (321, 123), BEFORE_COLOR)
        assert image_size(path) == (321, 123)


class TestSha256File:
    def test_matches_hashlib(self, tmp_path):
        path = tmp_path / "blob.bin"
        data = bytes(range(256)) * 5000
        path.write_bytes(data)
        assert sha256_file(path) == hashlib.sha256(data).hexdigest()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert sha256_file(path) == hashlib.sha256(b"").hexdigest()


class TestWriteJsonAtomic:
    def test_writes_indented_json(self, tmp_path):
        path = tmp_path / "manifest.json"
        write_json_atomic(path, {"a": 1, "b": [1, 2]})
        text = path.read_text()
        assert text.endswith("\n")
        assert json.loads(text) == {"a": 1, "b": [1, 2]}
        assert '  "a": 1' in text

    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text("old")
        write_json_atomic(path, {"new": True})
        assert json.loads(path.read_text()) == {"new": True}
        assert [p.name for p in tmp_path.iterdir()] == ["manifest.json"]

    def test_failure_leaves_no_temp_file(self, tmp_path):
        path = tmp_path / "manifest.json"
        with pytest.raises(TypeError):
            write_json_atomic(path, {"bad": object()})
        assert list(tmp_path.iterdir()) == []
