"""Shared test fixtures for workshot tests."""

import json

import numpy as np
import pytest
from PIL import Image


BEFORE_COLOR = (34, 139, 34)     # green
AFTER_COLOR = (139, 69, 19)      # brown


def make_image(path, size, color, fmt=None):
    """Write a solid-color RGB image and return its path."""
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def make_broken_png(path, size=(400, 400)):
    """Write a PNG whose second IDAT chunk has an invalid chunk type.

    Noise keeps the image data from compressing into a single IDAT chunk.
    The header parses, and decoding fails partway through the pixels.
    """
    rng = np.random.default_rng(11)
    noise = rng.integers(0, 256, (size[1], size[0], 3), dtype=np.uint8)
    Image.fromarray(noise).save(path, format="PNG")

    data = bytearray(path.read_bytes())
    pos = 8
    idat_offsets = []
    while pos < len(data):
        length = int.from_bytes(data[pos:pos + 4], "big")
        if data[pos + 4:pos + 8] == b"IDAT":
            idat_offsets.append(pos)
        pos += 12 + length
    assert len(idat_offsets) > 1
    second = idat_offsets[1]
    data[second + 4:second + 8] = b"\xfc\xd9\xd2\x01"
    path.write_bytes(bytes(data))
    return path


@pytest.fixture
def before_image(tmp_path):
    """1200x900 green before photo."""
    return make_image(tmp_path / "before.png", (1200, 900), BEFORE_COLOR)


@pytest.fixture
def after_image(tmp_path):
    """1000x800 brown after photo."""
    return make_image(tmp_path / "after.png", (1000, 800), AFTER_COLOR)


def write_upstream_manifest(job_dir, before="../before.png", after="../after.png"):
    output_dir = job_dir / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    manifest = {
        "schemaVersion": "1.0",
        "jobId": "job-2026-02-14-001",
        "inputs": {
            "jobFile": "../job.json",
            "mediaPairs": [
                {"pairId": "pair-1", "before": before, "after": after, "mediaType": "photo"},
            ],
        },
    }
    path = output_dir / "manifest.json"
    path.write_text(json.dumps(manifest, indent=2))
    return path


@pytest.fixture
def job_dir(tmp_path):
    """A job folder whose base pipeline run has finished.

    Layout:
      job/before.png, job/after.png, job/job.json, job/output/manifest.json
    """
    job = tmp_path / "job"
    job.mkdir()
    make_image(job / "before.png", (1200, 900), BEFORE_COLOR)
    make_image(job / "after.png", (1000, 800), AFTER_COLOR)
    (job / "job.json").write_text(json.dumps({
        "schemaVersion": "1.0",
        "jobId": "job-2026-02-14-001",
        "work": {"service": "tree trim", "notes": "Cleared the oak over the driveway."},
    }))
    write_upstream_manifest(job)
    return job


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep a developer's real keys and toggles out of tests."""
    for var in ("GEMINI_API_KEY", "WORKSHOT_SOCIAL_GIF", "WORKSHOT_LOGO_PATH", "WORKSHOT_GEMINI_MODEL"):
        # setenv first so teardown also removes values loaded from a .env.
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
