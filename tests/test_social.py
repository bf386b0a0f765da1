"""End-to-end tests for per-platform social output generation."""

import hashlib
import json

import pytest

from conftest import make_broken_png, write_upstream_manifest
from workshot.config import SocialConfig
from workshot.crossfade import TransitionResult
from workshot.errors import (
    ImageDecodeError,
    PathEscapeError,
    UnknownPlatformError,
    UpstreamMissingError,
)
from workshot.smart_crop import CropAdvice, CropRegion
from workshot.social import run_social


def _no_crop(before, after, panel_w, panel_h):
    return None


def _read_manifest(path):
    return json.loads(path.read_text())


def _sha256(path):
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _fake_transition(before, after, output):
    output.write_bytes(b"GIF89a fake")
    return TransitionResult(
        path=output, size_bytes=output.stat().st_size,
        frame_count=22, duration_ms=9100, width=720, height=540,
    )


class TestRunSocial:
    def test_writes_all_artifacts(self, job_dir):
        outputs = run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)

        platform_dir = job_dir / "output" / "social" / "nextdoor"
        assert [o.platform for o in outputs] == ["nextdoor"]
        assert (platform_dir / "image.jpg").exists()
        assert (platform_dir / "caption.txt").exists()
        assert (platform_dir / "manifest.json").exists()
        assert not (platform_dir / "transition.gif").exists()

        out = outputs[0]
        assert out.image_path == platform_dir / "image.jpg"
        assert (out.image_width, out.image_height) == (1200, 675)
        assert out.transition is None

    def test_manifest_schema(self, job_dir):
        run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)
        platform_dir = job_dir / "output" / "social" / "nextdoor"
        manifest = _read_manifest(platform_dir / "manifest.json")

        assert manifest["schemaVersion"] == "1.0"
        assert manifest["platform"] == "nextdoor"
        assert manifest["generatedAt"].endswith("Z")
        assert manifest["upstreamManifestRef"] == "../../manifest.json"
        assert manifest["image"] == {
            "path": "image.jpg",
            "width": 1200,
            "height": 675,
            "sizeBytes": (platform_dir / "image.jpg").stat().st_size,
            "format": "jpeg",
            "sha256": _sha256(platform_dir / "image.jpg"),
        }
        caption = (platform_dir / "caption.txt").read_text(encoding="utf-8")
        assert manifest["caption"] == {"path": "caption.txt", "charCount": len(caption)}
        assert "transition" not in manifest

    def test_caption_uses_job_metadata(self, job_dir):
        outputs = run_social(job_dir, ["facebook"], config=SocialConfig(), crop_advisor=_no_crop)
        caption = outputs[0].caption_path.read_text(encoding="utf-8")
        assert caption.startswith("Before & after from today's tree trim\n")
        assert "Cleared the oak over the driveway." in caption

    def test_platforms_in_request_order(self, job_dir):
        outputs = run_social(
            job_dir, ["facebook", "nextdoor"], config=SocialConfig(), crop_advisor=_no_crop,
        )
        assert [o.platform for o in outputs] == ["facebook", "nextdoor"]
        assert (outputs[0].image_width, outputs[0].image_height) == (1080, 1350)

    def test_default_advisor_without_key(self, job_dir):
        outputs = run_social(job_dir, ["nextdoor"], config=SocialConfig())
        assert len(outputs) == 1

    def test_crop_advisor_gets_panel_size(self, job_dir):
        seen = []

        def advisor(before, after, panel_w, panel_h):
            seen.append((before.name, after.name, panel_w, panel_h))
            return CropAdvice(
                before=CropRegion(0, 0, panel_w, panel_h),
                after=CropRegion(0, 0, panel_w, panel_h),
            )

        run_social(job_dir, ["nextdoor", "facebook"], config=SocialConfig(), crop_advisor=advisor)
        assert seen == [
            ("before.png", "after.png", 600, 675),
            ("before.png", "after.png", 1080, 675),
        ]

    def test_transition_enabled(self, job_dir):
        outputs = run_social(
            job_dir, ["nextdoor"],
            config=SocialConfig(transition_enabled=True),
            crop_advisor=_no_crop,
            transition_generator=_fake_transition,
        )
        platform_dir = job_dir / "output" / "social" / "nextdoor"
        manifest = _read_manifest(platform_dir / "manifest.json")
        assert manifest["transition"] == {
            "path": "transition.gif",
            "sizeBytes": len(b"GIF89a fake"),
            "frameCount": 22,
            "durationMs": 9100,
            "width": 720,
            "height": 540,
            "sha256": _sha256(platform_dir / "transition.gif"),
        }
        assert outputs[0].transition.frame_count == 22

    def test_transition_failure_omits_block(self, job_dir):
        outputs = run_social(
            job_dir, ["nextdoor"],
            config=SocialConfig(transition_enabled=True),
            crop_advisor=_no_crop,
            transition_generator=lambda before, after, output: None,
        )
        assert len(outputs) == 1
        manifest = _read_manifest(outputs[0].manifest_path)
        assert "transition" not in manifest

    def test_transition_disabled_never_called(self, job_dir):
        def explode(before, after, output):
            raise AssertionError("transition generated while disabled")

        run_social(
            job_dir, ["nextdoor"], config=SocialConfig(),
            crop_advisor=_no_crop, transition_generator=explode,
        )

    def test_rerun_overwrites(self, job_dir):
        first = run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)
        image_bytes = first[0].image_path.read_bytes()
        second = run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)
        assert second[0].image_path.read_bytes() == image_bytes

    def test_no_temp_files_left(self, job_dir):
        run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)
        platform_dir = job_dir / "output" / "social" / "nextdoor"
        assert sorted(p.name for p in platform_dir.iterdir()) == [
            "caption.txt", "image.jpg", "manifest.json",
        ]


class TestRunSocialErrors:
    def test_missing_upstream(self, job_dir):
        (job_dir / "output" / "manifest.json").unlink()
        with pytest.raises(UpstreamMissingError, match="Run the base pipeline first"):
            run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)

    def test_missing_upstream_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            run_social(tmp_path, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)

    def test_unknown_platform_writes_nothing(self, job_dir):
        with pytest.raises(UnknownPlatformError, match="myspace"):
            run_social(
                job_dir, ["nextdoor", "myspace"], config=SocialConfig(), crop_advisor=_no_crop,
            )
        assert not (job_dir / "output" / "social").exists()

    def test_source_escapes_job(self, job_dir, tmp_path):
        (tmp_path / "outside.png").write_bytes(b"")
        write_upstream_manifest(job_dir, before="../../outside.png")
        with pytest.raises(PathEscapeError):
            run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)

    def test_missing_source_image(self, job_dir):
        (job_dir / "after.png").unlink()
        with pytest.raises(FileNotFoundError, match="After image not found"):
            run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)

    def test_malformed_upstream(self, job_dir):
        (job_dir / "output" / "manifest.json").write_text(json.dumps({"jobId": "j"}))
        with pytest.raises(ValueError, match="no media pairs"):
            run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)

    def test_failure_isolated_to_platform(self, job_dir):
        def advisor(before, after, panel_w, panel_h):
            if panel_w == 600:
                raise ImageDecodeError("Before image could not be decoded")
            return None

        outputs = run_social(
            job_dir, ["nextdoor", "facebook"], config=SocialConfig(), crop_advisor=advisor,
        )
        social = job_dir / "output" / "social"
        assert [o.platform for o in outputs] == ["facebook"]
        assert not (social / "nextdoor" / "manifest.json").exists()
        assert (social / "facebook" / "manifest.json").exists()

    def test_failed_rerun_removes_stale_manifest(self, job_dir):
        run_social(job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=_no_crop)
        manifest = job_dir / "output" / "social" / "nextdoor" / "manifest.json"
        assert manifest.exists()

        def broken(before, after, panel_w, panel_h):
            raise ImageDecodeError("corrupt")

        assert run_social(
            job_dir, ["nextdoor"], config=SocialConfig(), crop_advisor=broken,
        ) == []
        assert not manifest.exists()

    def test_corrupt_source_fails_each_platform(self, job_dir):
        make_broken_png(job_dir / "before.png")
        outputs = run_social(
            job_dir, ["nextdoor", "facebook"], config=SocialConfig(), crop_advisor=_no_crop,
        )
        social = job_dir / "output" / "social"
        assert outputs == []
        assert not (social / "nextdoor" / "manifest.json").exists()
        assert not (social / "facebook" / "manifest.json").exists()
