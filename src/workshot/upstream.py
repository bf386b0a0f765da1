"""Readers for records produced by the base pipeline.

The base pipeline writes <job>/output/manifest.json after building its
own composite. Only the fields the social layer needs are parsed:

  {
    "jobId": "...",
    "inputs": {
      "mediaPairs": [
        {"pairId": "pair-1", "before": "../before.jpg",
         "after": "../after.jpg", "mediaType": "photo"}
      ]
    }
  }

'before' and 'after' are relative to the output directory.

Job metadata comes from <job>/job.json ("work.service", "work.notes")
and is optional; it only enriches captions.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaPair:
    pair_id: str
    before: str
    after: str
    media_type: str = "photo"


@dataclass(frozen=True)
class UpstreamManifest:
    path: Path
    job_id: str
    media_pairs: tuple[MediaPair, ...]


@dataclass(frozen=True)
class JobMeta:
    service: str
    notes: str | None = None


def load_upstream_manifest(manifest_path: str | Path) -> UpstreamManifest:
    """Load and validate the base pipeline's manifest.

    Raises:
        FileNotFoundError: Missing manifest file.
        ValueError: Not JSON, or missing jobId / media pairs.
    """
    manifest_path = Path(manifest_path)
    with open(manifest_path, encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except ValueError as err:
            raise ValueError(f"Upstream manifest: invalid JSON ({err})") from err

    if not isinstance(raw, dict):
        raise ValueError("Upstream manifest: top level must be an object")

    job_id = raw.get("jobId")
    if not isinstance(job_id, str) or not job_id:
        raise ValueError("Upstream manifest: missing required field 'jobId'")

    inputs = raw.get("inputs")
    pairs_raw = inputs.get("mediaPairs") if isinstance(inputs, dict) else None
    if not isinstance(pairs_raw, list) or not pairs_raw:
        raise ValueError("Upstream manifest has no media pairs.")

    pairs = []
    for i, pair in enumerate(pairs_raw):
        prefix = f"Upstream manifest: media pair {i}"
        if not isinstance(pair, dict):
            raise ValueError(f"{prefix}: must be an object")
        for key in ("before", "after"):
            if not isinstance(pair.get(key), str) or not pair[key]:
                raise ValueError(f"{prefix}: missing required field '{key}'")
        pairs.append(MediaPair(
            pair_id=str(pair.get("pairId", f"pair-{i + 1}")),
            before=pair["before"],
            after=pair["after"],
            media_type=str(pair.get("mediaType", "photo")),
        ))

    return UpstreamManifest(
        path=manifest_path, job_id=job_id, media_pairs=tuple(pairs),
    )


def load_job_meta(job_dir: str | Path, fallback_service: str) -> JobMeta:
    """Read service label and notes from job.json, if it is usable.

    An absent or unreadable job.json is not an error: captions fall back
    to *fallback_service*.
    """
    job_json = Path(job_dir) / "job.json"
    if not job_json.exists():
        return JobMeta(service=fallback_service)

    try:
        with open(job_json, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as err:
        logger.warning("Ignoring unreadable %s: %s", job_json, err)
        return JobMeta(service=fallback_service)

    work = data.get("work") if isinstance(data, dict) else None
    if not isinstance(work, dict):
        return JobMeta(service=fallback_service)

    service = work.get("service")
    notes = work.get("notes")
    return JobMeta(
        service=service if isinstance(service, str) and service else fallback_service,
        notes=notes if isinstance(notes, str) and notes else None,
    )
