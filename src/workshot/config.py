"""Runtime configuration from environment variables.

  GEMINI_API_KEY          enables Gemini smart crop (unset = disabled)
  WORKSHOT_SOCIAL_GIF     1/true/yes/on enables crossfade transitions
  WORKSHOT_LOGO_PATH      logo image for composites (unset = built-in mark)
  WORKSHOT_GEMINI_MODEL   overrides the Gemini model name

Missing values are not errors; each one just leaves a feature off.

The CLI also reads a .env file (found from the working directory up)
before building the config. Variables already set in the environment win.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import find_dotenv, load_dotenv


TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SocialConfig:
    gemini_api_key: str | None = None
    transition_enabled: bool = False
    logo_path: Path | None = None
    gemini_model: str | None = None


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in TRUTHY


def load_config(environ: Mapping[str, str] | None = None) -> SocialConfig:
    """Build a SocialConfig from *environ* (defaults to os.environ)."""
    env = os.environ if environ is None else environ

    logo = (env.get("WORKSHOT_LOGO_PATH") or "").strip()
    return SocialConfig(
        gemini_api_key=(env.get("GEMINI_API_KEY") or "").strip() or None,
        transition_enabled=_flag(env.get("WORKSHOT_SOCIAL_GIF")),
        logo_path=Path(logo) if logo else None,
        gemini_model=(env.get("WORKSHOT_GEMINI_MODEL") or "").strip() or None,
    )


def load_env_file(path: str | Path | None = None) -> bool:
    """Load KEY=value pairs from a .env file into os.environ.

    Never overrides a variable that is already set. Returns False when no
    file was found.
    """
    path = path or find_dotenv(usecwd=True)
    if not path:
        return False
    return load_dotenv(path, override=False)
