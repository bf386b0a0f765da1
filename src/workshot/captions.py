"""Platform-specific caption text.

Deterministic template, no LLM: the same job metadata and platform spec
always give the same caption.
"""

from .platforms import PlatformSpec
from .upstream import JobMeta


CALL_TO_ACTION = "If you've got a tree that needs attention, message us."

BASE_HASHTAGS = ("#beforeandafter",)


def build_hashtags(service: str) -> list[str]:
    """Fixed tags plus one derived from the service label."""
    slug = "".join(ch for ch in service.lower() if ch.isalnum())
    tags = list(BASE_HASHTAGS)
    if slug and f"#{slug}" not in tags:
        tags.append(f"#{slug}")
    return tags


def generate_social_caption(meta: JobMeta | None, spec: PlatformSpec) -> str:
    """Caption for one platform, truncated to its max length."""
    service = meta.service if meta and meta.service else "work"
    notes = meta.notes if meta else None

    lines = [f"Before & after from today's {service}"]
    if notes:
        lines.append(notes)
    lines.append(CALL_TO_ACTION)

    policy = spec.caption.hashtags
    if policy == "inline":
        lines[-1] = f"{lines[-1]} {' '.join(build_hashtags(service))}"
    elif policy == "block":
        lines.append("")
        lines.append(" ".join(build_hashtags(service)))

    caption = "\n".join(lines)

    limit = spec.caption.max_length
    if len(caption) > limit:
        caption = caption[:max(0, limit - 3)] + "..."
    return caption
