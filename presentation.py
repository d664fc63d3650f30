# presentation.py
"""Formatting and export helpers shared by the widgets. Everything here is pure."""
import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

from models import IMAGE_FIELDS, Countdown, TitleEntity

QUALITY_CAPABILITIES = [
    ("VIDEO_ULTRA_HD", "Ultra 4K HD"),
    ("VIDEO_HD", "HD"),
    ("VIDEO_SD", "SD"),
    ("VIDEO_DOLBY_VISION", "Dolby Vision"),
    ("VIDEO_HDR10_PLUS", "HDR10+"),
    ("VIDEO_HDR", "HDR"),
    ("AUDIO_DOLBY_ATMOS", "Dolby Atmos"),
    ("AUDIO_SPATIAL", "Spatial Audio"),
    ("AUDIO_FIVE_DOT_ONE", "5.1 Dolby"),
    ("OFFLINE_DOWNLOAD_AVAILABLE", "Downloads"),
]

EXAMPLE_IDS = ["82156122", "81767635", "80057281"]


def format_runtime(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parses an ISO-8601 timestamp (with or without a trailing Z) into an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: Optional[str]) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return "Invalid Date"
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def is_future(value: Optional[str], now: Optional[datetime] = None) -> bool:
    parsed = parse_timestamp(value)
    now = now or datetime.now(timezone.utc)
    return parsed is not None and parsed > now


def countdown(target: Optional[str], now: Optional[datetime] = None) -> Optional[Countdown]:
    """Time left until `target`, or None once it has been reached."""
    parsed = parse_timestamp(target)
    if parsed is None:
        return None
    now = now or datetime.now(timezone.utc)
    left = int((parsed - now).total_seconds())
    if left <= 0:
        return None
    days, left = divmod(left, 86400)
    hours, left = divmod(left, 3600)
    minutes, seconds = divmod(left, 60)
    return Countdown(days=days, hours=hours, minutes=minutes, seconds=seconds)


def quality_flags(entity: TitleEntity) -> List[tuple]:
    badges = set(entity.playback_badges)
    return [(label, key in badges) for key, label in QUALITY_CAPABILITIES]


def genre_tags(entity: TitleEntity) -> List[str]:
    evidence = entity.text_evidence
    if not evidence or not evidence[0].get("text"):
        return []
    return evidence[0]["text"].split(", ")


def artwork_items(entity: TitleEntity) -> List[Dict]:
    """Gallery entries for every image the source marks as available."""
    items = []
    for label, key in IMAGE_FIELDS:
        image = entity.image(key)
        if image and image.get("available"):
            items.append({
                "label": label,
                "url": image.get("url", ""),
                "width": image.get("width"),
                "height": image.get("height"),
            })
    return items


def export_json(entity: TitleEntity) -> str:
    return json.dumps(entity.raw, indent=2)


def export_markdown(entity: TitleEntity) -> str:
    qualities = ", ".join(label for label, enabled in quality_flags(entity) if enabled) or "None"
    advisory = entity.content_advisory
    reasons = "\n".join(f"- {text}" for text in entity.advisory_reasons)
    evidence = entity.text_evidence
    tags = (evidence[0].get("text") if evidence else None) or "None"
    return f"""# {entity.title} ({entity.latest_year})

## Overview
- **Video ID:** {entity.video_id}
- **Type:** {entity.typename}
- **Runtime:** {format_runtime(entity.runtime_sec)}
- **Available:** {'Yes' if entity.is_available else 'No'}
- **Release Date:** {format_date(entity.availability_start_time)}

## Quality
{qualities}

## Content Advisory
- **Rating:** {advisory.get('certificationValue') or 'N/A'}
- **Board:** {advisory.get('boardName') or 'N/A'}
{reasons}

## Tags
{tags}

---
*Exported from Netflix Metadata Explorer*
"""


def details_markdown(entity: TitleEntity) -> str:
    availability = "Available" if entity.is_available else "Unavailable"
    lines = [
        f"# {entity.title} ({entity.latest_year})",
        "",
        f"`{entity.typename} • {availability}`",
        "",
        f"- **Title ID**: `{entity.video_id}`",
        f"- **Runtime**: {format_runtime(entity.runtime_sec)}",
        f"- **Release Date**: {format_date(entity.availability_start_time)}",
        f"- **Maturity**: {entity.certification or '—'}",
    ]
    if entity.tagline:
        lines += ["", f"*{entity.tagline}*"]

    lines += ["", "## Title Info", "", "| Capability | |", "|---|---|"]
    lines += [f"| {label} | {'TRUE' if enabled else 'FALSE'} |" for label, enabled in quality_flags(entity)]

    if entity.advisory_reasons:
        advisory = entity.content_advisory
        lines += ["", "## Content Warnings", "",
                  f"**{advisory.get('certificationValue', '')}** {advisory.get('boardName', '')}", ""]
        lines += [f"- {text}" for text in entity.advisory_reasons]

    tags = genre_tags(entity)
    if tags:
        lines += ["", "## Genres & Tags", "", " · ".join(tags)]

    promo = entity.promo_video_id
    lines += [
        "", "## Technical", "",
        f"- **Video ID**: `{entity.video_id}`",
        f"- **Entity ID**: `{entity.unified_entity_id}`",
        f"- **Type**: {entity.typename}",
        f"- **Runtime (sec)**: {entity.runtime_sec}",
        f"- **Maturity Level**: {entity.content_advisory.get('maturityLevel', '')}",
        f"- **Watch Status**: {entity.watch_status.replace('_', ' ')}",
        f"- **In My List**: {'Yes' if entity.is_in_playlist else 'No'}",
        f"- **Promo Video**: {promo if promo is not None else '—'}",
    ]
    return "\n".join(lines)


def comparison_rows(entities: List[TitleEntity]) -> List[List[str]]:
    """Rows of the side-by-side table: one column per entity."""
    def has(entity, badge):
        return "Yes" if badge in entity.playback_badges else "No"

    return [
        ["Year", *[str(e.latest_year or "—") for e in entities]],
        ["Runtime", *[format_runtime(e.runtime_sec) for e in entities]],
        ["Rating", *[e.certification or "—" for e in entities]],
        ["4K", *[has(e, "VIDEO_ULTRA_HD") for e in entities]],
        ["HDR", *[has(e, "VIDEO_HDR") for e in entities]],
        ["Atmos", *[has(e, "AUDIO_DOLBY_ATMOS") for e in entities]],
    ]


def empty_state_markdown() -> str:
    examples = ", ".join(f"`{i}`" for i in EXAMPLE_IDS)
    return (
        "## Netflix Metadata Explorer\n\n"
        "Enter a Netflix Video ID to explore detailed metadata, quality info, and artwork.\n\n"
        "*Supports batch comparisons, shareable links, and export tools.*\n\n"
        f"**Try:** {examples}\n\n"
        "`Ctrl+K` Focus search · `Ctrl+T` Toggle theme · `Esc` Clear"
    )


def error_markdown(message: str) -> str:
    return f"## Something went wrong\n\n{message}\n\n*Check the Video ID and try again.*"
