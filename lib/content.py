# =============================================================================
# lib/content.py - Drop Content Classification
# =============================================================================
# Pure helpers for presenting drop content to a verified recipient:
# - URL drops are rewritten to embeddable URLs (Google Docs/Slides/Sheets,
#   YouTube) or shown as a plain website
# - File drops are classified by extension so the client can pick a viewer
# - Durations and remaining time are formatted for display
# =============================================================================

import re
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import parse_qs, urlparse

_GOOGLE_DOC_ID = re.compile(r"/d/([a-zA-Z0-9_-]+)")
_YOUTU_BE_ID = re.compile(r"youtu\.be/([a-zA-Z0-9_-]+)")

FILE_TYPES: dict[str, tuple[str, ...]] = {
    "pdf": ("pdf",),
    "image": ("jpg", "jpeg", "png", "gif", "webp", "svg"),
    "video": ("mp4", "webm", "ogg"),
    "audio": ("mp3", "wav"),
    "text": ("txt", "md", "json", "csv"),
}


# =============================================================================
# URL Drops
# =============================================================================

def _google_id(url: str) -> str | None:
    match = _GOOGLE_DOC_ID.search(url)
    return match.group(1) if match else None


def _youtube_id(url: str) -> str | None:
    if "youtu.be/" in url:
        match = _YOUTU_BE_ID.search(url)
        return match.group(1) if match else None
    values = parse_qs(urlparse(url).query).get("v")
    return values[0] if values else None


def classify_url(url: str) -> dict[str, Any]:
    """
    Resolve how a masked URL should be embedded.

    Args:
        url: The URL stored on the drop

    Returns:
        Dict with:
        - content_type: google_doc, google_slides, google_sheets, youtube or website
        - embed_url: URL to put in the viewer
        - original_url: The URL as stored

    Example:
        classify_url("https://docs.google.com/document/d/abc123/edit")
        # {"content_type": "google_doc",
        #  "embed_url": "https://docs.google.com/document/d/abc123/preview", ...}
    """
    result = {"content_type": "website", "embed_url": url, "original_url": url}

    if "docs.google.com/document" in url:
        doc_id = _google_id(url)
        if doc_id:
            result["content_type"] = "google_doc"
            result["embed_url"] = f"https://docs.google.com/document/d/{doc_id}/preview"

    elif "docs.google.com/presentation" in url:
        doc_id = _google_id(url)
        if doc_id:
            result["content_type"] = "google_slides"
            result["embed_url"] = (
                f"https://docs.google.com/presentation/d/{doc_id}/embed"
                "?start=false&loop=false&delayms=3000"
            )

    elif "docs.google.com/spreadsheets" in url:
        doc_id = _google_id(url)
        if doc_id:
            result["content_type"] = "google_sheets"
            result["embed_url"] = f"https://docs.google.com/spreadsheets/d/{doc_id}/preview"

    elif "youtube.com/watch" in url or "youtu.be/" in url:
        video_id = _youtube_id(url)
        if video_id:
            result["content_type"] = "youtube"
            result["embed_url"] = f"https://www.youtube.com/embed/{video_id}?enablejsapi=1"

    return result


# =============================================================================
# File Drops
# =============================================================================

def file_extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def classify_file(path: str) -> str:
    """Map a storage path to pdf, image, video, audio, text or file."""
    ext = file_extension(path)
    for content_type, extensions in FILE_TYPES.items():
        if ext in extensions:
            return content_type
    return "file"


# =============================================================================
# Time Formatting
# =============================================================================

def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_duration_hours(hours: float) -> str:
    """
    Human-readable length of a personal timer.

    Example:
        format_duration_hours(5)   # "5 hours"
        format_duration_hours(48)  # "2 days"
        format_duration_hours(27)  # "1 day and 3 hours"
    """
    hours = int(hours)
    if hours < 24:
        return _plural(hours, "hour")
    days, remainder = divmod(hours, 24)
    if remainder == 0:
        return _plural(days, "day")
    return f"{_plural(days, 'day')} and {_plural(remainder, 'hour')}"


def format_time_remaining(expires_at: datetime, now: datetime) -> str:
    """
    Countdown text until `expires_at`.

    Shows "{d}d {h}h {m}m" when at least a day is left, otherwise
    "{h}h {m}m {s}s". Returns "Expired" once the deadline has passed.
    """
    remaining = expires_at - now
    if remaining <= timedelta(0):
        return "Expired"

    total_seconds = int(remaining.total_seconds())
    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    return f"{hours}h {minutes}m {seconds}s"


def format_file_size(size_mb: float) -> str:
    """Example: 12.34 -> "12.3 MB", 1536 -> "1.5 GB"."""
    if size_mb >= 1024:
        return f"{size_mb / 1024:.1f} GB"
    return f"{size_mb:.1f} MB"
