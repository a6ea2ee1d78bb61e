"""Fallback parser for inline ``MEDIA:`` tokens in reply text.

Used when the upstream pipeline loses the structured media fields of a reply,
for example during block streaming where final payloads may be dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

MEDIA_MARKER = "MEDIA"
MAX_MEDIA_REF_LENGTH = 4096

_TOKEN_RE = re.compile(rf"\b{MEDIA_MARKER}:\s*`?(.+?)`?(?=\s+{MEDIA_MARKER}:|$)")
_LEADING_QUOTES_RE = re.compile(r"^[`\"'\[{(]+")
_TRAILING_QUOTES_RE = re.compile(r"[`\"'\\})\],]+$")
_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_DRIVE_PATH_RE = re.compile(r"^[a-zA-Z]:[/\\]")
_BLANK_RUN_RE = re.compile(r"\n{2,}")


@dataclass(frozen=True)
class ExtractedMedia:
    cleaned_text: str
    media_urls: list[str] = field(default_factory=list)


def _clean_value(raw: str) -> str:
    value = _LEADING_QUOTES_RE.sub("", raw)
    return _TRAILING_QUOTES_RE.sub("", value).strip()


def _is_media_reference(value: str) -> bool:
    if not value or len(value) > MAX_MEDIA_REF_LENGTH:
        return False
    if ".." in value:
        return False
    return bool(
        _HTTP_URL_RE.match(value) or value.startswith("./") or value.startswith("/") or _DRIVE_PATH_RE.match(value)
    )


def extract_media_from_text(text: str) -> ExtractedMedia:
    """Pull media references out of marker lines.

    A marker line is removed only when at least one of its values is a valid
    reference; otherwise it is kept verbatim.
    """
    media_urls: list[str] = []
    kept_lines: list[str] = []

    for line in text.split("\n"):
        if not line.lstrip().startswith(f"{MEDIA_MARKER}:"):
            kept_lines.append(line)
            continue

        found_valid = False
        for match in _TOKEN_RE.finditer(line):
            value = _clean_value(match.group(1))
            if _is_media_reference(value):
                media_urls.append(value)
                found_valid = True

        if not found_valid:
            kept_lines.append(line)

    cleaned_text = _BLANK_RUN_RE.sub("\n", "\n".join(kept_lines)).strip()
    return ExtractedMedia(cleaned_text=cleaned_text, media_urls=media_urls)
