"""Text chunking, markdown table conversion and render-mode detection."""

from __future__ import annotations

import re

from bub_feishu.config import ChunkMode, TableMode

_FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
_TABLE_HINT_RE = re.compile(r"\|.+\|[\r\n]+\|[-:| ]+\|")
_TABLE_BLOCK_RE = re.compile(
    r"(?:^[ \t]*\|.+\|[ \t]*\n)(?:^[ \t]*\|[-:| \t]+\|[ \t]*\n)(?:^[ \t]*\|.+\|[ \t]*(?:\n|$))*",
    re.MULTILINE,
)


def should_use_card(text: str) -> bool:
    """Whether text carries markdown that renders better in a card."""
    return bool(_FENCED_CODE_RE.search(text) or _TABLE_HINT_RE.search(text))


def chunk_text(text: str, limit: int, mode: ChunkMode = "length") -> list[str]:
    """Split text into ordered, non-empty chunks of at most ``limit`` characters."""
    if len(text) <= limit:
        return [text] if text.strip() else []
    if mode == "newline":
        return _chunk_by_paragraph(text, limit)
    return _chunk_by_length(text, limit)


def _chunk_by_length(text: str, limit: int) -> list[str]:
    chunks: list[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= limit:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, limit)
        if split_at <= 0:
            split_at = limit
        chunks.append(remaining[:split_at].rstrip())
        remaining = remaining[split_at:].lstrip("\n")
    return [chunk for chunk in chunks if chunk.strip()]


def _chunk_by_paragraph(text: str, limit: int) -> list[str]:
    chunks: list[str] = []
    current = ""
    for paragraph in re.split(r"\n\s*\n", text):
        if not paragraph.strip():
            continue
        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
            current = ""
        if len(paragraph) <= limit:
            current = paragraph
        else:
            chunks.extend(_chunk_by_length(paragraph, limit))
    if current:
        chunks.append(current)
    return chunks


def convert_markdown_tables(text: str, mode: TableMode = "bullets") -> str:
    """Rewrite markdown tables for clients that do not render them."""
    if mode == "off":
        return text
    return _TABLE_BLOCK_RE.sub(lambda match: _convert_table(match.group(0), mode), text)


def _split_row(line: str) -> list[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


def _convert_table(block: str, mode: TableMode) -> str:
    trailing = "\n" if block.endswith("\n") else ""
    lines = [line for line in block.splitlines() if line.strip()]
    if mode == "code":
        return "```\n" + "\n".join(line.strip() for line in lines) + "\n```" + trailing

    headers = _split_row(lines[0])
    rendered: list[str] = []
    for line in lines[2:]:
        cells = _split_row(line)
        parts = []
        for index, header in enumerate(headers):
            value = cells[index] if index < len(cells) else ""
            parts.append(f"{header}: {value}" if header else value)
        rendered.append("- " + "; ".join(parts))
    return "\n".join(rendered) + trailing
