"""
Text helpers for Discord output: limits, escaping and compact list rendering.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import discord

EMBED_TITLE_LIMIT = 256
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FIELD_NAME_LIMIT = 256
EMBED_FIELD_VALUE_LIMIT = 1024
EMBED_FOOTER_LIMIT = 2048
EMBED_MAX_FIELDS = 25

EMOJI_CHECK = "✅"
EMOJI_CROSS = "❌"
EMOJI_BELL = "🔔"
EMOJI_WARNING = "⚠️"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)] + "…"


def escape(text: Optional[str]) -> str:
    return discord.utils.escape_markdown(text or "")


def format_id_list(ids: Iterable[int]) -> str:
    return ", ".join(f"`{i}`" for i in ids)


def join_lines(lines: List[str], limit: int) -> str:
    """Join lines, replacing the tail with an "and N more" marker once ``limit`` is near."""
    out: List[str] = []
    used = 0
    for index, line in enumerate(lines):
        cost = len(line) + (1 if out else 0)
        # keep room for the overflow marker
        if used + cost > limit - 24:
            out.append(f"… and {len(lines) - index} more")
            break
        out.append(line)
        used += cost
    return truncate("\n".join(out), limit)

