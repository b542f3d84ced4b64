"""
Bullet normalization for client annotations.

Client bullets are stored as newline-separated text and capped to a short
list so the deck card stays scannable.
"""

import re

from ..config import config

MAX_CLIENT_BULLETS = config.MAX_CLIENT_BULLETS

_LINE_BREAK = re.compile(r'\r?\n')


def split_client_bullets(notes: str | None, limit: int = MAX_CLIENT_BULLETS) -> list[str]:
    """Split stored notes into at most `limit` trimmed, non-blank bullets."""
    if not notes:
        return []
    lines = (line.strip() for line in _LINE_BREAK.split(notes))
    return [line for line in lines if line][:limit]


def normalize_client_bullets(notes: str | None, limit: int = MAX_CLIENT_BULLETS) -> str | None:
    """
    Normalize free text into the stored bullet form.

    None stays None; text with no non-blank lines also collapses to None.
    """
    if notes is None:
        return None
    lines = split_client_bullets(notes, limit)
    return '\n'.join(lines) if lines else None


def has_reached_bullet_cap(count: int, limit: int = MAX_CLIENT_BULLETS) -> bool:
    return count >= limit
