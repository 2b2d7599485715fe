from __future__ import annotations

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def generate_slug(name: str | None) -> str:
    """'Pita & Ribbon' -> 'pita-ribbon'."""
    slug = _NON_ALNUM.sub("-", (name or "").lower())
    return slug.strip("-")
