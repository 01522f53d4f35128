"""Slug normalisation for attribute labels and classification values."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None, separator: str = "_") -> str:
    """Lowercase, accent-free, ``separator``-joined identifier.

    ``"Último Evento"`` becomes ``"ultimo_evento"``. Empty or missing input
    yields an empty string, and slugifying a slug returns it unchanged.
    """
    if value is None:
        return ""
    folded = unicodedata.normalize("NFKD", str(value))
    folded = "".join(c for c in folded if not unicodedata.combining(c))
    return _NON_ALNUM_RE.sub(separator, folded.lower()).strip(separator)
