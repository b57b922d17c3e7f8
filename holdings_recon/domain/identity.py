"""Canonical identities for holding rows."""
from __future__ import annotations

import re

from .models import Identity

_LEADING = re.compile(r"^[.\s]+")
_TRAILING = re.compile(r"[.\s]+$")


def normalize_name(name: object) -> str:
    """Trim whitespace and any leading/trailing run of dots; inner punctuation stays."""
    if name is None:
        return ""
    n = str(name).strip()
    n = _LEADING.sub("", n)
    n = _TRAILING.sub("", n)
    return n.strip()


def _clean(value: object) -> str:
    if value is None:
        return ""
    s = str(value).strip()
    return "" if s.upper() == "NAN" else s


def identity_key(depository_id: object, client_id: object, name: object) -> Identity:
    return Identity(
        depository_id=_clean(depository_id),
        client_id=_clean(client_id),
        name=normalize_name(name),
    )
