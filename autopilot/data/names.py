"""
Player name normalization.

Providers disagree on punctuation, casing and suffixes
("A.J. Brown" vs "AJ Brown", "Kenneth Walker III" vs "Kenneth Walker"),
so membership checks always compare normalized names.
"""
import re
import unicodedata
from typing import Iterable


NAME_SUFFIXES = {"jr", "sr", "ii", "iii", "iv", "v"}

_NON_ALNUM = re.compile(r"[^a-z0-9 ]+")


def normalize_name(name: str) -> str:
    """Lowercase, strip accents and punctuation, drop generational suffixes."""
    text = unicodedata.normalize("NFKD", name or "")
    text = "".join(ch for ch in text if not unicodedata.combining(ch)).lower()
    text = text.replace("-", " ")
    text = _NON_ALNUM.sub("", text)
    tokens = [t for t in text.split() if t not in NAME_SUFFIXES]
    return " ".join(tokens)


def roster_contains(player_names: Iterable[str], name: str) -> bool:
    """True when `name` matches any roster name after normalization."""
    target = normalize_name(name)
    if not target:
        return False
    return any(normalize_name(n) == target for n in player_names)
