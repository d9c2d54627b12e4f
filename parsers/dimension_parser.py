"""
Width/drop extraction from free-text product titles.

Blind and curtain titles carry their size inline:
    "Blackout Roller Blind Dark Grey 60cm x 160cm"
    "Day & Night Blind 90cm 210cm drop"
    "Vertical Blind 120cm"

Patterns are tried in order and the first match wins:
    1. <W>cm x <D>cm            → (W, D)
    2. <W>cm <D>cm [drop]       → (W, D)
    3. <W>cm                    → (W, None)
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Dimensions:
    """Width and drop in centimetres. Either may be None."""
    width: Optional[int] = None
    drop: Optional[int] = None

    def to_dict(self) -> dict:
        return {"width": self.width, "drop": self.drop}


DIMENSION_PATTERNS: list[re.Pattern] = [
    re.compile(r"(\d+)\s*cm\s*x\s*(\d+)\s*cm", re.IGNORECASE),
    re.compile(r"(\d+)\s*cm\s+(\d+)\s*cm(?:\s+drop\b)?", re.IGNORECASE),
    re.compile(r"(\d+)\s*cm", re.IGNORECASE),
]

# Any "60cm" / "60 cm" token, for diagnostics
_CM_TOKEN = re.compile(r"\d+\s*cm\b", re.IGNORECASE)


def extract_dimensions(title: Optional[str]) -> Dimensions:
    """
    Extract width and drop from a title.

    Args:
        title: Product title text

    Returns:
        Dimensions; both None when the title has no cm measurement
    """
    if not title:
        return Dimensions()

    for pattern in DIMENSION_PATTERNS:
        match = pattern.search(title)
        if not match:
            continue

        width = int(match.group(1))
        drop = int(match.group(2)) if pattern.groups > 1 else None
        return Dimensions(width=width, drop=drop)

    return Dimensions()


def has_dimension_token(text: Optional[str]) -> bool:
    """True if the text contains any "Ncm" token."""
    if not text:
        return False
    return bool(_CM_TOKEN.search(text))
