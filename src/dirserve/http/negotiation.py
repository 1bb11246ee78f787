"""
=============================================================================
MEDIA TYPE NEGOTIATION
=============================================================================

Parses the ``Accept`` request header and picks the representation of a
directory listing.

    Accept: text/html,application/xhtml+xml;q=0.9,*/*;q=0.8
            ───┬───── ──────────┬──────────────── ───┬────
               │                │                    │
        AcceptEntry      AcceptEntry            AcceptEntry
        (text/html, 1.0) (application/..., 0.9) (*/*, 0.8)

Only exact media types count when choosing between the two listing
formats; wildcards never select HTML, so curl and friends get plain text.

=============================================================================
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"

LISTING_TYPES = (TEXT_PLAIN, TEXT_HTML)

# q-values have at most three decimals and never exceed 1 (RFC 7231 5.3.1).
QVALUE_PATTERN = re.compile(r"0(?:\.\d{0,3})?|1(?:\.0{0,3})?")


@dataclass(frozen=True)
class AcceptEntry:
    """One media range from an Accept header, with its weight."""

    media_type: str
    weight: float = 1.0


def parse_accept(header: Optional[str]) -> List[AcceptEntry]:
    """
    Parse an Accept header into entries, preserving document order.

    A missing or malformed ``q`` parameter means weight 1.0. Other
    parameters (``charset``, ``level``) are ignored.

    Args:
        header: Raw header value, or None when the header is absent.

    Returns:
        List of AcceptEntry, empty for an absent or blank header.

    Example:
        >>> parse_accept("text/html;q=0.5, text/plain")
        [AcceptEntry(media_type='text/html', weight=0.5),
         AcceptEntry(media_type='text/plain', weight=1.0)]
    """
    if not header or not header.strip():
        return []

    entries = []
    for part in header.split(","):
        media_type, *params = [p.strip() for p in part.split(";")]
        if not media_type:
            continue

        weight = 1.0
        for param in params:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q" and QVALUE_PATTERN.fullmatch(value.strip()):
                weight = float(value)

        entries.append(AcceptEntry(media_type.lower(), weight))
    return entries


def preferred_listing_type(entries: Sequence[AcceptEntry]) -> str:
    """
    Choose text/html or text/plain for a directory listing.

    The highest-weighted entry naming one of the two types wins; earlier
    entries win ties. Weight 0 means "not acceptable" and is skipped.
    Defaults to text/plain.
    """
    best = None
    for entry in entries:
        if entry.media_type not in LISTING_TYPES or entry.weight <= 0:
            continue
        if best is None or entry.weight > best.weight:
            best = entry
    return best.media_type if best else TEXT_PLAIN
