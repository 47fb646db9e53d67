"""Map text onto the Latin-1 range the Base-14 fonts can draw."""

from __future__ import annotations

LATIN1_MAX_CODE_POINT = 0xFF

# Characters above U+00FF that have a plain replacement; anything else above
# the threshold is dropped.
REPLACEMENTS: dict[str, str] = {
    # quotes
    "“": '"',
    "”": '"',
    "„": '"',
    "‟": '"',
    "‘": "'",
    "’": "'",
    "‚": "'",
    "‛": "'",
    "‹": "'",
    "›": "'",
    # dashes
    "‐": "-",
    "‑": "-",
    "‒": "-",
    "–": "-",
    "—": "-",
    "―": "-",
    "−": "-",
    "…": "...",
    # bullets and markers
    "•": "*",
    "‣": "*",
    "⁃": "*",
    "◦": "*",
    "●": "*",
    "▪": "*",
    "■": "*",
    "□": "*",
    "♦": "*",
    "▲": "*",
    "△": "*",
    "▴": "*",
    "▵": "*",
    # spaces
    "\u2002": " ",
    "\u2003": " ",
    "\u2007": " ",
    "\u2009": " ",
    "\u200a": " ",
    "\u202f": " ",
}


def sanitize(text: str) -> str:
    """Return ``text`` with every character drawable in the Latin-1 encoding."""

    return "".join(
        char if ord(char) <= LATIN1_MAX_CODE_POINT else REPLACEMENTS.get(char, "")
        for char in text
    )
