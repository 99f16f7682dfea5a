"""Conversion between chainage in metres and the ``km+metres`` KP display form.

``format_chainage(5250)`` gives ``"5+250"`` and ``parse_chainage("5+250")`` gives
``5250``.  Whole metres parse to an ``int``, fractional ones to a ``float``.  Parsing is lenient because KPs are typed by hand in the field:

- ``"5+250"``, ``"5 + 250"``, ``"KP 5+250"`` and ``"5+250.4"`` are all accepted.
- A bare number ``>= 1000`` is taken as metres (``"5250"`` -> 5250).
- A bare number ``< 1000`` is taken as kilometres (``"6.5"`` -> 6500).

Anything else parses to ``None``; parsing never raises.
"""

from __future__ import annotations

import math
import re

_KP_RE = re.compile(r"^(?:KP\s*)?(\d+)\s*\+\s*(\d+(?:\.\d+)?)$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^(?:KP\s*)?(\d+(?:\.\d*)?|\.\d+)$", re.IGNORECASE)

BARE_METRES_THRESHOLD = 1000


def format_chainage(metres: float | None) -> str:
    """Format metres as ``"{km}+{mmm}"``; ``""`` for None, NaN, infinite or negative input.

    The value is rounded to the nearest whole metre (halves up) before it is
    split, so 999.6 formats as ``"1+000"``.
    """
    if metres is None or isinstance(metres, bool):
        return ""
    if isinstance(metres, int):
        # exact for integers a float cannot hold
        if metres < 0:
            return ""
        km, m = divmod(metres, 1000)
        return f"{km}+{m:03d}"
    try:
        value = float(metres)
    except (TypeError, ValueError):
        return ""
    if not math.isfinite(value) or value < 0:
        return ""

    km, m = divmod(math.floor(value + 0.5), 1000)
    return f"{km}+{m:03d}"


def parse_chainage(text: str | float | None) -> int | float | None:
    """Parse a hand-entered KP into metres, or ``None`` if it cannot be read."""
    if text is None or isinstance(text, bool):
        return None
    s = str(text).strip()
    if not s:
        return None

    match = _KP_RE.match(s)
    if match:
        km, m = match.groups()
        return int(km) * 1000 + (float(m) if "." in m else int(m))

    match = _NUMBER_RE.match(s)
    if match:
        num = float(match.group(1)) if "." in match.group(1) else int(match.group(1))
        return num if num >= BARE_METRES_THRESHOLD else num * 1000

    return None


def chainage_length(start_kp: str | None, end_kp: str | None) -> float | None:
    """Metres covered between two KPs, regardless of direction of travel."""
    start = parse_chainage(start_kp)
    end = parse_chainage(end_kp)
    if start is None or end is None:
        return None
    return abs(end - start)
