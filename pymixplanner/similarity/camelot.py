"""
Camelot wheel relations between two keys.

Relations, strongest first:
- same: identical key
- compatible: one step around the wheel, same letter (8A -> 9A)
- relative: same number, other letter (8A -> 8B)
- harmonic: two steps around the wheel, same letter (8A -> 10A)
- clash: anything else, including keys that do not parse
"""

from __future__ import annotations

import re

from pymixplanner.analysis.constants import (
    KEY_SCORE_CLASH,
    KEY_SCORE_COMPATIBLE,
    KEY_SCORE_HARMONIC,
    KEY_SCORE_RELATIVE,
    KEY_SCORE_SAME,
)

_CAMELOT_RE = re.compile(r"^(\d{1,2})([AB])$")


def parse_camelot(key: str | None) -> tuple[int, str] | None:
    """'8A' -> (8, 'A'); None for anything that is not a Camelot key."""
    if not key:
        return None
    match = _CAMELOT_RE.match(key.strip().upper())
    if match is None:
        return None
    number = int(match.group(1))
    if not 1 <= number <= 12:
        return None
    return number, match.group(2)


def wheel_distance(a: int, b: int) -> int:
    """Steps between two wheel positions, wrapping 12 -> 1."""
    diff = abs(a - b) % 12
    return min(diff, 12 - diff)


def key_relation(key_a: str | None, key_b: str | None) -> tuple[float, str]:
    """Returns (similarity, relation label)."""
    parsed_a = parse_camelot(key_a)
    parsed_b = parse_camelot(key_b)
    if parsed_a is None or parsed_b is None:
        return KEY_SCORE_CLASH, "clash"

    (num_a, letter_a), (num_b, letter_b) = parsed_a, parsed_b
    steps = wheel_distance(num_a, num_b)

    if steps == 0 and letter_a == letter_b:
        return KEY_SCORE_SAME, "same"
    if steps == 1 and letter_a == letter_b:
        return KEY_SCORE_COMPATIBLE, "compatible"
    if steps == 0:
        return KEY_SCORE_RELATIVE, "relative"
    if steps == 2 and letter_a == letter_b:
        return KEY_SCORE_HARMONIC, "harmonic"
    return KEY_SCORE_CLASH, "clash"
