"""
phonetics.py
------------
Coarse phonetic similarity used as a fuzzy-match primitive by the intent
engine.

Both strings are folded to a rough French phonetic form (accents removed,
``ç→s``, ``ph→f``, ``qu→k``, non-alphanumerics dropped) and compared with a
Dice-like character-overlap coefficient.  Order-insensitive and cheap; not an
edit distance.
"""

import re

_ACCENT_TABLE = str.maketrans({
    "é": "e", "è": "e", "ê": "e", "ë": "e",
    "à": "a", "â": "a", "ä": "a",
    "ù": "u", "û": "u", "ü": "u",
    "ô": "o", "ö": "o",
    "î": "i", "ï": "i",
    "ç": "s",
})

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def simplify_phonetic(text: str) -> str:
    folded = (text or "").lower().translate(_ACCENT_TABLE)
    folded = folded.replace("ph", "f").replace("qu", "k")
    return _NON_ALNUM.sub("", folded)


def calculate_similarity(first: str, second: str) -> float:
    """
    Similarity in [0, 1] between two strings after phonetic folding.

    Returns 0.0 when either folded form is empty and 1.0 when both folded
    forms are identical.  Otherwise each distinct character of *first* can be
    matched once by a character of *second*:

        2 * common / (len(first) + len(second))
    """
    s1 = simplify_phonetic(first)
    s2 = simplify_phonetic(second)

    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0

    available = set(s1)
    common = 0
    for char in s2:
        if char in available:
            common += 1
            available.discard(char)

    return (2 * common) / (len(s1) + len(s2))
