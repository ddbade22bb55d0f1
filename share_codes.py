"""Human-readable class share codes and share links.

Codes look like ``푸른하늘-1234``: easy to read aloud in class, not
guaranteed unique.
"""

from __future__ import annotations

import random
from urllib.parse import urlencode

ADJECTIVES = ["밝은", "기쁜", "행복한", "푸른", "빛나는", "함께하는", "꿈꾸는", "싱그러운"]
NOUNS = ["새싹", "열매", "나무", "하늘", "별빛", "구름", "햇살", "바다"]


def generate_class_code(rng: random.Random | None = None) -> str:
    rng = rng or random
    adj = rng.choice(ADJECTIVES)
    noun = rng.choice(NOUNS)
    return f"{adj}{noun}-{rng.randint(1000, 9999)}"


def share_url(base_url: str, code: str, param: str) -> str:
    """Link that opens the app already connected to ``code``."""
    return f"{base_url.rstrip('/')}/?{urlencode({param: code})}"
