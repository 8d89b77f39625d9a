"""Public form code generation."""
from __future__ import annotations

import logging
import random
from typing import Optional

from django.conf import settings

from .models import Form

logger = logging.getLogger(__name__)

CODE_DIGITS = 5


class CodeSpaceExhausted(Exception):
    """No free code could be found in any permitted width."""


def generate_unique_code(
    rng: Optional[random.Random] = None,
    attempts: Optional[int] = None,
    max_digits: Optional[int] = None,
) -> str:
    """Return a numeric code that no existing form uses.

    Candidates are drawn uniformly from the 5-digit range. After ``attempts``
    collisions the range widens by one digit, up to ``max_digits``.
    """

    rng = rng or random.SystemRandom()
    attempts = attempts or settings.FORM_CODE_ATTEMPTS
    max_digits = max_digits or settings.FORM_CODE_MAX_DIGITS

    for digits in range(CODE_DIGITS, max(max_digits, CODE_DIGITS) + 1):
        low, high = 10 ** (digits - 1), 10 ** digits - 1
        for _ in range(attempts):
            code = str(rng.randint(low, high))
            if not Form.objects.filter(code=code).exists():
                return code
        logger.warning("No free %d-digit form code after %d attempts", digits, attempts)

    raise CodeSpaceExhausted(f"No free form code up to {max_digits} digits")
