from __future__ import annotations

import re
from typing import List

MIN_LENGTH = 12

_CHECKS = (
    (re.compile(r"[A-Z]"), "Password must contain an uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain a lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain a number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain a special character"),
)


def password_problems(password: str) -> List[str]:
    """Every rule the password breaks; empty when it is acceptable."""
    problems: List[str] = []
    if len(password or "") < MIN_LENGTH:
        problems.append(f"Password must be at least {MIN_LENGTH} characters")
    for pattern, message in _CHECKS:
        if not pattern.search(password or ""):
            problems.append(message)
    return problems
