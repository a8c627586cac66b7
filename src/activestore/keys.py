"""
Record key helpers.

Keys are normalized before they reach a backend so that every backend stores
and compares the same values: ``"123"`` and ``123`` address the same record.
"""

import random
import re
import string
import time
import uuid
from typing import Any, Union

RecordKey = Union[str, int]

GENERATED_KEY_PREFIX = "generated_"

_INTEGER = re.compile(r"^\s*[+-]?\d+\s*$")
_BASE36 = string.digits + string.ascii_lowercase


def generate_new_id() -> str:
    """Generate a key that can always be told apart from keys supplied by callers."""
    return GENERATED_KEY_PREFIX + uuid.uuid4().hex[:12]


def generate_new_slug() -> str:
    """Generate a roughly time-ordered slug: unix seconds, random base36, year."""
    now = time.time()
    noise = "".join(random.choice(_BASE36) for _ in range(11))
    return f"{int(now)}{noise}{time.gmtime(now).tm_year}"


def is_generated_key(key: Any) -> bool:
    return key is not None and str(key).startswith(GENERATED_KEY_PREFIX)


def is_missing_key(key: Any) -> bool:
    return key is None or str(key).strip() == ""


def parse_key(key: Any) -> RecordKey:
    """
    Normalize a record key for storage.

    Absent and blank keys become ``""``, strings holding an integer become
    ``int`` and everything else is passed through as a string.
    """
    if is_missing_key(key):
        return ""

    if isinstance(key, bool):
        return str(key).lower()

    if isinstance(key, int):
        return key

    text = str(key)
    if _INTEGER.match(text):
        return int(text)

    return text
