"""
Work item ID generation.

Work item IDs are short, human friendly tokens: ``A-`` followed by five
uppercase base36 characters (e.g. ``A-4K2ZQ``). They are generated on the
client, so uniqueness is only checked against the IDs the caller already
knows about. The remote store's primary key is the final arbiter; a clash
there surfaces as a failed insert.
"""

import random
import re
import string
from collections.abc import Collection

ID_PREFIX = "A-"
ID_LENGTH = 5
ID_ALPHABET = string.digits + string.ascii_uppercase

WORK_ITEM_ID_PATTERN = re.compile(rf"^{ID_PREFIX}[0-9A-Z]{{{ID_LENGTH}}}$")

MAX_ATTEMPTS = 10


class IdGenerationError(Exception):
    """Raised when no unused ID could be drawn."""

    pass


def generate_work_item_id(rng: random.Random | None = None) -> str:
    """
    Draw a new work item ID.

    Args:
        rng: Optional random source (tests pass a seeded Random)

    Returns:
        ID string such as ``A-4K2ZQ``
    """
    chooser = rng or random
    return ID_PREFIX + "".join(chooser.choices(ID_ALPHABET, k=ID_LENGTH))


def generate_unique_work_item_id(
    existing: Collection[str],
    rng: random.Random | None = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """
    Draw an ID that is not in ``existing``.

    With 36^5 (about 60 million) possible IDs a redraw is rare; the loop
    only guards against clashes with the local snapshot.

    Raises:
        IdGenerationError: If every attempt collided
    """
    for _ in range(max_attempts):
        candidate = generate_work_item_id(rng)
        if candidate not in existing:
            return candidate
    raise IdGenerationError(f"Could not draw an unused work item ID in {max_attempts} attempts")


def is_valid_work_item_id(value: str) -> bool:
    """Check whether a string has the work item ID format."""
    return bool(WORK_ITEM_ID_PATTERN.match(value))
