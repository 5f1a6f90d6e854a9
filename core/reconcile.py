# core/reconcile.py
from typing import List, Optional

from .logger import get_logger
from .models import SOURCE_BACKFILL, SOURCE_SCRYFALL, Item

logger = get_logger(__name__)


def find_anchor(items: List[Item]) -> Optional[Item]:
    """Item with the longest number string; ties go to the earliest position."""
    anchor: Optional[Item] = None
    for item in sorted(items, key=lambda it: it.position):
        if item.number and (anchor is None or len(item.number) > len(anchor.number)):
            anchor = item
    return anchor


def parse_anchor(number: str) -> int:
    stripped = number.lstrip("0")
    if not stripped.isdigit() or not stripped.isascii():
        return 0
    return int(stripped)


def backfill(items: List[Item]) -> bool:
    """
    Derive the missing collector numbers from the most complete one.

    The longest recognized number is taken as the anchor and every other card
    gets anchor + (position - anchor position), which only holds when the drop
    is a single ascending run. Numbers that came from Scryfall are kept as they
    are. Returns True when numbers were rewritten.
    """
    if all(item.number for item in items):
        return False

    logger.info("Couldn't resolve all numbers, trying to backfill...")

    anchor = find_anchor(items)
    if anchor is None:
        logger.info("...worth a shot")
        return False

    value = parse_anchor(anchor.number)
    if value <= 0:
        logger.warning(
            "Backfill anchor %r at position %d is not a positive number; leaving numbers as-is.",
            anchor.number, anchor.position,
        )
        return False

    logger.debug("Backfilling from %r at position %d.", anchor.number, anchor.position)
    for item in items:
        if item.source == SOURCE_SCRYFALL:
            continue
        item.number = str(value + item.position - anchor.position)
        if item is not anchor:
            item.source = SOURCE_BACKFILL
    return True
