# core/matcher.py
from typing import Callable, Iterable, Iterator, Sequence

from rapidfuzz.distance import LCSseq

from .errors import FetchError
from .logger import get_logger
from .models import SOURCE_SCRYFALL, AuthoritativeEntry, AuthoritativeNameMap, Product

logger = get_logger(__name__)

# Cosmetic variants that Scryfall groups under the base drop name
MATCH_STRIP_SUFFIXES = (" Foil Edition", " Raised", " Galaxy")


def match_title(display_title: str, suffixes: Sequence[str] = MATCH_STRIP_SUFFIXES) -> str:
    for suffix in suffixes:
        display_title = display_title.replace(suffix, "")
    return display_title


def is_subsequence(source: str, target: str) -> bool:
    """True when every character of source appears in target, in order."""
    return LCSseq.similarity(source, target) == len(source)


def titles_match(title: str, entry_title: str) -> bool:
    a = title.lower()
    b = entry_title.lower()
    return is_subsequence(a, b) or b in a or a in b


def matching_entries(
    title: str, entries: Iterable[AuthoritativeEntry]
) -> Iterator[AuthoritativeEntry]:
    for entry in entries:
        if titles_match(title, entry.title):
            yield entry


def apply_name_map(product: Product, name_map: AuthoritativeNameMap) -> int:
    """Number every still-empty Item whose name is a key. Returns how many."""
    numbered = 0
    for item in product.items:
        if item.number:
            continue
        number = name_map.get(item.name, "")
        if number:
            item.number = number
            item.source = SOURCE_SCRYFALL
            numbered += 1
    return numbered


def resolve_from_index(
    product: Product,
    entries: Sequence[AuthoritativeEntry],
    search: Callable[[str], AuthoritativeNameMap],
) -> bool:
    """
    Find the first index entry matching the product and apply its card numbers.

    A failed query moves on to the next matching entry. Returns False when no
    entry matched or every query failed; the Items are then left untouched.
    """
    title = match_title(product.title)

    for entry in matching_entries(title, entries):
        try:
            name_map = search(entry.uri)
        except FetchError as e:
            logger.warning(
                "Scryfall query for '%s' (matched '%s') failed: %s",
                product.title, entry.title, e,
            )
            continue

        logger.info("Found these possible card numbers: %s", name_map)
        numbered = apply_name_map(product, name_map)
        logger.info(
            "Matched '%s' to Scryfall section '%s'; numbered %d/%d cards.",
            title, entry.title, numbered, len(product.items),
        )
        return True

    logger.warning("%s was not found, no numbers available!", title)
    return False
