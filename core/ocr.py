# core/ocr.py
"""
Collector numbers from card images.

Tesseract is restricted to digits plus the two glyphs that follow the collector
line on a Secret Lair card (™ and ©): once one of those shows up the number
region is over, so anything after it is artist or copyright text.
"""
import io
import re
from typing import Callable, Iterable, Sequence

import pytesseract
from PIL import Image

from .errors import FetchError, StructuralMismatchError
from .logger import get_logger
from .models import SOURCE_OCR, Product

logger = get_logger(__name__)

OCR_WHITELIST = "0123456789™©"
OCR_CONFIG = f"-c tessedit_char_whitelist={OCR_WHITELIST}"
TERMINATORS = ("™", "©")

_INTEGER_RE = re.compile(r"\d+", re.ASCII)
_GALLERY_COUNT_RE = re.compile(r"\((\d+)\)\s*$")


def extract_number(tokens: Iterable[str], min_len: int) -> str:
    for token in tokens:
        if token in TERMINATORS:
            return ""
        if len(token) > min_len and _INTEGER_RE.fullmatch(token):
            return token
    return ""


def number_from_text(text: str) -> str:
    tokens = text.split()
    return extract_number(tokens, 3) or extract_number(tokens, 2)


def tesseract_recognize(data: bytes) -> str:
    with Image.open(io.BytesIO(data)) as image:
        return pytesseract.image_to_string(image, config=OCR_CONFIG)


def detect_fold_mode(gallery_title: str, item_count: int) -> bool:
    """
    Galleries titled "... (N)" with N twice the card count show front and back
    of every card; only the front carries the number.
    """
    if " (" not in gallery_title:
        return False
    m = _GALLERY_COUNT_RE.search(gallery_title.strip())
    if not m:
        return False
    return int(m.group(1)) == 2 * item_count


def fill_from_images(
    product: Product,
    image_urls: Sequence[str],
    fetch_image: Callable[[str], bytes],
    recognize: Callable[[bytes], str] = tesseract_recognize,
    fold: bool = False,
) -> int:
    """
    OCR a number for every Item that still lacks one. Images line up with Item
    positions (two images per position in fold mode).

    Raises StructuralMismatchError when an image maps past the last Item; the
    numbers found up to that point stay assigned.
    """
    by_position = {item.position: item for item in product.items}
    filled = 0

    for index, url in enumerate(image_urls):
        position = index
        if fold:
            if index % 2:
                continue
            position = index // 2

        item = by_position.get(position)
        if item is None:
            raise StructuralMismatchError(
                f"image {index} ({url}) has no matching card; "
                f"{len(image_urls)} images for {len(product.items)} cards"
            )
        if item.number:
            continue

        # OSError covers unreadable or truncated images and a missing tesseract binary
        try:
            number = number_from_text(recognize(fetch_image(url)))
        except (FetchError, pytesseract.TesseractError, OSError) as e:
            logger.warning("OCR failed for '%s' image %s: %s", product.title, url, e)
            continue

        if not number:
            logger.debug("No number recognized for '%s' at %s", item.name, url)
            continue

        logger.debug("OCR number %s for '%s' (%s)", number, item.name, url)
        item.number = number
        item.source = SOURCE_OCR
        filled += 1

    return filled
