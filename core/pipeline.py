# core/pipeline.py
"""
Per-product processing: page lines to Items, then numbers from Scryfall, OCR
and backfill, in that order. Each tier only fills numbers the previous ones
left empty.
"""
from typing import Callable, List, Optional, Sequence

from .canonical import LineCanonicalizer, TitleCanonicalizer, variant_flags
from .errors import MalformedLineError, NoItemsFoundError, StructuralMismatchError
from .logger import get_logger
from .matcher import resolve_from_index
from .models import AuthoritativeEntry, AuthoritativeNameMap, Item, Product, ProductPage
from .ocr import detect_fold_mode, fill_from_images, tesseract_recognize
from .reconcile import backfill

logger = get_logger(__name__)

# Pages that list every card of the drop once per copy shipped
SINGLE_COPY_MARKERS = ("Astrology Lands",)


def build_items(
    lines: Sequence[str],
    canonicalizer: LineCanonicalizer,
    single_copy: bool = False,
    strict: bool = True,
) -> List[Item]:
    items: List[Item] = []
    for line in lines:
        try:
            name, count = canonicalizer.canonicalize(line)
        except MalformedLineError as e:
            if strict:
                logger.warning("Skipping line %r: %s", line.strip(), e)
            else:
                logger.debug("Skipping line %r: %s", line.strip(), e)
            continue

        foil, etched, token = variant_flags(line)
        for _ in range(1 if single_copy else count):
            logger.debug("'%s'", name)
            items.append(
                Item(
                    name=name,
                    position=len(items),
                    foil=foil,
                    etched=etched,
                    token=token,
                )
            )
    return items


def build_product(
    page: ProductPage,
    line_canonicalizer: Optional[LineCanonicalizer] = None,
    title_canonicalizer: Optional[TitleCanonicalizer] = None,
    release_date: Optional[str] = None,
) -> Product:
    line_canonicalizer = line_canonicalizer or LineCanonicalizer()
    title_canonicalizer = title_canonicalizer or TitleCanonicalizer()

    filename, title = title_canonicalizer.canonicalize(page.raw_title)
    logger.info("%s", title)

    single_copy = any(marker in page.raw_title for marker in SINGLE_COPY_MARKERS)
    items = build_items(page.lines, line_canonicalizer, single_copy)
    if not items:
        items = build_items(page.fallback_lines, line_canonicalizer, single_copy, strict=False)
    if not items:
        raise NoItemsFoundError(f"no cards found for '{title}' at {page.url}")

    return Product(
        title=title,
        filename=filename,
        items=items,
        source=page.url,
        release_date=release_date,
    )


def resolve_numbers(
    product: Product,
    page: ProductPage,
    entries: Sequence[AuthoritativeEntry],
    search: Callable[[str], AuthoritativeNameMap],
    fetch_image: Optional[Callable[[str], bytes]] = None,
    recognize: Callable[[bytes], str] = tesseract_recognize,
) -> Product:
    """Run the three resolution tiers. OCR is skipped when fetch_image is None."""
    resolve_from_index(product, entries, search)

    if fetch_image is not None and product.missing_numbers():
        fold = detect_fold_mode(page.gallery_title, len(product.items))
        if fold:
            logger.debug("Gallery '%s' shows front and back, using every other image.", page.gallery_title)
        try:
            filled = fill_from_images(product, page.image_urls, fetch_image, recognize, fold)
            logger.info("OCR found %d numbers for '%s'.", filled, product.title)
        except StructuralMismatchError as e:
            logger.warning(
                "Found more images than loaded cards for '%s', something may be off: %s",
                product.title, e,
            )

    backfill(product.items)
    return product
