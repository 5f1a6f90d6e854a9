import argparse
import os
from typing import List, Optional, Sequence

from core import pipeline
from core.errors import FetchError, NoItemsFoundError
from core.logger import get_logger, set_level
from core.models import AuthoritativeEntry, Product
from core.output import OUTPUT_DIR, write_decklist
from fetchers import scryfall, secretlair

logger = get_logger(__name__)

OCR_ENABLED = os.getenv("OCR_ENABLED", "false").lower() == "true"


def scrape_product(
    entries: Sequence[AuthoritativeEntry],
    url: str,
    do_ocr: bool,
    release_date: Optional[str] = None,
) -> Product:
    """Fetch one product page and resolve its collector numbers."""
    page = secretlair.fetch_product_page(url)
    product = pipeline.build_product(page, release_date=release_date)
    return pipeline.resolve_numbers(
        product,
        page,
        entries,
        scryfall.search_uri,
        fetch_image=secretlair.fetch_image if do_ocr else None,
    )


def process_url(
    entries: Sequence[AuthoritativeEntry],
    url: str,
    do_ocr: bool,
    output_dir: str,
    release_date: Optional[str] = None,
) -> bool:
    try:
        product = scrape_product(entries, url, do_ocr, release_date)
    except (FetchError, NoItemsFoundError) as e:
        logger.error("Skipping %s: %s", url, e)
        return False

    try:
        write_decklist(product, output_dir)
    except OSError as e:
        logger.error("Failed to write decklist for '%s': %s", product.title, e)
        return False
    return True


def crawl(entries: Sequence[AuthoritativeEntry], start_page: int, do_ocr: bool, output_dir: str) -> int:
    """Walk the store search from start_page until it runs dry. Returns the next page."""
    page = start_page
    while True:
        try:
            listed = secretlair.fetch_listing(page)
        except FetchError as e:
            logger.error("Store search page %d failed: %s", page, e)
            break
        page += 1

        if not listed:
            break

        for product in listed:
            if secretlair.should_skip(product):
                logger.info("Skipping special release %s (%s)", product.product_id, product.titles)
                continue
            try:
                process_url(entries, product.url, do_ocr, output_dir, product.release_date)
            except Exception as e:
                logger.exception("Unhandled error processing %s: %s", product.url, e)

    return page


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Dump Secret Lair drops as decklists with collector numbers."
    )
    parser.add_argument("urls", nargs="*", help="Product pages to process instead of crawling the store.")
    parser.add_argument("--page", type=int, default=0, help="Which store search page to start from.")
    parser.add_argument(
        "--ocr",
        action="store_true",
        default=OCR_ENABLED,
        help="Enable OCR on card images to derive collector numbers.",
    )
    parser.add_argument("--output-dir", default=OUTPUT_DIR, help="Where decklists are written.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every card and OCR result.")
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        set_level("DEBUG")

    if not args.urls and args.page == 0:
        logger.error("Missing starting --page argument")
        return 1

    try:
        entries = scryfall.load_index()
    except FetchError as e:
        logger.error("Unable to query scryfall: %s", e)
        return 1

    if args.urls:
        ok = True
        for url in args.urls:
            try:
                ok = process_url(entries, url, args.ocr, args.output_dir) and ok
            except Exception as e:
                logger.exception("Unhandled error processing %s: %s", url, e)
                ok = False
        return 0 if ok else 1

    next_page = crawl(entries, args.page, args.ocr, args.output_dir)
    logger.info("In the future you can start from page %d", max(next_page - 2, 0))
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(run())
    except Exception as e:
        logger.exception("Fatal sldownloader error: %s", e)
        raise SystemExit(2)
