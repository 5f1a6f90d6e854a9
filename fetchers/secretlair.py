# fetchers/secretlair.py
import datetime
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytz
import requests
from bs4 import BeautifulSoup
from tenacity import RetryError, retry, stop_after_attempt, wait_exponential_jitter

from core.errors import FetchError
from core.logger import get_logger
from core.models import ProductPage

logger = get_logger(__name__)

BASE_URL = os.getenv("SECRETLAIR_BASE_URL", "https://secretlair.wizards.com")
PRODUCT_PATH = "/us/product/"
SCALEFAST_URL = os.getenv(
    "SCALEFAST_URL",
    "https://storesearch.eu.scalefast.com/StoreSearch?userID=10751401&locale=en_US"
    "&currency=USD&crit=ALL&sort=release_date&count=50&env=prod&offset=",
)
PAGE_SIZE = 50
HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30"))
HTTP_MAX_ATTEMPTS = int(os.getenv("HTTP_MAX_ATTEMPTS", "5"))

# Bundles and special releases that are not a plain list of cards
SKIP_TITLE_MARKERS = (
    "Bundle",
    "BUNDLE",
    "Festival in a Box",
    "Transformers TCG",
    "DRAGON’S ENDGAME",
    "Secret Lair Commander Deck",
    "They're Just Like Us but",
    "Heads I Win, Tails",
    "Deluxe Collection",
    "Heroes of the Borderlands",
    "Welcome to the Hellfire Club",
    "D&D Sapphire Anniversary",
    "30th Anniversary Edition",
    "Japanese",
    " JP",
    " SP",
    "Countdown Kit",
)

SESSION = requests.Session()
SESSION.headers.update({
    "User-Agent": os.getenv(
        "SECRETLAIR_USER_AGENT",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    ),
})

_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)


@retry(wait=wait_exponential_jitter(initial=1, max=30), stop=stop_after_attempt(HTTP_MAX_ATTEMPTS))
def _fetch(url: str) -> requests.Response:
    r = SESSION.get(url, timeout=HTTP_TIMEOUT)
    r.raise_for_status()
    return r


def _get(url: str) -> requests.Response:
    try:
        return _fetch(url)
    except RetryError as e:
        raise FetchError(url, e.last_attempt.exception()) from e


def ensure_absolute_url(url: str) -> str:
    if url.startswith("/"):
        return BASE_URL + url
    return url


def product_url(product_id: str) -> str:
    return f"{BASE_URL}{PRODUCT_PATH}{product_id}"


def _fragment_text(fragment: str) -> str:
    return BeautifulSoup(fragment, "html.parser").get_text()


def parse_product_page(html: str, url: str) -> ProductPage:
    soup = BeautifulSoup(html, "html.parser")

    title_el = soup.select_one("h1.product-title")
    page = ProductPage(url=url, raw_title=title_el.get_text() if title_el is not None else "")

    page.lines = [li.get_text() for li in soup.select("div.force-overflow ul li")]

    # Older pages have no bullet points, just <br/> separated lines
    info = soup.select_one("div#collapse2 div.force-overflow p.product-information")
    if info is not None:
        page.fallback_lines = [
            _fragment_text(fragment) for fragment in _BR_RE.split(info.decode_contents())
        ]

    gallery_el = soup.select_one("h2.pdp_title")
    page.gallery_title = gallery_el.get_text() if gallery_el is not None else ""

    for anchor in soup.select("figure a"):
        href = anchor.get("href")
        if isinstance(href, str) and href:
            page.image_urls.append(ensure_absolute_url(href))

    logger.debug(
        "Parsed %s: %d lines, %d fallback lines, %d images",
        url, len(page.lines), len(page.fallback_lines), len(page.image_urls),
    )
    return page


def fetch_product_page(url: str) -> ProductPage:
    logger.info("Fetching product page %s", url)
    return parse_product_page(_get(url).text, url)


def fetch_image(url: str) -> bytes:
    return _get(url).content


@dataclass
class ListedProduct:
    product_id: str
    release_date: Optional[str] = None
    titles: List[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        return product_url(self.product_id)


def parse_release_date(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable release date %r", value)
        return None
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.strftime("%Y-%m-%d")


def parse_listing(data: Dict[str, Any]) -> List[ListedProduct]:
    products: List[ListedProduct] = []
    for raw in data.get("products") or []:
        if not isinstance(raw, dict) or not raw.get("productID"):
            continue
        titles = [
            str(desc.get("title") or "")
            for desc in raw.get("descriptions") or []
            if isinstance(desc, dict)
        ]
        products.append(
            ListedProduct(
                product_id=str(raw["productID"]),
                release_date=parse_release_date(raw.get("release_date")),
                titles=titles,
            )
        )
    return products


def fetch_listing(page: int) -> List[ListedProduct]:
    """One page of the store search, sorted by release date."""
    url = SCALEFAST_URL + str(page * PAGE_SIZE)
    try:
        data = _get(url).json()
    except ValueError as e:
        raise FetchError(url, e) from e
    if not isinstance(data, dict):
        raise FetchError(url, f"expected a JSON object, got {type(data).__name__}")
    products = parse_listing(data)
    logger.info("Store search page %d: %d products", page, len(products))
    return products


def should_skip(product: ListedProduct) -> bool:
    return any(marker in title for title in product.titles for marker in SKIP_TITLE_MARKERS)
