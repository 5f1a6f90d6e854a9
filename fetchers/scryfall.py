# fetchers/scryfall.py
import os
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from tenacity import (
    RetryError,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.errors import FetchError
from core.logger import get_logger
from core.models import AuthoritativeEntry, AuthoritativeNameMap

logger = get_logger(__name__)

SCRYFALL_SET_URL = os.getenv("SCRYFALL_SET_URL", "https://scryfall.com/sets/sld")
SCRYFALL_API_URL = os.getenv("SCRYFALL_API_URL", "https://api.scryfall.com")
HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30"))
HTTP_MAX_ATTEMPTS = int(os.getenv("HTTP_MAX_ATTEMPTS", "5"))
# Scryfall asks for 50-100ms between requests
SCRYFALL_MIN_SPACING = float(os.getenv("SCRYFALL_MIN_SPACING", "0.1"))

TITLE_SELECTOR = ".card-grid-header-content"
# Bonus cards are tracked in their own list
BONUS_PROMO_TYPE = "sldbonus"
# Older foil-only duplicates carry a star after the collector number
LEGACY_FOIL_SUFFIX = "★"
FACE_SEPARATOR = " // "

SESSION = requests.Session()
SESSION.headers.update({
    "User-Agent": "sldownloader/1.0",
    "Accept": "application/json;q=0.9,*/*;q=0.8",
})

_last_request_ts: float = 0.0


def _is_transient(exc: BaseException) -> bool:
    """Connection trouble, rate limiting and server errors are worth retrying."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


def _apply_spacing() -> None:
    global _last_request_ts
    since_last = time.time() - _last_request_ts
    if since_last < SCRYFALL_MIN_SPACING:
        time.sleep(SCRYFALL_MIN_SPACING - since_last)
    _last_request_ts = time.time()


@retry(
    wait=wait_exponential_jitter(initial=1, max=30),
    stop=stop_after_attempt(HTTP_MAX_ATTEMPTS),
    retry=retry_if_exception(_is_transient),
)
def _fetch_text(url: str) -> str:
    r = SESSION.get(url, timeout=HTTP_TIMEOUT)
    r.raise_for_status()
    return r.text


@retry(
    wait=wait_exponential_jitter(initial=1, max=30),
    stop=stop_after_attempt(HTTP_MAX_ATTEMPTS),
    retry=retry_if_exception(_is_transient),
)
def _fetch_json(url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    _apply_spacing()
    r = SESSION.get(url, params=params, timeout=HTTP_TIMEOUT)
    # A search without results is a 404 with an error object
    if r.status_code == 404:
        return {"data": [], "has_more": False}
    r.raise_for_status()
    return r.json()


def parse_index(html: str, base_url: str = SCRYFALL_SET_URL) -> List[AuthoritativeEntry]:
    """Card-grid headers of the set page, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    entries: List[AuthoritativeEntry] = []
    for header in soup.select(TITLE_SELECTOR):
        title = header.get_text().split("•")[0].strip()
        link = header.select_one("a[href]")
        href = link.get("href") if link is not None else ""
        uri = urljoin(base_url, href) if isinstance(href, str) and href else ""
        entries.append(AuthoritativeEntry(title=title, uri=uri))
    return entries


def load_index(url: str = SCRYFALL_SET_URL) -> Tuple[AuthoritativeEntry, ...]:
    try:
        html = _fetch_text(url)
    except (RetryError, requests.RequestException) as e:
        raise FetchError(url, e) from e

    entries = tuple(parse_index(html, url))
    logger.info("Loaded %d Scryfall sections from %s", len(entries), url)
    return entries


def query_from_uri(uri: str) -> str:
    """The 'q' search parameter of a Scryfall search link."""
    values = parse_qs(urlparse(uri).query).get("q")
    return values[0] if values else ""


def search(query: str) -> List[Dict[str, Any]]:
    """All prints matching query, in set/collector-number order."""
    url: Optional[str] = f"{SCRYFALL_API_URL}/cards/search"
    params: Optional[Dict[str, str]] = {
        "q": query,
        "unique": "prints",
        "order": "set",
        "dir": "asc",
        "include_extras": "true",
    }
    cards: List[Dict[str, Any]] = []

    while url:
        try:
            page = _fetch_json(url, params)
        except (RetryError, requests.RequestException, ValueError) as e:
            raise FetchError(url, e) from e
        cards.extend(page.get("data") or [])
        # next_page already carries every parameter
        url = page.get("next_page") if page.get("has_more") else None
        params = None

    logger.debug("Scryfall returned %d cards for %r", len(cards), query)
    return cards


def build_name_map(cards: List[Dict[str, Any]]) -> AuthoritativeNameMap:
    out: AuthoritativeNameMap = {}
    for card in cards:
        if BONUS_PROMO_TYPE in (card.get("promo_types") or []):
            continue
        number = str(card.get("collector_number") or "")
        if not number or number.endswith(LEGACY_FOIL_SUFFIX):
            continue

        # Only keep the front face
        name = str(card.get("name") or "").split(FACE_SEPARATOR)[0]
        # Upstream numbers each face separately
        if card.get("card_faces"):
            number += "a"

        out[name] = number
    return out


def search_uri(uri: str) -> AuthoritativeNameMap:
    """Rerun the search behind an index entry and map card names to numbers."""
    query = query_from_uri(uri)
    if not query:
        raise FetchError(uri, "no search query in link")
    return build_name_map(search(query))
