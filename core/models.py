# core/models.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Which resolution tier set an Item's number
SOURCE_SCRYFALL = "scryfall"
SOURCE_OCR = "ocr"
SOURCE_BACKFILL = "backfill"


@dataclass
class Item:
    """
    One card of a drop. position is the declaration order on the product page
    and is the only identity an Item has: image correspondence and numeric
    backfill both address Items by it.
    """
    name: str
    position: int
    number: str = ""
    source: str = ""
    foil: bool = False
    etched: bool = False
    token: bool = False


@dataclass
class Product:
    title: str
    filename: str
    items: List[Item] = field(default_factory=list)
    source: str = ""
    release_date: Optional[str] = None

    def missing_numbers(self) -> List[Item]:
        return [it for it in self.items if not it.number]


@dataclass(frozen=True)
class AuthoritativeEntry:
    """A card-grid header on the Scryfall set page and the search it links to."""
    title: str
    uri: str


# canonical card name -> collector number, built per successful match
AuthoritativeNameMap = Dict[str, str]


@dataclass
class ProductPage:
    """Raw pieces of a product page, before any cleanup."""
    url: str
    raw_title: str
    lines: List[str] = field(default_factory=list)
    fallback_lines: List[str] = field(default_factory=list)
    gallery_title: str = ""
    image_urls: List[str] = field(default_factory=list)
