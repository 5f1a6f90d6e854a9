import pytest

from core.canonical import LineCanonicalizer
from core.errors import NoItemsFoundError
from core.models import SOURCE_OCR, SOURCE_SCRYFALL, AuthoritativeEntry, ProductPage
from core.pipeline import build_items, build_product, resolve_numbers


def make_page(lines=(), fallback=(), title="Secret Lair Drop: Heads I Win | Foil Edition", images=(), gallery=""):
    return ProductPage(
        url="https://secretlair.wizards.com/us/product/1",
        raw_title=title,
        lines=list(lines),
        fallback_lines=list(fallback),
        gallery_title=gallery,
        image_urls=list(images),
    )


@pytest.mark.parametrize("count", [1, 2, 5])
def test_line_yields_count_identical_items(count):
    items = build_items([f"{count} x Lightning Bolt (Foil)"], LineCanonicalizer())

    assert len(items) == count
    assert {(it.name, it.foil, it.etched, it.token) for it in items} == {
        ("Lightning Bolt", True, False, False)
    }
    assert [it.position for it in items] == list(range(count))


def test_malformed_lines_are_skipped_and_positions_stay_dense():
    items = build_items(["1 x Sol Ring", "Not a card", "2 x Island"], LineCanonicalizer())

    assert [(it.name, it.position) for it in items] == [("Sol Ring", 0), ("Island", 1), ("Island", 2)]


def test_build_product():
    product = build_product(make_page(["2 x Lightning Bolt (Foil)", "1 x Sol Ring"]), release_date="2024-03-04")

    assert product.title == "Drop: Heads I Win Foil Edition"
    assert product.filename == "Drop- Heads I Win Foil Edition"
    assert product.source == "https://secretlair.wizards.com/us/product/1"
    assert product.release_date == "2024-03-04"
    assert [it.name for it in product.items] == ["Lightning Bolt", "Lightning Bolt", "Sol Ring"]


def test_build_product_uses_fallback_lines():
    product = build_product(make_page(lines=["Just text"], fallback=["1 x Sol Ring", "<nonsense>"]))
    assert [it.name for it in product.items] == ["Sol Ring"]


def test_build_product_without_cards():
    with pytest.raises(NoItemsFoundError):
        build_product(make_page(lines=["nope"], fallback=["still nope"]))


def test_single_copy_pages():
    page = make_page(["4 x Plains", "4 x Island"], title="Secret Lair Drop: Astrology Lands: Aries")
    product = build_product(page)
    assert [it.name for it in product.items] == ["Plains", "Island"]


class FakeImages:
    def __init__(self, texts):
        self.texts = texts
        self.fetched = []

    def fetch(self, url):
        self.fetched.append(url)
        return url.encode()

    def recognize(self, data):
        return self.texts[data.decode()]


def test_three_tier_resolution():
    page = make_page(
        ["1 x Sol Ring", "1 x Brainstorm", "1 x Counterspell", "1 x Ponder"],
        images=["i0", "i1", "i2", "i3"],
    )
    product = build_product(page)
    entries = (AuthoritativeEntry("Heads I Win", "u1"),)
    images = FakeImages({"i1": "0122", "i2": "© 99", "i3": "9"})

    resolve_numbers(
        product,
        page,
        entries,
        lambda uri: {"Sol Ring": "120"},
        fetch_image=images.fetch,
        recognize=images.recognize,
    )

    # Sol Ring came from Scryfall, so its image is never read
    assert images.fetched == ["i1", "i2", "i3"]
    assert [it.number for it in product.items] == ["120", "122", "123", "124"]
    assert product.items[0].source == SOURCE_SCRYFALL
    assert product.items[1].source == SOURCE_OCR


def test_resolution_without_ocr_backfills_from_scryfall():
    page = make_page(["1 x Sol Ring", "1 x Unknown Card"], images=["i0", "i1"])
    product = build_product(page)
    entries = (AuthoritativeEntry("Heads I Win", "u1"),)

    resolve_numbers(product, page, entries, lambda uri: {"Sol Ring": "0120"})

    assert [it.number for it in product.items] == ["0120", "121"]


def test_resolution_with_no_evidence_leaves_numbers_empty():
    page = make_page(["2 x Sol Ring"])
    product = build_product(page)

    resolve_numbers(product, page, (), lambda uri: {})

    assert [it.number for it in product.items] == ["", ""]


def test_too_many_images_still_backfills():
    page = make_page(["1 x Sol Ring", "1 x Island"], images=["i0", "i1", "i2"])
    product = build_product(page)
    images = FakeImages({"i0": "", "i1": "0301", "i2": "0302"})

    resolve_numbers(product, page, (), lambda uri: {}, fetch_image=images.fetch, recognize=images.recognize)

    assert [it.number for it in product.items] == ["300", "301"]


def test_unreadable_image_still_backfills():
    page = make_page(["1 x Sol Ring", "1 x Island"], images=["i0", "i1"])
    product = build_product(page)

    def recognize(data):
        if data == b"i0":
            raise OSError("image file is truncated")
        return "0301"

    images = FakeImages({})
    resolve_numbers(product, page, (), lambda uri: {}, fetch_image=images.fetch, recognize=recognize)

    assert [it.number for it in product.items] == ["300", "301"]
