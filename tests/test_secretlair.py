import pytest

from core.errors import FetchError
from fetchers import secretlair

PRODUCT_PAGE = """
<html><body>
<h1 class="product-title">Secret Lair Drop: Heads I Win | Foil Edition</h1>
<div class="force-overflow">
  <ul>
    <li>2 x Lightning Bolt (Foil)</li>
    <li>1 x Sol Ring</li>
  </ul>
</div>
<h2 class="pdp_title">Artwork Gallery (6)</h2>
<figure><a href="/images/1.jpg"><img src="/thumbs/1.jpg"></a></figure>
<figure><a href="https://cdn.example.com/2.jpg"></a></figure>
<figure><a>no link</a></figure>
</body></html>
"""

FALLBACK_PAGE = """
<html><body>
<h1 class="product-title">Secret Lair Drop: Old Page</h1>
<div id="collapse2">
  <div class="force-overflow">
    <p class="product-information">1 x Sol Ring<br/>2 x <b>Island</b><br>Not a card</p>
  </div>
</div>
</body></html>
"""


def test_parse_product_page():
    page = secretlair.parse_product_page(PRODUCT_PAGE, "https://secretlair.wizards.com/us/product/1")

    assert page.raw_title == "Secret Lair Drop: Heads I Win | Foil Edition"
    assert page.lines == ["2 x Lightning Bolt (Foil)", "1 x Sol Ring"]
    assert page.fallback_lines == []
    assert page.gallery_title == "Artwork Gallery (6)"
    assert page.image_urls == [
        secretlair.BASE_URL + "/images/1.jpg",
        "https://cdn.example.com/2.jpg",
    ]


def test_parse_product_page_fallback_paragraph():
    page = secretlair.parse_product_page(FALLBACK_PAGE, "u")

    assert page.lines == []
    assert page.fallback_lines == ["1 x Sol Ring", "2 x Island", "Not a card"]
    assert page.gallery_title == ""
    assert page.image_urls == []


def test_parse_listing():
    data = {
        "count": 2,
        "products": [
            {
                "productID": "SLD123",
                "release_date": "2024-03-04T17:00:00Z",
                "descriptions": [{"lang": "en_US", "title": "Heads I Win"}],
            },
            {"productID": "", "descriptions": []},
            {
                "productID": "SLD124",
                "release_date": "2024-03-05T00:00:00",
                "descriptions": [{"lang": "en_US", "title": "Pixel Art Bundle"}],
            },
        ],
    }
    products = secretlair.parse_listing(data)

    assert [p.product_id for p in products] == ["SLD123", "SLD124"]
    assert products[0].release_date == "2024-03-04"
    assert products[1].release_date == "2024-03-05"
    assert products[0].url == secretlair.BASE_URL + "/us/product/SLD123"
    assert not secretlair.should_skip(products[0])
    assert secretlair.should_skip(products[1])


def test_parse_release_date_rejects_garbage():
    assert secretlair.parse_release_date("soon") is None
    assert secretlair.parse_release_date(None) is None


def test_ensure_absolute_url():
    assert secretlair.ensure_absolute_url("/a.jpg") == secretlair.BASE_URL + "/a.jpg"
    assert secretlair.ensure_absolute_url("https://x/a.jpg") == "https://x/a.jpg"


class _FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


def test_fetch_listing_rejects_non_object(monkeypatch):
    monkeypatch.setattr(secretlair, "_get", lambda url: _FakeResponse(["not", "an", "object"]))
    with pytest.raises(FetchError):
        secretlair.fetch_listing(2)


def test_fetch_listing(monkeypatch):
    urls = []

    def fake_get(url):
        urls.append(url)
        return _FakeResponse({"products": [{"productID": "SLD1", "descriptions": []}]})

    monkeypatch.setattr(secretlair, "_get", fake_get)

    assert [p.product_id for p in secretlair.fetch_listing(2)] == ["SLD1"]
    assert urls == [secretlair.SCALEFAST_URL + "100"]
