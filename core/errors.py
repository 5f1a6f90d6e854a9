# core/errors.py


class ScraperError(Exception):
    """Base class for recoverable scraper errors."""


class MalformedLineError(ScraperError):
    """A listing line does not look like '<count> x <name>'."""


class NoItemsFoundError(ScraperError):
    """Neither the bullet list nor the fallback paragraph produced any card."""


class FetchError(ScraperError):
    """Network or parse failure talking to an external source."""

    def __init__(self, url: str, reason: object):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class StructuralMismatchError(ScraperError):
    """The gallery has more images than the page declared cards."""
