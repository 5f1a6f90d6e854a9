# fetchers/__init__.py
from . import scryfall
from . import secretlair

__all__ = ["scryfall", "secretlair"]
