# core/output.py
import os
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from .logger import get_logger
from .models import Item, Product

logger = get_logger(__name__)

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    trim_blocks=True,
    keep_trailing_newline=True,
)

OUTPUT_DIR = os.getenv("OUTPUT_DIR", ".")
CARD_PREFIX = os.getenv("CARD_PREFIX", "SLD")


def format_item(item: Item, prefix: str = CARD_PREFIX) -> str:
    number = f":{item.number}" if item.number else ""
    line = f"1 [{prefix}{number}] {item.name}"
    if item.foil:
        line += " [foil]"
    if item.etched:
        line += " [etched]"
    if item.token:
        line += " [token]"
    return line


def render_decklist(product: Product, prefix: str = CARD_PREFIX) -> str:
    template = env.get_template("decklist.txt")
    ctx = {
        "title": product.title,
        "source": product.source,
        "release_date": product.release_date,
        "lines": [format_item(it, prefix) for it in product.items],
    }
    return template.render(**ctx)


def write_decklist(product: Product, output_dir: str = OUTPUT_DIR) -> Path:
    os.makedirs(output_dir, exist_ok=True)
    path = Path(output_dir) / f"{product.filename}.txt"
    path.write_text(render_decklist(product), encoding="utf-8")
    logger.info("Created '%s' (%s)", path, product.release_date or "")
    return path
