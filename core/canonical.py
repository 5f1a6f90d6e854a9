# core/canonical.py
"""
Name cleanup for Secret Lair product pages.

Both canonicalizers are table driven: every literal rewrite lives in an ordered
list of Rule values handed to the constructor, so a single rule can be tested
without running the whole pipeline. The DEFAULT_* tables below are what the
scraper uses.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .errors import MalformedLineError


@dataclass(frozen=True)
class Rule:
    """Literal substring rewrite, skipped when the text contains any of `unless`."""
    pattern: str
    replacement: str = ""
    unless: Tuple[str, ...] = ()

    def apply(self, text: str) -> str:
        if any(marker in text for marker in self.unless):
            return text
        return text.replace(self.pattern, self.replacement)


def strip_rules(tokens: Iterable[str]) -> List[Rule]:
    """Removal rules for each token, as written and in lower case."""
    rules: List[Rule] = []
    for token in tokens:
        rules.append(Rule(token))
        if token.lower() != token:
            rules.append(Rule(token.lower()))
    return rules


def apply_rules(text: str, rules: Sequence[Rule]) -> str:
    for rule in rules:
        text = rule.apply(text)
    return text


UNICODE_RULES: List[Rule] = [
    Rule("\u00a0", " "),
    Rule("’", "'"),
    Rule("”", '"'),
    Rule("“", '"'),
]

DECORATION_TOKENS = [
    "Full-Text", "Full-Art", "Full-art", "Alt-Art",
    "Reversible", "Old Frame", "Retro Frame",
    "Poster", "Stained Glass",
    "Foil-etched", "Etched", "Foil", "Tokens", "Token",
    "Different", "Hand-Drawn", "Borderless",
    "Showcase", "Left-Handed", "Edition", "cards", "Japanese",
    "Regular Human Guy", "Ichor-E", "DFC", "Italian-language", "*",
]

DEFAULT_DENYLIST: List[Rule] = [
    # Phyrexian is part of a handful of real card names
    Rule("Phyrexian", "", unless=("Tower", "Crusader", "Unlife")),
] + strip_rules(DECORATION_TOKENS)

DEFAULT_NAME_CORRECTIONS: List[Rule] = [
    # Scryfall sheet name
    Rule("Sticker Sheets", "Sticker sheet"),
    Rule("Xenegos", "Xenagos"),
]

# Flavor names, artist credits and the Bob Ross drop
DEFAULT_SUFFIX_MARKERS = (" as ", " by ", " with art")

# A "Foil" that belongs to the name rather than to a variant prefix
FOIL_COMPOUND_SUFFIXES = ("Foil Edition", "Foil Etched")

FACE_SEPARATOR = " // "


class LineCanonicalizer:
    """Turn one '<count> x <name>' listing line into (card name, count)."""

    def __init__(
        self,
        denylist: Sequence[Rule] = DEFAULT_DENYLIST,
        corrections: Sequence[Rule] = DEFAULT_NAME_CORRECTIONS,
        suffix_markers: Sequence[str] = DEFAULT_SUFFIX_MARKERS,
        unicode_rules: Sequence[Rule] = UNICODE_RULES,
    ):
        self.denylist = list(denylist)
        self.corrections = list(corrections)
        self.suffix_markers = tuple(suffix_markers)
        self.unicode_rules = list(unicode_rules)

    def normalize_unicode(self, line: str) -> str:
        return apply_rules(line, self.unicode_rules).strip()

    def split_count(self, line: str) -> Tuple[int, str]:
        head, sep, rest = line.partition("x ")
        if not sep:
            raise MalformedLineError(f"unexpected line format: {line!r}")
        try:
            count = int(head.strip())
        except ValueError:
            raise MalformedLineError(f"invalid number in line: {line!r}") from None
        if count < 1:
            raise MalformedLineError(f"non-positive count in line: {line!r}")
        return count, rest.strip()

    def drop_foil_prefix(self, text: str) -> str:
        # "Galaxy Foil Showcase Brainstorm" -> " Showcase Brainstorm"
        if "Foil" in text and not text.endswith(FOIL_COMPOUND_SUFFIXES):
            return text.partition("Foil")[2]
        return text

    def strip_decorations(self, text: str) -> str:
        return apply_rules(text, self.denylist)

    def truncate_suffixes(self, text: str) -> str:
        for marker in self.suffix_markers:
            text = text.split(marker, 1)[0]
        return text

    def front_face(self, text: str) -> str:
        if "//" in text and FACE_SEPARATOR not in text:
            text = text.replace("//", FACE_SEPARATOR)
        return text.split(FACE_SEPARATOR, 1)[0]

    def canonicalize(self, line: str) -> Tuple[str, int]:
        text = self.normalize_unicode(line)
        count, text = self.split_count(text)
        text = text.split("(", 1)[0]
        text = self.drop_foil_prefix(text)
        text = self.strip_decorations(text)
        text = self.truncate_suffixes(text)
        text = self.front_face(text)
        text = apply_rules(text, self.corrections)
        return text.strip(), count


def variant_flags(raw_line: str) -> Tuple[bool, bool, bool]:
    """(foil, etched, token) judged on the raw line, before any cleanup."""
    lower = raw_line.lower()
    return "foil" in lower, "etched" in lower, "token" in lower


DEFAULT_TITLE_SUBSTITUTIONS: List[Rule] = [
    # Unicode characters
    Rule("\u00a0", " "),
    Rule("’", "'"),
    Rule("‘", "'"),
    Rule("®", ""),
    Rule("™", ""),
    # Windows special characters
    Rule("<", ""),
    Rule(">", ""),
    Rule("/", ""),
    Rule("\\", ""),
    Rule("*", ""),
    Rule(" - ", " "),
    # Compatibility with older dumps
    Rule("Regular", ""),
    Rule("DD ", ""),
    Rule("Secret Lair x ", ""),
    Rule("(English)", ""),
    Rule("English", ""),
    Rule(" EN", ""),
    # Spaces last so they capture as much as possible
    Rule("   ", " "),
    Rule("  ", " "),
]

DEFAULT_ABBREVIATIONS: List[Rule] = [
    # Fallout has too many dots and makes searching for it harder
    Rule("S.P.E.C.I.A.L.", "SPECIAL"),
]


class TitleCanonicalizer:
    """
    Derive (filename, display title) from a product page title.

    The display title is the upstream name with as few changes as possible, the
    filename is the same string made safe for every filesystem. Substitutions
    run as one left-to-right pass where, at any position, the earliest rule in
    the table wins, so replaced text is never rescanned.
    """

    def __init__(
        self,
        substitutions: Sequence[Rule] = DEFAULT_TITLE_SUBSTITUTIONS,
        abbreviations: Sequence[Rule] = DEFAULT_ABBREVIATIONS,
        vendor_prefix: str = "Secret Lair ",
        keep_prefix_marker: str = "High",
    ):
        self.substitutions = {r.pattern: r.replacement for r in reversed(substitutions)}
        self._pattern = (
            re.compile("|".join(re.escape(r.pattern) for r in substitutions))
            if substitutions
            else None
        )
        self.abbreviations = list(abbreviations)
        self.vendor_prefix = vendor_prefix
        self.keep_prefix_marker = keep_prefix_marker

    def substitute(self, title: str) -> str:
        if self._pattern is None:
            return title
        return self._pattern.sub(lambda m: self.substitutions[m.group(0)], title)

    def canonicalize(self, title: str) -> Tuple[str, str]:
        if "|" in title:
            original = title
            title = title.split(" | ", 1)[0]
            if original.endswith("Foil Edition"):
                title += " Foil Edition"

        title = self.substitute(title)

        # "Secret Lair High" needs to stay
        if self.keep_prefix_marker not in title:
            title = title.replace(self.vendor_prefix, "", 1)

        for rule in self.abbreviations:
            if rule.pattern in title:
                title = title.replace(rule.pattern, rule.replacement, 1)

        if title.endswith("Foil"):
            title += " Edition"

        display = title.strip()
        filename = title.replace(":", "-").strip()
        return filename, display


_default_line = LineCanonicalizer()
_default_title = TitleCanonicalizer()


def clean_line(line: str) -> Tuple[str, int]:
    return _default_line.canonicalize(line)


def clean_title(title: str) -> Tuple[str, str]:
    return _default_title.canonicalize(title)
