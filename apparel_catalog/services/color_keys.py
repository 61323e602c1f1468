"""
Fuzzy color keys used to reconcile color names between the SanMar catalog feed and
the SanMar inventory file ("Athletic Hthr" vs "Athletic Heather", "Navy Blu" vs "Navy Blue").

Strategies are chained: each one transforms the output of the previous strategy and
every intermediate key is a lookup candidate, tried in order. The first hit wins.
"""
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_VOWELS = re.compile(r"[AEIOU]")
_CODE_SEPARATORS = re.compile(r"[^a-zA-Z0-9]+")


def sanitize_code(value: str, fallback: str) -> str:
    """NFKD-fold, collapse non-alphanumerics into "_" and upper-case."""
    normalized = unicodedata.normalize("NFKD", value or "")
    normalized = _CODE_SEPARATORS.sub("_", normalized).strip("_").upper()
    return normalized or fallback


def alphanumeric_only(key: str) -> str:
    return _NON_ALNUM.sub("", key)


def strip_vowels(key: str) -> str:
    return _VOWELS.sub("", key)


def collapse_repeats(key: str) -> str:
    """"BBLLUE" -> "BLUE"."""
    result: List[str] = []
    for char in key:
        if not result or result[-1] != char:
            result.append(char)
    return "".join(result)


class ColorNamed(Protocol):
    color_code: str
    color_name: Optional[str]


@dataclass(frozen=True)
class ColorKeyStrategy:
    name: str
    transform: Callable[[str], str]


DEFAULT_STRATEGIES = (
    ColorKeyStrategy("alphanumeric", alphanumeric_only),
    ColorKeyStrategy("no_vowels", strip_vowels),
    ColorKeyStrategy("collapsed", collapse_repeats),
)


@dataclass
class ColorKeyNormalizer:
    strategies: List[ColorKeyStrategy] = field(default_factory=lambda: list(DEFAULT_STRATEGIES))

    def add_strategy(self, strategy: ColorKeyStrategy) -> None:
        """Append a strategy at the lowest priority."""
        self.strategies.append(strategy)

    def key_variants(self, color_name: str) -> List[str]:
        current = (color_name or "").strip().upper()
        variants: List[str] = []
        for strategy in self.strategies:
            current = strategy.transform(current)
            if current and current not in variants:
                variants.append(current)
        return variants

    def build_lookup(self, colors: Iterable[ColorNamed]) -> Dict[str, str]:
        """Key variant -> catalog color code. Earlier colors keep their keys."""
        lookup: Dict[str, str] = {}
        for color in colors:
            if not color.color_name:
                continue
            for key in self.key_variants(color.color_name):
                lookup.setdefault(key, color.color_code)
        return lookup

    def resolve(self, color_name: str, lookup: Optional[Mapping[str, str]], fallback: Optional[str] = None) -> str:
        """
        Catalog color code for an inventory color name. Without a match the sanitized
        raw name (or the explicit fallback) is used.
        """
        if lookup:
            for key in self.key_variants(color_name):
                match = lookup.get(key)
                if match:
                    return match
        return fallback if fallback is not None else sanitize_code(color_name, "DEFAULT")


default_normalizer = ColorKeyNormalizer()
