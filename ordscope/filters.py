"""Category filters for scans and the explorer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable

from ordscope.classifier import Category


class FilterError(ValueError):
    """Raised when a filter name does not match any category."""


_ALIASES = {
    "text": Category.TEXT,
    "txt": Category.TEXT,
    "json": Category.JSON,
    "brc20": Category.BRC20,
    "brc-20": Category.BRC20,
    "html": Category.HTML,
    "image": Category.IMAGE,
    "img": Category.IMAGE,
    "unknown": Category.UNKNOWN,
    "binary": Category.UNKNOWN,
}

FILTER_NAMES = tuple(category.value for category in Category)


def parse_category(name: str) -> Category:
    try:
        return _ALIASES[name.strip().lower()]
    except KeyError as exc:
        raise FilterError(f"Unknown filter '{name}'; expected one of {', '.join(FILTER_NAMES)}") from exc


@dataclass(frozen=True)
class FilterSet:
    """The categories currently accepted.

    Instances are immutable; the mutators return a new set.
    """

    enabled: FrozenSet[Category] = frozenset(Category)

    @classmethod
    def all(cls) -> "FilterSet":
        return cls(frozenset(Category))

    @classmethod
    def none(cls) -> "FilterSet":
        return cls(frozenset())

    @classmethod
    def from_names(cls, names: Iterable[str] | None) -> "FilterSet":
        """Combine repeated ``--filter`` values with OR.

        No names at all means no filtering, i.e. every category is enabled.
        """

        names = list(names or [])
        if not names:
            return cls.all()
        return cls(frozenset(parse_category(name) for name in names))

    def accepts_category(self, category: Category) -> bool:
        return category in self.enabled

    def accepts(self, inscription) -> bool:
        return self.accepts_category(inscription.category)

    def toggle(self, category: Category) -> "FilterSet":
        if category in self.enabled:
            return FilterSet(self.enabled - {category})
        return FilterSet(self.enabled | {category})

    def union(self, other: "FilterSet") -> "FilterSet":
        return FilterSet(self.enabled | other.enabled)

    @property
    def is_everything(self) -> bool:
        return self.enabled == frozenset(Category)

    def describe(self) -> str:
        if self.is_everything:
            return "all"
        if not self.enabled:
            return "none"
        return ",".join(category.value for category in Category if category in self.enabled)
