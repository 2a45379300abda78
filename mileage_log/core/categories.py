"""
Trip category list management.

Categories form an ordered list with one protected member, "Other", which
can never be removed or renamed and always sorts last.
"""
from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from .store import TripStore

logger = logging.getLogger(__name__)

OTHER_CATEGORY = "Other"
DEFAULT_CATEGORIES = ["Business", "Personal", "Vacation", "Photography", "DoorDash", "Uber"]
PREFERRED_DEFAULT = "Business"


class CategoryManager:
    """Holds the user-editable category list and the default trip category."""

    def __init__(
        self,
        categories: Optional[Iterable[str]] = None,
        default_category: str = PREFERRED_DEFAULT,
        store: Optional[TripStore] = None
    ):
        self._categories = self._normalize(DEFAULT_CATEGORIES if categories is None else categories)
        self.default_category = default_category
        self.store = store

    @staticmethod
    def _normalize(categories: Iterable[str]) -> list[str]:
        """Drop duplicates and put the protected category last."""
        result: list[str] = []
        for cat in categories:
            if cat != OTHER_CATEGORY and cat not in result:
                result.append(cat)
        result.append(OTHER_CATEGORY)
        return result

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    def is_protected(self, category: str) -> bool:
        return category == OTHER_CATEGORY

    def _clashes(self, name: str, ignore: Optional[str] = None) -> bool:
        lowered = name.lower()
        return any(c.lower() == lowered and c != ignore for c in self._categories)

    def add(self, category: str) -> bool:
        """
        Add a category just before the protected one.

        Returns:
            False if the name was empty or already present (case-insensitive)
        """
        trimmed = category.strip()
        if not trimmed or self._clashes(trimmed):
            return False
        self._categories.insert(len(self._categories) - 1, trimmed)
        return True

    def remove(self, category: str) -> bool:
        """Remove a category; the protected one is refused."""
        if self.is_protected(category) or category not in self._categories:
            return False
        self._categories.remove(category)

        if self.default_category == category:
            if PREFERRED_DEFAULT in self._categories:
                self.default_category = PREFERRED_DEFAULT
            else:
                self.default_category = next(
                    (c for c in self._categories if not self.is_protected(c)),
                    OTHER_CATEGORY
                )
        return True

    def rename(self, old: str, new: str) -> bool:
        """
        Rename a category and retag trips that use it.

        Returns:
            False if the rename was rejected
        """
        trimmed = new.strip()
        if (
            self.is_protected(old)
            or old not in self._categories
            or not trimmed
            or self._clashes(trimmed, ignore=old)
        ):
            return False

        self._categories[self._categories.index(old)] = trimmed
        if self.default_category == old:
            self.default_category = trimmed
        if self.store is not None:
            retagged = self.store.rename_reason(old, trimmed)
            logger.info("Renamed category %r to %r (%d trips retagged)", old, trimmed, retagged)
        return True

    def move(self, category: str, new_index: int) -> bool:
        """Reorder a category; nothing moves to or past the protected slot."""
        if self.is_protected(category) or category not in self._categories:
            return False
        self._categories.remove(category)
        last_free = len(self._categories) - 1
        self._categories.insert(max(0, min(new_index, last_free)), category)
        return True

    def to_json(self) -> str:
        """Serialize the category list."""
        return json.dumps(self._categories)

    @classmethod
    def from_json(cls, text: str, **kwargs) -> CategoryManager:
        """Load a serialized list, falling back to defaults when unreadable."""
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Stored category list is unreadable, using defaults")
            decoded = None
        if not isinstance(decoded, list) or not all(isinstance(c, str) for c in decoded):
            decoded = None
        return cls(categories=decoded, **kwargs)
