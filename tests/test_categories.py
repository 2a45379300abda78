"""
Tests for category list management.
"""
import pytest

from mileage_log.core import CategoryManager, OTHER_CATEGORY, TripStore
from mileage_log.core.categories import DEFAULT_CATEGORIES


class TestCategoryManager:
    """Tests for CategoryManager."""

    def setup_method(self):
        """Set up a manager with the default list."""
        self.manager = CategoryManager()

    def test_defaults(self):
        """Test the starting list ends with the protected category."""
        assert self.manager.categories == DEFAULT_CATEGORIES + [OTHER_CATEGORY]
        assert self.manager.default_category == "Business"

    def test_protected_category_forced_last(self):
        """Test "Other" is moved to the end and deduplicated."""
        manager = CategoryManager(["Other", "A", "B", "A", "Other"])

        assert manager.categories == ["A", "B", "Other"]

    def test_add_goes_before_other(self):
        """Test new categories are inserted before "Other"."""
        assert self.manager.add("  Medical ")
        assert self.manager.categories[-2:] == ["Medical", "Other"]

    @pytest.mark.parametrize("name", ["", "   ", "business", "OTHER"])
    def test_add_rejects_empty_and_duplicates(self, name):
        """Test case-insensitive duplicate detection."""
        before = self.manager.categories

        assert not self.manager.add(name)
        assert self.manager.categories == before

    def test_remove_other_refused(self):
        """Test the protected category cannot be removed."""
        assert not self.manager.remove(OTHER_CATEGORY)
        assert OTHER_CATEGORY in self.manager.categories

    def test_remove_default_falls_back(self):
        """Test removing the default picks Business, then the first free category."""
        self.manager.default_category = "Uber"
        self.manager.remove("Uber")
        assert self.manager.default_category == "Business"

        self.manager.remove("Business")
        assert self.manager.default_category == "Personal"

    def test_remove_last_free_category(self):
        """Test the default falls back to "Other" when nothing else is left."""
        manager = CategoryManager(["Solo"], default_category="Solo")

        manager.remove("Solo")

        assert manager.categories == ["Other"]
        assert manager.default_category == "Other"

    def test_rename_cascades_to_trips(self, make_trip):
        """Test renaming retags stored trips and the default."""
        store = TripStore([make_trip(reason="Business"), make_trip(reason="Uber")])
        manager = CategoryManager(store=store)

        assert manager.rename("Business", "Work")
        assert manager.default_category == "Work"
        assert "Work" in manager.categories
        assert [t.reason for t in store.list()] == ["Work", "Uber"]

    def test_rename_case_only(self):
        """Test a category can change case without clashing with itself."""
        assert self.manager.rename("Uber", "UBER")
        assert "UBER" in self.manager.categories

    @pytest.mark.parametrize("old,new", [
        ("Other", "Misc"),
        ("Missing", "Anything"),
        ("Uber", ""),
        ("Uber", "personal"),
    ])
    def test_rename_rejected(self, old, new):
        """Test protected, unknown, empty and clashing renames."""
        assert not self.manager.rename(old, new)

    def test_move_clamped_before_other(self):
        """Test nothing moves past "Other"."""
        assert self.manager.move("Business", 99)
        assert self.manager.categories[-2:] == ["Business", "Other"]

        assert self.manager.move("Business", -5)
        assert self.manager.categories[0] == "Business"

    def test_move_other_refused(self):
        """Test the protected category stays put."""
        assert not self.manager.move(OTHER_CATEGORY, 0)

    def test_json_round_trip(self):
        """Test persistence of a customized list."""
        self.manager.add("Medical")

        restored = CategoryManager.from_json(self.manager.to_json())

        assert restored.categories == self.manager.categories

    @pytest.mark.parametrize("text", ["not json", '{"a": 1}', "[1, 2]"])
    def test_unreadable_json_uses_defaults(self, text):
        """Test corrupt stored lists fall back to the defaults."""
        assert CategoryManager.from_json(text).categories == DEFAULT_CATEGORIES + [OTHER_CATEGORY]
