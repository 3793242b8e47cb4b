"""
Unit tests for the local shopping list.

WHAT: Add, list ordering, toggle, quantity change, removal
WHY: The list lives only in the local SQLite store
HOW: Real SQLAlchemy session against the test database
"""

import pytest

from busqai.services import shopping_list
from busqai.utils.exceptions import NotFoundError, ValidationException


@pytest.mark.unit
class TestShoppingList:

    def test_add_and_list(self, clean_db):
        first = shopping_list.add_item("  Rice ", 2)
        second = shopping_list.add_item("Basket")

        items = shopping_list.list_items()

        assert [item.name for item in items] == ["Rice", "Basket"]
        assert items[0].quantity == 2
        assert items[1].quantity == 1
        assert first.id != second.id
        assert first.done is False

    def test_done_items_sort_last(self, clean_db):
        rice = shopping_list.add_item("Rice")
        shopping_list.add_item("Basket")

        updated = shopping_list.update_item(rice.id, done=True)

        assert updated.done is True
        assert [item.name for item in shopping_list.list_items()] == ["Basket", "Rice"]

    def test_change_quantity(self, clean_db):
        rice = shopping_list.add_item("Rice")

        assert shopping_list.update_item(rice.id, quantity=5).quantity == 5
        with pytest.raises(ValidationException):
            shopping_list.update_item(rice.id, quantity=0)

    def test_invalid_items(self, clean_db):
        with pytest.raises(ValidationException):
            shopping_list.add_item("   ")
        with pytest.raises(ValidationException):
            shopping_list.add_item("Rice", 0)

        assert shopping_list.list_items() == []

    def test_remove(self, clean_db):
        rice = shopping_list.add_item("Rice")

        shopping_list.remove_item(rice.id)

        assert shopping_list.list_items() == []
        with pytest.raises(NotFoundError) as exc_info:
            shopping_list.remove_item(rice.id)
        assert exc_info.value.code == "ITEM_NOT_FOUND"
        with pytest.raises(NotFoundError):
            shopping_list.update_item(999, done=True)
