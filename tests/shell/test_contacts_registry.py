"""Tests for the emergency contact registry."""

from unittest.mock import Mock

import pytest

from src.contacts import EmergencyContactRegistry
from src.core.errors import InvalidInput


@pytest.fixture
def store():
    return Mock()


class TestAdd:
    """Tests for EmergencyContactRegistry.add()."""

    def test_normalizes_before_storing(self, store):
        EmergencyContactRegistry(store).add("u1", "  Mom ", "+1 (555) 123-4567", " mother ", is_primary=True)

        store.add.assert_called_once_with("u1", "Mom", "+15551234567", "mother", True)

    def test_blank_relationship_dropped(self, store):
        EmergencyContactRegistry(store).add("u1", "Mom", "5551234567", "   ")

        assert store.add.call_args.args[3] is None

    @pytest.mark.parametrize("name,phone", [("", "+15551234567"), ("Mom", "call me")])
    def test_invalid_contact_not_stored(self, store, name, phone):
        with pytest.raises(InvalidInput):
            EmergencyContactRegistry(store).add("u1", name, phone)
        store.add.assert_not_called()


class TestDelegation:
    """Tests for set_primary(), remove() and list_contacts()."""

    def test_set_primary(self, store):
        EmergencyContactRegistry(store).set_primary("u1", "c2")
        store.set_primary.assert_called_once_with("u1", "c2")

    def test_remove(self, store):
        EmergencyContactRegistry(store).remove("u1", "c1")
        store.remove.assert_called_once_with("u1", "c1")

    def test_list_contacts(self, store):
        store.list_for_user.return_value = ["c1"]
        assert EmergencyContactRegistry(store).list_contacts("u1") == ["c1"]


class TestUpdate:
    """Tests for EmergencyContactRegistry.update()."""

    def test_normalizes_given_fields(self, store):
        EmergencyContactRegistry(store).update("u1", "c1", name=" Mum ", phone="+44 7911 123456")

        store.update.assert_called_once_with(
            "u1", "c1", {"name": "Mum", "phone": "+447911123456"}, None,
        )

    def test_empty_relationship_clears_it(self, store):
        EmergencyContactRegistry(store).update("u1", "c1", relationship="  ")

        assert store.update.call_args.args[2] == {"relationship": None}

    def test_primary_only(self, store):
        EmergencyContactRegistry(store).update("u1", "c2", is_primary=True)

        store.update.assert_called_once_with("u1", "c2", {}, True)

    @pytest.mark.parametrize("fields", [{}, {"phone": "12"}, {"name": ""}])
    def test_invalid_update_not_stored(self, store, fields):
        with pytest.raises(InvalidInput):
            EmergencyContactRegistry(store).update("u1", "c1", **fields)
        store.update.assert_not_called()
