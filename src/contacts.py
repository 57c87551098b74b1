"""Emergency Contact Registry - Validates and applies contact changes.

The single-primary invariant is enforced by the contact store inside
its transactions; this layer validates input before anything is written.
"""

import logging

from src.core.contacts import (
    ContactRemoval,
    EmergencyContact,
    normalize_phone,
    validate_contact,
    validate_contact_update,
)
from src.shell.contact_store import FirestoreContactStore


logger = logging.getLogger(__name__)


class EmergencyContactRegistry:
    """A user's emergency contacts, with at most one primary."""

    def __init__(self, store: FirestoreContactStore) -> None:
        self.store = store

    def add(
        self,
        user_id: str,
        name: str,
        phone: str,
        relationship: str | None = None,
        is_primary: bool = False,
    ) -> EmergencyContact:
        """Add a contact. The user's first contact is always primary.

        Raises:
            InvalidInput: On an invalid name, phone or relationship
            SourceUnavailable: If the store write fails
        """
        validate_contact(name, phone, relationship)
        relationship = relationship.strip() if relationship and relationship.strip() else None

        return self.store.add(
            user_id,
            name.strip(),
            normalize_phone(phone),
            relationship,
            is_primary,
        )

    def update(
        self,
        user_id: str,
        contact_id: str,
        name: str | None = None,
        phone: str | None = None,
        relationship: str | None = None,
        is_primary: bool | None = None,
    ) -> EmergencyContact:
        """Change some of a contact's fields. None leaves a field as it is.

        An empty relationship clears it. Setting is_primary moves the
        primary flag away from the user's other contacts.

        Raises:
            InvalidInput: If nothing changes or a field is invalid
            NotFound: If the contact does not belong to the user
            SourceUnavailable: If the store transaction fails
        """
        validate_contact_update(name, phone, relationship, is_primary)

        changes: dict[str, str | None] = {}
        if name is not None:
            changes["name"] = name.strip()
        if phone is not None:
            changes["phone"] = normalize_phone(phone)
        if relationship is not None:
            changes["relationship"] = relationship.strip() or None

        return self.store.update(user_id, contact_id, changes, is_primary)

    def set_primary(self, user_id: str, contact_id: str) -> EmergencyContact:
        """Make a contact the user's only primary.

        Raises:
            NotFound: If the contact does not belong to the user
            SourceUnavailable: If the store transaction fails
        """
        return self.store.set_primary(user_id, contact_id)

    def remove(self, user_id: str, contact_id: str) -> ContactRemoval:
        """Remove a contact without promoting another to primary.

        Returns:
            ContactRemoval; needs_primary tells the caller to prompt the
            user to choose a new primary

        Raises:
            NotFound: If the contact does not belong to the user
            SourceUnavailable: If the store transaction fails
        """
        return self.store.remove(user_id, contact_id)

    def list_contacts(self, user_id: str) -> list[EmergencyContact]:
        """A user's contacts, primary first, then oldest first."""
        return self.store.list_for_user(user_id)
