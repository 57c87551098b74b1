"""Contact Store - Imperative Shell.

Persists emergency contacts in Firestore. Every mutation reads the
user's contacts and writes the primary flags inside one transaction,
so concurrent add/update/set_primary/remove calls for the same user
serialize and no reader ever sees two primaries.

Document structure:
    emergency_contacts/{contact_id}:
        {"user_id", "name", "phone", "relationship", "is_primary", "created_at",
         "updated_at"}
"""

import logging
from dataclasses import replace
from typing import Any

from google.cloud.firestore_v1.base_query import FieldFilter

from src.core.contacts import (
    ContactRemoval,
    EmergencyContact,
    describe_removal,
    order_contacts,
    plan_primary_swap,
    should_be_primary,
)
from src.core.errors import NotFound
from src.shell.firestore_client import FirestoreClient, as_utc, translate_errors, utcnow


logger = logging.getLogger(__name__)


def contact_from_doc(doc_id: str, data: dict[str, Any]) -> EmergencyContact:
    return EmergencyContact(
        id=doc_id,
        user_id=data["user_id"],
        name=data.get("name", ""),
        phone=data.get("phone", ""),
        relationship=data.get("relationship"),
        is_primary=bool(data.get("is_primary", False)),
        created_at=as_utc(data.get("created_at")),
    )


class FirestoreContactStore:
    """Emergency contact persistence with a single-primary invariant."""

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def _contacts(self) -> Any:
        return self.firestore.collection(self.firestore.settings.contacts_collection)

    def _user_query(self, user_id: str) -> Any:
        return self._contacts().where(filter=FieldFilter("user_id", "==", user_id))

    def _read_contacts(self, transaction: Any, user_id: str) -> list[EmergencyContact]:
        return [
            contact_from_doc(doc.id, doc.to_dict())
            for doc in transaction.get(self._user_query(user_id))
        ]

    def list_for_user(self, user_id: str) -> list[EmergencyContact]:
        """Fetch a user's contacts, primary first.

        Raises:
            SourceUnavailable: If the read fails
        """
        with translate_errors("list emergency contacts"):
            contacts = [
                contact_from_doc(doc.id, doc.to_dict())
                for doc in self._user_query(user_id).stream()
            ]
        return order_contacts(contacts)

    def add(
        self,
        user_id: str,
        name: str,
        phone: str,
        relationship: str | None = None,
        is_primary: bool = False,
    ) -> EmergencyContact:
        """Add a validated contact.

        The first contact is always primary. A new primary replaces the
        previous one in the same transaction.

        Raises:
            SourceUnavailable: If the transaction fails
        """
        new_ref = self._contacts().document()

        def _add(transaction: Any) -> EmergencyContact:
            existing = self._read_contacts(transaction, user_id)
            primary = should_be_primary(existing, is_primary)

            if primary:
                for contact in existing:
                    if contact.is_primary:
                        transaction.update(self._contacts().document(contact.id), {"is_primary": False})

            contact = EmergencyContact(
                id=new_ref.id,
                user_id=user_id,
                name=name,
                phone=phone,
                relationship=relationship,
                is_primary=primary,
                created_at=utcnow(),
            )
            transaction.set(new_ref, {
                "user_id": user_id,
                "name": name,
                "phone": phone,
                "relationship": relationship,
                "is_primary": primary,
                "created_at": contact.created_at,
            })
            return contact

        with translate_errors("add emergency contact"):
            contact = self.firestore.run_transaction(_add)

        logger.info(
            "Added emergency contact %s for user %s (primary=%s)",
            contact.id, user_id, contact.is_primary,
        )
        return contact

    def set_primary(self, user_id: str, contact_id: str) -> EmergencyContact:
        """Make contact_id the user's only primary contact.

        Raises:
            NotFound: If the contact does not belong to the user
            SourceUnavailable: If the transaction fails
        """
        def _swap(transaction: Any) -> EmergencyContact:
            contacts = self._read_contacts(transaction, user_id)
            to_unset, to_set = plan_primary_swap(contacts, contact_id)

            for other_id in to_unset:
                transaction.update(self._contacts().document(other_id), {"is_primary": False})
            transaction.update(self._contacts().document(to_set), {"is_primary": True})

            current = next(c for c in contacts if c.id == to_set)
            return replace(current, is_primary=True)

        with translate_errors("set primary contact"):
            contact = self.firestore.run_transaction(_swap)

        logger.info("Contact %s is now primary for user %s", contact_id, user_id)
        return contact

    def update(
        self,
        user_id: str,
        contact_id: str,
        changes: dict[str, Any],
        is_primary: bool | None = None,
    ) -> EmergencyContact:
        """Apply validated field changes to one of the user's contacts.

        Args:
            changes: New values keyed by name, phone or relationship
            is_primary: True makes the contact the only primary, False
                clears its flag, None leaves it

        Raises:
            NotFound: If the contact does not belong to the user
            SourceUnavailable: If the transaction fails
        """
        def _update(transaction: Any) -> EmergencyContact:
            contacts = self._read_contacts(transaction, user_id)
            current = next((c for c in contacts if c.id == contact_id), None)
            if current is None:
                raise NotFound(f"Emergency contact {contact_id} not found")

            fields = dict(changes)
            if is_primary:
                to_unset, _ = plan_primary_swap(contacts, contact_id)
                for other_id in to_unset:
                    transaction.update(self._contacts().document(other_id), {"is_primary": False})
            if is_primary is not None:
                fields["is_primary"] = is_primary

            transaction.update(self._contacts().document(contact_id), {**fields, "updated_at": utcnow()})
            return replace(current, **fields)

        with translate_errors("update emergency contact"):
            contact = self.firestore.run_transaction(_update)

        logger.info(
            "Updated emergency contact %s for user %s (%s)",
            contact_id, user_id, ", ".join(sorted(changes)) or "primary flag",
        )
        return contact

    def remove(self, user_id: str, contact_id: str) -> ContactRemoval:
        """Delete a contact. No other contact is promoted to primary.

        Raises:
            NotFound: If the contact does not belong to the user
            SourceUnavailable: If the transaction fails
        """
        def _remove(transaction: Any) -> ContactRemoval:
            contacts = self._read_contacts(transaction, user_id)
            removed = next((c for c in contacts if c.id == contact_id), None)
            if removed is None:
                raise NotFound(f"Emergency contact {contact_id} not found")

            transaction.delete(self._contacts().document(contact_id))
            remaining = [c for c in contacts if c.id != contact_id]
            return describe_removal(removed, remaining)

        with translate_errors("remove emergency contact"):
            result = self.firestore.run_transaction(_remove)

        if result.needs_primary:
            logger.warning(
                "User %s removed their primary contact; %d contacts remain without a primary",
                user_id, result.remaining,
            )
        return result
