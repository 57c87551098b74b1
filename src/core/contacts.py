"""Emergency contact rules - Pure functions.

A user's contacts have at most one primary, and the first contact a user
adds is always primary. Removing the primary does not promote another
contact; callers are told so they can remind the user.

The shell applies these decisions inside a single store transaction.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from src.core.errors import InvalidInput, NotFound


MAX_NAME_LENGTH = 100
MAX_RELATIONSHIP_LENGTH = 100

# E.164-ish: optional +, 7-15 digits, separators allowed
_PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9 ()\-]{5,19}$")


@dataclass(frozen=True)
class EmergencyContact:
    """Immutable emergency contact data model."""
    id: str
    user_id: str
    name: str
    phone: str
    relationship: str | None = None
    is_primary: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class ContactRemoval:
    """Result of removing a contact.

    Attributes:
        removed: The contact that was removed
        remaining: Number of contacts left
        needs_primary: True if contacts remain but none is primary
    """
    removed: EmergencyContact
    remaining: int
    needs_primary: bool


def normalize_phone(phone: str) -> str:
    """Strip separators, keeping a leading +."""
    digits = re.sub(r"[^0-9]", "", phone)
    return f"+{digits}" if phone.strip().startswith("+") else digits


def _validate_name(name: str) -> None:
    if not name or not name.strip():
        raise InvalidInput("Contact name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInput(f"Contact name longer than {MAX_NAME_LENGTH} characters")


def _validate_phone(phone: str) -> None:
    if not phone or not _PHONE_PATTERN.match(phone.strip()):
        raise InvalidInput(f"Invalid phone number '{phone}'")
    digit_count = len(re.sub(r"[^0-9]", "", phone))
    if not 7 <= digit_count <= 15:
        raise InvalidInput(f"Invalid phone number '{phone}'")


def _validate_relationship(relationship: str | None) -> None:
    if relationship is not None and len(relationship) > MAX_RELATIONSHIP_LENGTH:
        raise InvalidInput(f"Relationship longer than {MAX_RELATIONSHIP_LENGTH} characters")


def validate_contact(name: str, phone: str, relationship: str | None = None) -> None:
    """Validate contact fields.

    Raises:
        InvalidInput: On empty/overlong name, malformed phone, or
            overlong relationship
    """
    _validate_name(name)
    _validate_phone(phone)
    _validate_relationship(relationship)


def validate_contact_update(
    name: str | None = None,
    phone: str | None = None,
    relationship: str | None = None,
    is_primary: bool | None = None,
) -> None:
    """Validate the fields of a partial update. None means unchanged.

    Raises:
        InvalidInput: If nothing would change, or a given field is invalid
    """
    if name is None and phone is None and relationship is None and is_primary is None:
        raise InvalidInput("Nothing to update")
    if name is not None:
        _validate_name(name)
    if phone is not None:
        _validate_phone(phone)
    _validate_relationship(relationship)


def should_be_primary(existing: list[EmergencyContact], requested: bool) -> bool:
    """A new contact is primary if requested, or if it is the user's first."""
    return requested or not existing


def plan_primary_swap(
    contacts: list[EmergencyContact],
    contact_id: str,
) -> tuple[list[str], str]:
    """Decide which flags flip to make contact_id the only primary.

    Pure function.

    Args:
        contacts: All of the user's contacts
        contact_id: Contact to make primary

    Returns:
        (IDs to unset, ID to set)

    Raises:
        NotFound: If contact_id is not among the user's contacts
    """
    if not any(c.id == contact_id for c in contacts):
        raise NotFound(f"Emergency contact {contact_id} not found")

    to_unset = [c.id for c in contacts if c.is_primary and c.id != contact_id]
    return to_unset, contact_id


def primary_count(contacts: list[EmergencyContact]) -> int:
    return sum(1 for c in contacts if c.is_primary)


def order_contacts(contacts: list[EmergencyContact]) -> list[EmergencyContact]:
    """Primary first, then oldest first."""
    return sorted(
        contacts,
        key=lambda c: (
            not c.is_primary,
            c.created_at.timestamp() if c.created_at else 0.0,
            c.id,
        ),
    )


def describe_removal(
    removed: EmergencyContact,
    remaining: list[EmergencyContact],
) -> ContactRemoval:
    """Build the removal result; no contact is promoted automatically."""
    return ContactRemoval(
        removed=removed,
        remaining=len(remaining),
        needs_primary=bool(remaining) and primary_count(remaining) == 0,
    )
