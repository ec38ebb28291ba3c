"""Emergency contact service.

A contact with user_id NULL is public and visible to everyone; otherwise it
is private to its owner, who alone may delete it.
"""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from safecampus.models.emergency_contact import EmergencyContact
from safecampus.schemas.contact import ContactCreate


def is_visible(contact: EmergencyContact, user_id: int | None) -> bool:
    return contact.user_id is None or (user_id is not None and contact.user_id == user_id)


def can_delete(contact: EmergencyContact, user_id: int | None) -> bool:
    return user_id is not None and contact.user_id == user_id


def list_visible_contacts(db: Session, user_id: int | None) -> list[EmergencyContact]:
    """Public contacts plus the user's own, newest first."""
    condition = EmergencyContact.user_id.is_(None)
    if user_id is not None:
        condition = or_(condition, EmergencyContact.user_id == user_id)
    stmt = (
        select(EmergencyContact)
        .where(condition)
        .order_by(EmergencyContact.created_at.desc(), EmergencyContact.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def add_contact(db: Session, user_id: int | None, data: ContactCreate) -> EmergencyContact:
    if user_id is None:
        raise PermissionError("Login required to add contacts")
    name = data.name.strip()
    phone = data.phone.strip()
    if not name or not phone:
        raise ValueError("Name and phone are required")
    contact = EmergencyContact(user_id=user_id, name=name, phone=phone)
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact_id: int, user_id: int | None) -> None:
    contact = db.get(EmergencyContact, contact_id)
    if not contact or not is_visible(contact, user_id):
        raise ValueError("Contact not found")
    if not can_delete(contact, user_id):
        raise PermissionError("Only the owner can delete this contact")
    db.delete(contact)
    db.commit()
