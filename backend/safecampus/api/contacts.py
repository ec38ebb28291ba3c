"""Emergency contacts API."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from safecampus.core.deps import get_current_user, get_optional_user
from safecampus.db.session import get_db
from safecampus.models.emergency_contact import EmergencyContact
from safecampus.models.user import User
from safecampus.schemas.contact import ContactCreate, ContactResponse
from safecampus.services.contact_service import add_contact, can_delete, delete_contact, list_visible_contacts

router = APIRouter(prefix="/contacts", tags=["contacts"])


def _to_response(contact: EmergencyContact, user_id: int | None) -> ContactResponse:
    return ContactResponse(
        id=contact.id,
        name=contact.name,
        phone=contact.phone,
        user_id=contact.user_id,
        created_at=contact.created_at,
        is_public=contact.user_id is None,
        can_delete=can_delete(contact, user_id),
    )


@router.get("", response_model=list[ContactResponse])
def list_contacts(
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    """Public contacts plus the caller's private ones, newest first."""
    user_id = current_user.id if current_user else None
    return [_to_response(c, user_id) for c in list_visible_contacts(db, user_id)]


@router.post("", response_model=ContactResponse)
def create_contact(
    data: ContactCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        contact = add_contact(db, current_user.id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _to_response(contact, current_user.id)


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    """Delete a private contact. Only its owner may do this."""
    try:
        delete_contact(db, contact_id, current_user.id if current_user else None)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
