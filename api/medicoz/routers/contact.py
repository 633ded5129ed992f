"""Contact form intake and the admin triage endpoints."""

from __future__ import annotations

import logging
from typing import get_args

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_admin
from ..deps import get_admin_db, get_db
from ..models import utcnow
from ..services.accounts import is_valid_email
from ..services.email import send_contact_reply_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["Contact"])

VALID_INTENTS = get_args(schemas.ContactIntent)


@router.post("/submit", response_model=schemas.ContactSubmitted, status_code=status.HTTP_201_CREATED)
def submit_contact(
    payload: schemas.ContactSubmit,
    request: Request,
    db: Session = Depends(get_db),
    admin_db: Session = Depends(get_admin_db),
) -> schemas.ContactSubmitted:
    """
    Store a contact submission in the main database, then mirror it into the
    admin database where the admin panel reads it.
    """
    name = (payload.name or "").strip()
    email = (payload.email or "").strip().lower()
    message = (payload.message or "").strip()
    if not name or not email or not message or not payload.intent:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="All required fields must be provided",
        )
    if not is_valid_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide a valid email address",
        )
    if payload.intent not in VALID_INTENTS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid intent selected")

    user_agent = request.headers.get("user-agent")
    fields = dict(
        name=name,
        email=email,
        message=message,
        intent=payload.intent,
        links=(payload.links or "").strip() or None,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent[:500] if user_agent else None,
    )

    contact = models.ContactForm(**fields)
    db.add(contact)
    db.commit()
    db.refresh(contact)

    admin_db.add(
        models.AdminContactForm(
            **fields,
            source_id=contact.id,
            created_at=contact.created_at,
            updated_at=contact.updated_at,
        )
    )
    admin_db.commit()

    logger.info(f"Contact form {contact.id} received ({contact.intent}) from {contact.email}")
    return schemas.ContactSubmitted(
        message="Thank you for your message! We'll get back to you soon.",
        contact_id=contact.id,
    )


# ============================================================================
# ADMIN
# ============================================================================


def _get_contact_or_404(admin_db: Session, contact_id: int) -> models.AdminContactForm:
    contact = (
        admin_db.query(models.AdminContactForm)
        .filter(models.AdminContactForm.id == contact_id)
        .first()
    )
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return contact


@router.get("/admin/all", response_model=schemas.ContactList)
def list_contacts(
    admin: models.User = Depends(require_admin),
    admin_db: Session = Depends(get_admin_db),
) -> schemas.ContactList:
    contacts = (
        admin_db.query(models.AdminContactForm)
        .order_by(models.AdminContactForm.created_at.desc(), models.AdminContactForm.id.desc())
        .all()
    )
    return schemas.ContactList(contacts=[schemas.Contact.model_validate(c) for c in contacts])


@router.get("/admin/{contact_id}", response_model=schemas.ContactEnvelope)
def get_contact(
    contact_id: int,
    admin: models.User = Depends(require_admin),
    admin_db: Session = Depends(get_admin_db),
) -> schemas.ContactEnvelope:
    contact = _get_contact_or_404(admin_db, contact_id)
    return schemas.ContactEnvelope(contact=schemas.Contact.model_validate(contact))


@router.patch("/admin/{contact_id}/read", response_model=schemas.ContactAck)
def mark_contact_read(
    contact_id: int,
    admin: models.User = Depends(require_admin),
    admin_db: Session = Depends(get_admin_db),
) -> schemas.ContactAck:
    contact = _get_contact_or_404(admin_db, contact_id)
    contact.is_read = True
    admin_db.commit()
    return schemas.ContactAck(message="Contact marked as read")


@router.patch("/admin/{contact_id}/reply", response_model=schemas.ContactAck)
def reply_to_contact(
    contact_id: int,
    payload: schemas.ContactReply,
    background_tasks: BackgroundTasks,
    admin: models.User = Depends(require_admin),
    admin_db: Session = Depends(get_admin_db),
) -> schemas.ContactAck:
    """Save the reply and email it to the submitter after the response."""
    reply = (payload.reply_message or "").strip()
    if not reply:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reply message is required")

    contact = _get_contact_or_404(admin_db, contact_id)
    contact.is_replied = True
    contact.reply_message = reply
    contact.replied_at = utcnow()
    admin_db.commit()

    background_tasks.add_task(
        send_contact_reply_email, contact.email, contact.name, contact.message, reply
    )
    logger.info(f"Admin {admin.id} replied to contact {contact.id}")
    return schemas.ContactAck(message="Reply saved successfully")


@router.delete("/admin/{contact_id}", response_model=schemas.ContactAck)
def delete_contact(
    contact_id: int,
    admin: models.User = Depends(require_admin),
    admin_db: Session = Depends(get_admin_db),
) -> schemas.ContactAck:
    contact = _get_contact_or_404(admin_db, contact_id)
    admin_db.delete(contact)
    admin_db.commit()
    logger.info(f"Admin {admin.id} deleted contact {contact_id}")
    return schemas.ContactAck(message="Contact deleted successfully")
