"""Database models for the Mailtrack API.

This module defines SQLAlchemy ORM models used by the application.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def new_id() -> str:
    """Return a new random primary key."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class User(Base):
    """
    SQLAlchemy model representing an authenticated identity.

    A user owns categories, contacts, sent mail and manual drafts.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)

    categories = relationship("Category", back_populates="owner", cascade="all, delete")
    contacts = relationship("Contact", back_populates="owner", cascade="all, delete")
    manual_drafts = relationship(
        "ManualDraft", back_populates="owner", cascade="all, delete"
    )


class Category(Base):
    """
    A named group of contacts.

    Names are unique per owner; ``position`` defines the display order.
    """

    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_category_user_name"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    owner = relationship("User", back_populates="categories")
    contacts = relationship("Contact", back_populates="category")


class Contact(Base):
    """
    SQLAlchemy model representing a contact entry.

    Each contact belongs to exactly one user and must have
    a unique email address per owner. A contact without a
    category is shown as "uncategorized".
    """

    __tablename__ = "contacts"
    __table_args__ = (UniqueConstraint("user_id", "email", name="uq_contact_user_email"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    category_id = Column(
        String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    position = Column(Integer, nullable=False, default=0)
    last_sent_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("User", back_populates="contacts")
    category = relationship("Category", back_populates="contacts")
    sent_mails = relationship(
        "SentMail",
        back_populates="contact",
        cascade="all, delete-orphan",
        order_by="desc(SentMail.sent_at)",
    )
    manual_drafts = relationship("ManualDraft", back_populates="contact")


class SentMail(Base):
    """A mail sent to a contact. Read-only from the API's point of view."""

    __tablename__ = "sent_mails"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id = Column(
        String(36), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    gmail_message_id = Column(String(255), unique=True, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    note = Column(Text, nullable=True)
    status = Column(String(50), nullable=True)
    labels = Column(JSON, nullable=False, default=list)

    contact = relationship("Contact", back_populates="sent_mails")
    attachments = relationship(
        "Attachment", back_populates="sent_mail", cascade="all, delete-orphan"
    )


class Attachment(Base):
    """File attached to a sent mail."""

    __tablename__ = "attachments"

    id = Column(String(36), primary_key=True, default=new_id)
    sent_mail_id = Column(
        String(36), ForeignKey("sent_mails.id", ondelete="CASCADE"), nullable=False
    )
    filename = Column(String(500), nullable=False)

    sent_mail = relationship("SentMail", back_populates="attachments")


class ManualDraft(Base):
    """
    A hand-written note about a mail.

    Drafts without a contact live in the unplaced pool ("the stack"),
    ordered by ``position``, until they are dropped onto a contact.
    """

    __tablename__ = "manual_drafts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id = Column(
        String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )
    note = Column(Text, nullable=False, default="")
    position = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    owner = relationship("User", back_populates="manual_drafts")
    contact = relationship("Contact", back_populates="manual_drafts")
