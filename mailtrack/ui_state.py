"""Presentation state of the dashboard, free of any UI toolkit.

The browser keeps one :class:`DashboardState`. Its interaction mode is a
single tagged value (browsing, deleting or editing a field) and at most
one popover is open at a time. Drag and drop carries a small JSON payload
that is decoded once, at the drop, into a :class:`ContactMove`,
:class:`MailReorder` or :class:`DraftPlace`; :meth:`DashboardState.apply_drop`
then routes it.
"""

import enum
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Sequence, Union

from .reorder import move_item
from .staleness import (
    DEFAULT_THRESHOLD_DAYS,
    classify,
    clamp_threshold,
    last_sent_at,
)

FLASH_SECONDS = 1.5


# Interaction modes


@dataclass(frozen=True)
class Browsing:
    pass


@dataclass(frozen=True)
class Deleting:
    selected_contacts: FrozenSet[str] = frozenset()
    selected_categories: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class EditingField:
    kind: str
    item_id: str
    field: str


UIMode = Union[Browsing, Deleting, EditingField]


class Popover(enum.Enum):
    NONE = "none"
    ADD = "add"
    USER = "user"
    DATA = "data"


class SortMode(str, enum.Enum):
    CUSTOM = "custom"
    ALPHABETICAL = "alphabetical"
    PRIORITY = "priority"


# Drag payloads


class InvalidDragPayload(ValueError):
    """The drag data channel carried something we do not understand."""


@dataclass(frozen=True)
class ContactMove:
    contact_id: str


@dataclass(frozen=True)
class MailReorder:
    contact_id: str
    mail_id: str


@dataclass(frozen=True)
class DraftPlace:
    draft_id: str


DragPayload = Union[ContactMove, MailReorder, DraftPlace]


def encode_drag_payload(payload: DragPayload) -> str:
    """Serialize a payload for the drag data channel."""
    if isinstance(payload, ContactMove):
        data = {"kind": "contact", "contactId": payload.contact_id}
    elif isinstance(payload, MailReorder):
        data = {
            "kind": "mail",
            "contactId": payload.contact_id,
            "mailId": payload.mail_id,
        }
    elif isinstance(payload, DraftPlace):
        data = {"kind": "draft", "draftId": payload.draft_id}
    else:
        raise TypeError(f"Unsupported drag payload: {payload!r}")
    return json.dumps(data)


def _required(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidDragPayload(f"Drag payload is missing {key}")
    return value


def decode_drag_payload(raw: str) -> DragPayload:
    """
    Decode the drag data channel's JSON into a typed payload.

    Besides the ``{"kind": ...}`` form, the bare ``{"contact": id}`` and
    ``{"manualDraft": id}`` shapes written by older dashboards are
    accepted.

    Raises:
        InvalidDragPayload: For malformed JSON or an unknown shape.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidDragPayload("Drag payload is not valid JSON") from exc
    if not isinstance(data, dict):
        raise InvalidDragPayload("Drag payload must be an object")

    kind = data.get("kind")
    if kind == "contact":
        return ContactMove(contact_id=_required(data, "contactId"))
    if kind == "mail":
        return MailReorder(
            contact_id=_required(data, "contactId"),
            mail_id=_required(data, "mailId"),
        )
    if kind == "draft":
        return DraftPlace(draft_id=_required(data, "draftId"))
    if kind is None and "contact" in data:
        return ContactMove(contact_id=_required(data, "contact"))
    if kind is None and "manualDraft" in data:
        return DraftPlace(draft_id=_required(data, "manualDraft"))
    raise InvalidDragPayload(f"Unknown drag payload kind: {kind!r}")


# Items shown on the dashboard


@dataclass
class MailItem:
    id: str
    sent_at: Optional[datetime] = None
    note: str = ""


@dataclass
class ContactItem:
    id: str
    name: str
    email: str
    category_id: Optional[str] = None
    position: int = 0
    last_sent_at: Optional[datetime] = None
    sent_mails: List[MailItem] = field(default_factory=list)


@dataclass
class CategoryItem:
    id: str
    name: str
    position: int = 0


@dataclass
class DraftItem:
    id: str
    note: str = ""
    contact_id: Optional[str] = None
    position: int = 0


def filter_contacts(contacts: Sequence, search: str) -> list:
    """Case-insensitive substring match on name or email."""
    if not search:
        return list(contacts)
    needle = search.lower()
    return [
        c for c in contacts if needle in c.name.lower() or needle in c.email.lower()
    ]


_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def sort_contacts(
    contacts: Sequence,
    mode: SortMode,
    threshold: int = DEFAULT_THRESHOLD_DAYS,
    now: Optional[datetime] = None,
) -> list:
    """
    Order contacts for display. Never changes stored positions.

    ``PRIORITY`` puts the most stale contacts first, longest-waiting
    first within a bucket, and contacts never written to last.
    """
    if mode == SortMode.ALPHABETICAL:
        return sorted(contacts, key=lambda c: (c.name.lower(), c.email))
    if mode == SortMode.PRIORITY:

        def key(contact):
            sent = last_sent_at(contact)
            bucket = classify(sent, threshold, now)
            return (-bucket.severity, sent or _FAR_FUTURE, contact.name.lower())

        return sorted(contacts, key=key)
    return sorted(contacts, key=lambda c: c.position)


@dataclass
class DashboardState:
    contacts: List[ContactItem] = field(default_factory=list)
    categories: List[CategoryItem] = field(default_factory=list)
    drafts: List[DraftItem] = field(default_factory=list)
    mode: UIMode = field(default_factory=Browsing)
    popover: Popover = Popover.NONE
    sort_mode: SortMode = SortMode.CUSTOM
    priority_after_days: int = DEFAULT_THRESHOLD_DAYS
    search: str = ""
    flashes: Dict[str, float] = field(default_factory=dict)

    @property
    def deleting(self) -> bool:
        return isinstance(self.mode, Deleting)

    @property
    def can_add(self) -> bool:
        """Adding and menus are disabled while in delete mode."""
        return not self.deleting

    # Popovers

    def toggle_popover(self, popover: Popover) -> Popover:
        """Open ``popover`` (closing any other) or close it if already open."""
        if self.deleting and popover != Popover.NONE:
            return self.popover
        self.popover = Popover.NONE if self.popover == popover else popover
        return self.popover

    def close_popover(self) -> None:
        self.popover = Popover.NONE

    # Delete mode

    def enter_delete_mode(self) -> None:
        self.mode = Deleting()
        self.popover = Popover.NONE

    def exit_delete_mode(self) -> None:
        self.mode = Browsing()

    def toggle_selection(self, kind: str, item_id: str) -> bool:
        """
        Check or uncheck a contact or category for deletion.

        Returns:
            bool: ``False`` when not in delete mode and nothing changed.
        """
        if not isinstance(self.mode, Deleting):
            return False
        if kind == "contact":
            selected = self.mode.selected_contacts ^ {item_id}
            self.mode = Deleting(selected, self.mode.selected_categories)
        elif kind == "category":
            selected = self.mode.selected_categories ^ {item_id}
            self.mode = Deleting(self.mode.selected_contacts, selected)
        else:
            raise ValueError(f"Unknown selection kind: {kind}")
        return True

    def delete_selected(self) -> None:
        """Remove selected items locally and leave delete mode.

        Contacts of a deleted category become uncategorized.
        """
        if not isinstance(self.mode, Deleting):
            return
        contacts = self.mode.selected_contacts
        categories = self.mode.selected_categories
        self.contacts = [c for c in self.contacts if c.id not in contacts]
        self.categories = [c for c in self.categories if c.id not in categories]
        for contact in self.contacts:
            if contact.category_id in categories:
                contact.category_id = None
        self.mode = Browsing()

    # Inline editing

    def begin_edit(self, kind: str, item_id: str, field_name: str) -> bool:
        if self.deleting:
            return False
        self.mode = EditingField(kind, item_id, field_name)
        self.popover = Popover.NONE
        return True

    def end_edit(self) -> None:
        if isinstance(self.mode, EditingField):
            self.mode = Browsing()

    # Settings and display

    def set_priority_after_days(self, days: int) -> int:
        self.priority_after_days = clamp_threshold(days)
        return self.priority_after_days

    def visible_contacts(self, now: Optional[datetime] = None) -> list:
        return sort_contacts(
            filter_contacts(self.contacts, self.search),
            self.sort_mode,
            self.priority_after_days,
            now,
        )

    def contacts_in_category(self, category_id: Optional[str]) -> List[ContactItem]:
        return sorted(
            (c for c in self.contacts if c.category_id == category_id),
            key=lambda c: c.position,
        )

    def unplaced_drafts(self) -> List[DraftItem]:
        return sorted(
            (d for d in self.drafts if d.contact_id is None), key=lambda d: d.position
        )

    # Transient animation flags

    def flash(self, name: str, now: Optional[float] = None) -> None:
        """Raise a flag that clears itself after ``FLASH_SECONDS``."""
        self.flashes[name] = (time.monotonic() if now is None else now) + FLASH_SECONDS

    def is_flashing(self, name: str, now: Optional[float] = None) -> bool:
        expires = self.flashes.get(name)
        if expires is None:
            return False
        if (time.monotonic() if now is None else now) >= expires:
            del self.flashes[name]
            return False
        return True

    # Drag and drop

    def _contact(self, contact_id: str) -> ContactItem:
        for contact in self.contacts:
            if contact.id == contact_id:
                return contact
        raise KeyError(f"Unknown contact {contact_id}")

    def _draft(self, draft_id: str) -> DraftItem:
        for draft in self.drafts:
            if draft.id == draft_id:
                return draft
        raise KeyError(f"Unknown draft {draft_id}")

    def apply_drop(
        self,
        payload: DragPayload,
        target_id: Optional[str] = None,
        target_index: Optional[int] = None,
    ):
        """
        Route a decoded drag payload to its effect.

        * ``ContactMove``: the contact joins category ``target_id``
          (``None`` for uncategorized) at the end of its list.
        * ``MailReorder``: the mail moves to ``target_index`` within its
          contact's list (end when omitted).
        * ``DraftPlace``: the draft is attached to contact ``target_id``
          after that contact's other drafts. A draft already on that
          contact keeps its position.

        Raises:
            KeyError: If a referenced item is unknown.
            ValueError: If the target does not fit the payload.

        Returns:
            The changed contact or draft.
        """
        if isinstance(payload, ContactMove):
            contact = self._contact(payload.contact_id)
            if target_id is not None and not any(
                c.id == target_id for c in self.categories
            ):
                raise KeyError(f"Unknown category {target_id}")
            if contact.category_id != target_id:
                siblings = self.contacts_in_category(target_id)
                contact.category_id = target_id
                contact.position = (
                    max(c.position for c in siblings) + 1 if siblings else 0
                )
            return contact

        if isinstance(payload, MailReorder):
            contact = self._contact(payload.contact_id)
            if target_id is not None and target_id != contact.id:
                raise ValueError("Mail can only be reordered within its contact")
            ids = [mail.id for mail in contact.sent_mails]
            if payload.mail_id not in ids:
                raise KeyError(f"Unknown mail {payload.mail_id}")
            index = len(ids) if target_index is None else target_index
            contact.sent_mails = move_item(
                contact.sent_mails, ids.index(payload.mail_id), index
            )
            return contact

        if isinstance(payload, DraftPlace):
            if target_id is None:
                raise ValueError("A draft must be dropped onto a contact")
            draft = self._draft(payload.draft_id)
            contact = self._contact(target_id)
            if draft.contact_id != contact.id:
                placed = [d for d in self.drafts if d.contact_id == contact.id]
                draft.contact_id = contact.id
                draft.position = max((d.position for d in placed), default=-1) + 1
            self.flash(f"contact:{contact.id}")
            return draft

        raise TypeError(f"Unsupported drag payload: {payload!r}")
