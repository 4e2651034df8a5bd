import json
from datetime import datetime, timedelta, timezone

import pytest

from mailtrack.ui_state import (
    FLASH_SECONDS,
    Browsing,
    CategoryItem,
    ContactItem,
    ContactMove,
    DashboardState,
    Deleting,
    DraftItem,
    DraftPlace,
    EditingField,
    InvalidDragPayload,
    MailItem,
    MailReorder,
    Popover,
    SortMode,
    decode_drag_payload,
    encode_drag_payload,
    filter_contacts,
    sort_contacts,
)

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture()
def state():
    return DashboardState(
        contacts=[
            ContactItem("c1", "Max Producer", "max@beats.com", "cat-1", 0,
                        sent_mails=[MailItem("m1"), MailItem("m2"), MailItem("m3")]),
            ContactItem("c2", "Lisa Songwriter", "lisa@studio.com", "cat-2", 0),
            ContactItem("c3", "Anna", "anna@studio.com", "cat-1", 1),
        ],
        categories=[CategoryItem("cat-1", "Producer"), CategoryItem("cat-2", "Songwriter")],
        drafts=[
            DraftItem("d1", "first", None, 0),
            DraftItem("d2", "second", None, 1),
            DraftItem("d3", "placed", "c2", 0),
        ],
    )


@pytest.mark.parametrize(
    "payload",
    [ContactMove("c1"), MailReorder("c1", "m2"), DraftPlace("d1")],
)
def test_drag_payload_roundtrip(payload):
    assert decode_drag_payload(encode_drag_payload(payload)) == payload


def test_decode_legacy_payloads():
    assert decode_drag_payload('{"contact": "c1"}') == ContactMove("c1")
    assert decode_drag_payload('{"manualDraft": "d1"}') == DraftPlace("d1")


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        "null",
        '{"kind": "mail", "contactId": "c1"}',
        '{"kind": "contact", "contactId": 5}',
        '{"kind": "teleport"}',
        "{}",
    ],
)
def test_decode_rejects_unknown_shapes(raw):
    with pytest.raises(InvalidDragPayload):
        decode_drag_payload(raw)


def test_only_one_popover_open(state):
    assert state.toggle_popover(Popover.ADD) == Popover.ADD
    assert state.toggle_popover(Popover.DATA) == Popover.DATA
    assert state.toggle_popover(Popover.DATA) == Popover.NONE
    state.toggle_popover(Popover.USER)
    state.close_popover()
    assert state.popover == Popover.NONE


def test_delete_mode_gates_selection_and_menus(state):
    assert state.toggle_selection("contact", "c1") is False

    state.toggle_popover(Popover.ADD)
    state.enter_delete_mode()
    assert state.popover == Popover.NONE
    assert not state.can_add
    assert state.toggle_popover(Popover.USER) == Popover.NONE
    assert state.begin_edit("contact", "c1", "name") is False

    state.toggle_selection("contact", "c1")
    state.toggle_selection("contact", "c3")
    state.toggle_selection("contact", "c3")
    state.toggle_selection("category", "cat-2")
    assert state.mode == Deleting(frozenset({"c1"}), frozenset({"cat-2"}))

    state.delete_selected()
    assert isinstance(state.mode, Browsing)
    assert [c.id for c in state.contacts] == ["c2", "c3"]
    assert [c.id for c in state.categories] == ["cat-1"]
    assert state.contacts[0].category_id is None


def test_exit_delete_mode_discards_selection(state):
    state.enter_delete_mode()
    state.toggle_selection("contact", "c1")
    state.exit_delete_mode()
    assert state.mode == Browsing()
    assert state.can_add

    state.enter_delete_mode()
    with pytest.raises(ValueError):
        state.toggle_selection("mail", "m1")


def test_inline_edit(state):
    state.toggle_popover(Popover.DATA)
    assert state.begin_edit("contact", "c2", "email") is True
    assert state.mode == EditingField("contact", "c2", "email")
    assert state.popover == Popover.NONE
    state.end_edit()
    assert state.mode == Browsing()


def test_priority_threshold_is_clamped(state):
    assert state.set_priority_after_days(3) == 7
    assert state.set_priority_after_days(300) == 120
    assert state.set_priority_after_days(45) == 45


def test_flash_expires(state):
    state.flash("saved", now=100.0)
    assert state.is_flashing("saved", now=100.0 + FLASH_SECONDS - 0.01)
    assert not state.is_flashing("saved", now=100.0 + FLASH_SECONDS)
    assert "saved" not in state.flashes
    assert not state.is_flashing("never")


def test_filter_and_sort_contacts():
    contacts = [
        ContactItem("a", "Zed", "z@x.com", position=2, last_sent_at=NOW - timedelta(days=5)),
        ContactItem("b", "amy", "amy@x.com", position=0),
        ContactItem("c", "Bob", "bob@studio.com", position=1,
                    last_sent_at=NOW - timedelta(days=40)),
        ContactItem("d", "Cat", "cat@x.com", position=3,
                    sent_mails=[MailItem("m", NOW - timedelta(days=50))]),
    ]
    assert [c.id for c in filter_contacts(contacts, "STUDIO")] == ["c"]
    assert filter_contacts(contacts, "") == contacts

    assert [c.id for c in sort_contacts(contacts, SortMode.CUSTOM)] == ["b", "c", "a", "d"]
    assert [c.id for c in sort_contacts(contacts, SortMode.ALPHABETICAL)] == [
        "b", "c", "d", "a"
    ]
    assert [c.id for c in sort_contacts(contacts, SortMode.PRIORITY, 30, NOW)] == [
        "d", "c", "a", "b"
    ]
    assert [c.position for c in contacts] == [2, 0, 1, 3]


def test_visible_contacts_uses_search_and_sort(state):
    state.search = "studio"
    state.sort_mode = SortMode.ALPHABETICAL
    assert [c.id for c in state.visible_contacts(NOW)] == ["c3", "c2"]


def test_drop_contact_onto_category(state):
    moved = state.apply_drop(ContactMove("c2"), target_id="cat-1")
    assert moved.category_id == "cat-1"
    assert moved.position == 2
    assert [c.id for c in state.contacts_in_category("cat-1")] == ["c1", "c3", "c2"]

    state.apply_drop(ContactMove("c2"), target_id=None)
    assert [c.id for c in state.contacts_in_category(None)] == ["c2"]

    with pytest.raises(KeyError):
        state.apply_drop(ContactMove("c2"), target_id="cat-404")


def test_drop_mail_reorders_within_contact(state):
    contact = state.apply_drop(MailReorder("c1", "m3"), target_id="c1", target_index=0)
    assert [m.id for m in contact.sent_mails] == ["m3", "m1", "m2"]

    state.apply_drop(MailReorder("c1", "m3"))
    assert [m.id for m in contact.sent_mails] == ["m1", "m2", "m3"]

    with pytest.raises(ValueError):
        state.apply_drop(MailReorder("c1", "m1"), target_id="c2")
    with pytest.raises(KeyError):
        state.apply_drop(MailReorder("c1", "m9"))


def test_drop_draft_onto_contact(state):
    draft = state.apply_drop(DraftPlace("d1"), target_id="c2")
    assert (draft.contact_id, draft.position) == ("c2", 1)
    assert [d.id for d in state.unplaced_drafts()] == ["d2"]
    assert state.is_flashing("contact:c2")

    with pytest.raises(ValueError):
        state.apply_drop(DraftPlace("d2"))
    with pytest.raises(KeyError):
        state.apply_drop(DraftPlace("d2"), target_id="nobody")


def test_encoded_payload_is_json():
    assert json.loads(encode_drag_payload(DraftPlace("d1"))) == {
        "kind": "draft",
        "draftId": "d1",
    }


def test_repeat_draft_drop_keeps_position(state):
    state.apply_drop(DraftPlace("d1"), target_id="c2")
    again = state.apply_drop(DraftPlace("d1"), target_id="c2")
    assert (again.contact_id, again.position) == ("c2", 1)

    placed = state.apply_drop(DraftPlace("d3"), target_id="c2")
    assert placed.position == 0
