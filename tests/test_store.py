"""Tests for the conversation store: versions, leases, edits and deletes."""

from __future__ import annotations

import pytest

from playground.chat.store import ConversationStore, GeneratedImage
from playground.errors import InvariantViolation, ValidationError


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


def test_append_assigns_unique_keys_and_placeholder(store: ConversationStore) -> None:
    user = store.append_user("hi")
    assistant = store.append_assistant()

    assert user.key.startswith("user-")
    assert assistant.key.startswith("assistant-")
    assert user.key != assistant.key
    assert assistant.active_version.content == ""
    assert assistant.active_version.reasoning_content is None


def test_on_change_fires_for_writes() -> None:
    calls: list[int] = []
    store = ConversationStore(on_change=lambda: calls.append(1))

    store.append_user("hi")
    store.append_assistant()

    assert len(calls) == 2


def test_write_stream_requires_active_lease(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    version = assistant.active_version
    lease = store.acquire_lease(assistant.key, version.id)

    store.write_stream(lease, "partial", "thinking")
    assert version.content == "partial"
    assert version.reasoning_content == "thinking"

    store.write_stream(lease, "partial answer", "")
    assert version.reasoning_content is None

    store.release_lease(lease)
    with pytest.raises(InvariantViolation):
        store.write_stream(lease, "late", None)
    assert version.content == "partial answer"


def test_lease_is_exclusive(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    version = assistant.active_version
    store.acquire_lease(assistant.key, version.id)

    with pytest.raises(InvariantViolation):
        store.acquire_lease(assistant.key, version.id)


def test_image_version_rejects_text_stream(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    lease = store.acquire_lease(assistant.key, assistant.active_version.id)
    store.write_image(lease, GeneratedImage(data="AAAA", mime_type="image/png"))

    with pytest.raises(InvariantViolation):
        store.write_stream(lease, "text", None)
    with pytest.raises(InvariantViolation):
        store.write_image(lease, GeneratedImage(data="BBBB", mime_type="image/png"))
    assert assistant.active_version.generated_image.data == "AAAA"


def test_delete_rejected_while_leased(store: ConversationStore) -> None:
    store.append_user("hi")
    assistant = store.append_assistant()
    lease = store.acquire_lease(assistant.key, assistant.active_version.id)

    with pytest.raises(InvariantViolation):
        store.delete_message(assistant.key)
    assert len(store) == 2

    store.release_lease(lease)
    store.delete_message(assistant.key)
    assert [m.role for m in store.messages] == ["user"]


def test_start_edit_rejected_while_leased(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    version = assistant.active_version
    store.acquire_lease(assistant.key, version.id)

    with pytest.raises(InvariantViolation):
        store.start_edit(assistant.key, version.id)
    assert version.editing is False


def test_save_edit_rejects_blank_content(store: ConversationStore) -> None:
    user = store.append_user("original")
    version = user.active_version
    store.start_edit(user.key, version.id)

    with pytest.raises(ValidationError):
        store.save_edit(user.key, version.id, "   \n")

    assert version.editing is True
    assert version.content == "original"


def test_save_edit_replaces_content_verbatim(store: ConversationStore) -> None:
    user = store.append_user("original")
    version = user.active_version
    store.start_edit(user.key, version.id)
    store.update_edit(version.id, "  revised text  ")

    saved = store.save_edit(user.key, version.id)

    assert saved.content == "  revised text  "
    assert saved.editing is False
    assert len(user.versions) == 1
    assert store.edit_draft(version.id) is None


def test_cancel_edit_keeps_content(store: ConversationStore) -> None:
    user = store.append_user("original")
    version = user.active_version
    store.start_edit(user.key, version.id, "draft")
    assert store.edit_draft(version.id) == "draft"

    store.cancel_edit(user.key, version.id)

    assert version.editing is False
    assert version.content == "original"
    assert store.edit_draft(version.id) is None


def test_select_version_bounds(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    second = assistant.add_version("retry")

    assert assistant.active_version is second
    assert assistant.select_version(0) is assistant.versions[0]
    with pytest.raises(InvariantViolation):
        assistant.select_version(5)


def test_clear_drops_messages_and_leases(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    store.acquire_lease(assistant.key, assistant.active_version.id)

    store.clear()

    assert len(store) == 0
    assert store.active_lease is None


def test_write_failure_drops_stored_image(store: ConversationStore) -> None:
    assistant = store.append_assistant()
    version = assistant.active_version
    lease = store.acquire_lease(assistant.key, version.id)
    store.write_image(lease, GeneratedImage(data="AAAA", mime_type="image/png"))

    store.write_failure(lease, "Image generation failed")

    assert version.generated_image is None
    assert not version.is_image
    assert version.content == "Image generation failed"
