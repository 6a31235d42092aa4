"""In-memory conversation state: messages, versions, edits and write leases."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Literal, Optional
from uuid import uuid4

from ..errors import InvariantViolation, ValidationError

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Attachment:
    """A file submitted alongside a user message."""

    url: str
    media_type: str = "application/octet-stream"
    filename: str = "attachment"

    @property
    def is_image(self) -> bool:
        return self.media_type.lower().startswith("image/")


@dataclass(frozen=True)
class GeneratedImage:
    data: str  # base64 payload
    mime_type: str


@dataclass
class Version:
    id: str
    content: str = ""
    reasoning_content: Optional[str] = None
    generated_image: Optional[GeneratedImage] = None
    editing: bool = False

    @property
    def is_image(self) -> bool:
        return self.generated_image is not None


@dataclass
class Message:
    key: str
    role: Role
    versions: list[Version]
    attachments: tuple[Attachment, ...] = ()
    active_version_index: int = 0

    @property
    def active_version(self) -> Version:
        return self.versions[self.active_version_index]

    def add_version(self, content: str = "") -> Version:
        """Append a new branch and make it active."""

        version = Version(id=_new_id(), content=content)
        self.versions.append(version)
        self.active_version_index = len(self.versions) - 1
        return version

    def select_version(self, index: int) -> Version:
        if not 0 <= index < len(self.versions):
            raise InvariantViolation(
                f"Message {self.key} has no version at index {index}"
            )
        self.active_version_index = index
        return self.versions[index]


@dataclass(frozen=True)
class WriteLease:
    """Exclusive right of one in-flight request to update a version."""

    message_key: str
    version_id: str


def _new_id() -> str:
    return uuid4().hex


@dataclass
class ConversationStore:
    """Single writer of conversation state."""

    on_change: Optional[Callable[[], None]] = None
    _messages: list[Message] = field(default_factory=list)
    _leases: dict[str, WriteLease] = field(default_factory=dict)
    _drafts: dict[str, str] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def get(self, message_key: str) -> Message:
        for message in self._messages:
            if message.key == message_key:
                return message
        raise InvariantViolation(f"Unknown message: {message_key}")

    def get_version(self, message_key: str, version_id: str) -> Version:
        message = self.get(message_key)
        for version in message.versions:
            if version.id == version_id:
                return version
        raise InvariantViolation(
            f"Message {message_key} has no version {version_id}"
        )

    def is_leased(self, version_id: str) -> bool:
        return version_id in self._leases

    @property
    def active_lease(self) -> Optional[WriteLease]:
        return next(iter(self._leases.values()), None)

    def edit_draft(self, version_id: str) -> Optional[str]:
        return self._drafts.get(version_id)

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------
    def append_user(
        self, text: str, attachments: Iterable[Attachment] = ()
    ) -> Message:
        message = Message(
            key=f"user-{_new_id()}",
            role="user",
            versions=[Version(id=_new_id(), content=text)],
            attachments=tuple(attachments),
        )
        self._messages.append(message)
        self._changed()
        return message

    def append_assistant(self) -> Message:
        """Append an assistant message with one empty placeholder version."""

        message = Message(
            key=f"assistant-{_new_id()}",
            role="assistant",
            versions=[Version(id=_new_id())],
        )
        self._messages.append(message)
        self._changed()
        return message

    # ------------------------------------------------------------------
    # Leases and leased writes
    # ------------------------------------------------------------------
    def acquire_lease(self, message_key: str, version_id: str) -> WriteLease:
        version = self.get_version(message_key, version_id)
        if version.id in self._leases:
            raise InvariantViolation(f"Version {version_id} is already being written")
        if version.editing:
            raise InvariantViolation(f"Version {version_id} is being edited")
        lease = WriteLease(message_key=message_key, version_id=version_id)
        self._leases[version_id] = lease
        logger.debug("Lease acquired for %s/%s", message_key, version_id)
        return lease

    def release_lease(self, lease: WriteLease) -> None:
        if self._leases.get(lease.version_id) == lease:
            del self._leases[lease.version_id]
            logger.debug("Lease released for %s/%s", lease.message_key, lease.version_id)
            self._changed()

    def _leased_version(self, lease: WriteLease) -> Version:
        if self._leases.get(lease.version_id) != lease:
            raise InvariantViolation(f"Lease for {lease.version_id} is not active")
        return self.get_version(lease.message_key, lease.version_id)

    def write_stream(
        self, lease: WriteLease, content: str, reasoning: Optional[str]
    ) -> Version:
        """Replace the streamed text fields of the leased version."""

        version = self._leased_version(lease)
        if version.is_image:
            raise InvariantViolation(
                f"Version {version.id} holds a generated image and cannot stream text"
            )
        version.content = content
        version.reasoning_content = reasoning or None
        self._changed()
        return version

    def write_image(
        self, lease: WriteLease, image: GeneratedImage, text: str = ""
    ) -> Version:
        """Store a one-shot image result on the leased version."""

        version = self._leased_version(lease)
        if version.is_image or version.content or version.reasoning_content:
            raise InvariantViolation(
                f"Version {version.id} already holds a result"
            )
        version.generated_image = image
        version.content = text
        self._changed()
        return version

    def write_failure(self, lease: WriteLease, message: str) -> Version:
        """Replace the leased version with a failure notice.

        A failed version carries only the notice text, never a partial image.
        """

        version = self._leased_version(lease)
        version.generated_image = None
        version.content = message
        self._changed()
        return version

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def start_edit(
        self,
        message_key: str,
        version_id: str,
        current_content: Optional[str] = None,
    ) -> Version:
        version = self.get_version(message_key, version_id)
        if self.is_leased(version_id):
            raise InvariantViolation("Cannot edit a message while it is streaming")
        version.editing = True
        self._drafts[version_id] = (
            version.content if current_content is None else current_content
        )
        self._changed()
        return version

    def update_edit(self, version_id: str, text: str) -> None:
        if version_id not in self._drafts:
            raise InvariantViolation(f"Version {version_id} is not being edited")
        self._drafts[version_id] = text

    def cancel_edit(self, message_key: str, version_id: str) -> Version:
        version = self.get_version(message_key, version_id)
        version.editing = False
        self._drafts.pop(version_id, None)
        self._changed()
        return version

    def save_edit(
        self,
        message_key: str,
        version_id: str,
        content: Optional[str] = None,
    ) -> Version:
        """Replace a version's content with the edited text.

        The previous content is overwritten in place; no branch is created.
        """

        version = self.get_version(message_key, version_id)
        if not version.editing:
            raise InvariantViolation(f"Version {version_id} is not being edited")
        text = self._drafts.get(version_id, "") if content is None else content
        if not text.strip():
            raise ValidationError("Message content cannot be empty")
        version.content = text
        version.editing = False
        self._drafts.pop(version_id, None)
        self._changed()
        return version

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------
    def delete_message(self, message_key: str) -> Message:
        message = self.get(message_key)
        if any(self.is_leased(version.id) for version in message.versions):
            raise InvariantViolation(
                "Cannot delete a message while its reply is still streaming"
            )
        self._messages.remove(message)
        for version in message.versions:
            self._drafts.pop(version.id, None)
        self._changed()
        return message

    def clear(self) -> None:
        self._messages.clear()
        self._leases.clear()
        self._drafts.clear()
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()


__all__ = [
    "Attachment",
    "ConversationStore",
    "GeneratedImage",
    "Message",
    "Role",
    "Version",
    "WriteLease",
]
