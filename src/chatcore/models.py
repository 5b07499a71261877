# src/chatcore/models.py
"""
Core data models for the chatcore library.

This module defines the Pydantic models used to represent the rows the chat
front end works with (chats, messages, files, feedback), the per-turn
settings and payload, and the wire format handed to hosted chat transports.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .plugins import PluginID

DEFAULT_PROMPT = "You are a friendly, helpful AI assistant."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(v: Any) -> Any:
    """Coerce naive datetimes and ISO strings to timezone-aware UTC datetimes."""
    if isinstance(v, str):
        if v.endswith('Z'):
            v = v[:-1] + '+00:00'
        try:
            v = datetime.fromisoformat(v)
        except ValueError:
            raise ValueError(f"Invalid datetime format: {v}")
    if isinstance(v, datetime):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
    return v


class Role(str, Enum):
    """
    Enumeration of possible roles in a conversation.
    """
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        """Handles case-insensitive matching of role names."""
        if isinstance(value, str):
            lower_value = value.lower()
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


class Message(BaseModel):
    """
    A single persisted (or temporary) chat message.

    Attributes:
        id: Unique identifier of the message.
        chat_id: The chat this message belongs to ("" while not yet persisted).
        user_id: Owner of the message.
        role: system, user or assistant.
        content: The textual content.
        image_paths: Paths or data URIs of images attached to the message.
        sequence_number: Monotonic, gapless position of the message within its chat.
        model: Model id that produced (or will answer) the message.
        plugin: Plugin that was active when the message was produced.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    chat_id: str = ""
    user_id: str = ""
    role: Role
    content: str = ""
    image_paths: List[str] = Field(default_factory=list)
    sequence_number: int = 0
    model: str = ""
    plugin: PluginID = PluginID.NONE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        return _ensure_utc(v)


class FileItem(BaseModel):
    """A chunk of a retrieved or uploaded file. Read-only input to formatting."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_id: str = ""
    user_id: str = ""
    content: str
    tokens: int = 0


class ChatFile(BaseModel):
    """A file attached to a pending message or to a chat."""
    id: str
    name: str = ""
    type: str = "text"
    user_id: str = ""
    description: str = ""
    file_path: str = ""
    size: int = 0
    tokens: int = 0


class MessageImage(BaseModel):
    """An image attached to a message, with its resolved base64 data URI."""
    message_id: str = ""
    path: str = ""
    base64: str = ""
    url: str = ""


class FeedbackKind(str, Enum):
    GOOD = "good"
    BAD = "bad"


class Feedback(BaseModel):
    """User feedback on one message. One per message; the latest write wins."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    message_id: str
    chat_id: str
    user_id: str
    feedback: FeedbackKind
    reason: Optional[str] = None
    detailed_feedback: Optional[str] = None
    model: str = ""
    sequence_number: int = 0
    allow_email: Optional[bool] = None
    allow_sharing: Optional[bool] = None
    has_files: bool = False
    plugin: PluginID = PluginID.NONE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(use_enum_values=True)

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        return _ensure_utc(v)


class ChatMessage(BaseModel):
    """A message as shown in the chat list, with its file items and feedback."""
    message: Message
    file_items: List[FileItem] = Field(default_factory=list)
    feedback: Optional[Feedback] = None


class ChatSettings(BaseModel):
    """
    Settings governing one chat. Immutable for the duration of a turn.
    """
    model: str
    prompt: str = DEFAULT_PROMPT
    temperature: float = 0.5
    context_length: int = 4096
    include_profile_context: bool = True
    include_workspace_instructions: bool = True
    embeddings_provider: Literal["openai", "local"] = "openai"

    model_config = ConfigDict(frozen=True)


class _SettingsDefaults(BaseModel):
    """Fields shared by assistants and presets, copied into ChatSettings on new chats."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    model: str
    prompt: str = DEFAULT_PROMPT
    temperature: float = 0.5
    context_length: int = 4096
    include_profile_context: bool = True
    include_workspace_instructions: bool = True
    embeddings_provider: Literal["openai", "local"] = "openai"

    def to_chat_settings(self) -> ChatSettings:
        return ChatSettings(
            model=self.model,
            prompt=self.prompt,
            temperature=self.temperature,
            context_length=self.context_length,
            include_profile_context=self.include_profile_context,
            include_workspace_instructions=self.include_workspace_instructions,
            embeddings_provider=self.embeddings_provider,
        )


class Assistant(_SettingsDefaults):
    """A persona with its own default settings."""
    description: str = ""


class Preset(_SettingsDefaults):
    """A saved settings preset."""
    description: str = ""


class Profile(BaseModel):
    user_id: str
    username: str = ""
    profile_context: str = ""


class Workspace(BaseModel):
    id: str
    user_id: str = ""
    name: str = ""
    instructions: str = ""


class Chat(BaseModel):
    """A persisted chat row."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    workspace_id: str
    assistant_id: Optional[str] = None
    name: str = ""
    model: str = ""
    prompt: str = DEFAULT_PROMPT
    temperature: float = 0.5
    context_length: int = 4096
    include_profile_context: bool = True
    include_workspace_instructions: bool = True
    embeddings_provider: str = "openai"
    finish_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        return _ensure_utc(v)


class ChatPayload(BaseModel):
    """
    Request-scoped aggregate handed to the transports.

    Owned by exactly one in-flight send and never shared across turns.
    """
    chat_settings: ChatSettings
    workspace_instructions: str = ""
    chat_messages: List[ChatMessage] = Field(default_factory=list)
    assistant: Optional[Assistant] = None
    message_file_items: List[FileItem] = Field(default_factory=list)


# --- Wire format ---

class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str = ""


class ImageUrlPart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl = Field(default_factory=ImageUrl)


ContentPart = Annotated[Union[TextPart, ImageUrlPart], Field(discriminator="type")]


class BuiltChatMessage(BaseModel):
    """
    A message in the exact shape sent to the model.

    ``content`` is either plain text or an ordered list of text / image parts.
    Produced fresh for every turn and never persisted.
    """
    role: Role
    content: Union[str, List[ContentPart]]

    model_config = ConfigDict(use_enum_values=True)

    @property
    def text(self) -> str:
        """The textual content, with multipart text parts joined by a space."""
        if isinstance(self.content, str):
            return self.content
        return " ".join(part.text for part in self.content if isinstance(part, TextPart))

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
