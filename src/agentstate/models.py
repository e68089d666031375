# src/agentstate/models.py
"""
Core data models for the agentstate library.

This module defines the Pydantic models used to represent the records the
persistence layer stores: agent messages (a closed tagged union keyed by
``message_type``), session summaries, agent memories, and the pointer and
page types used for bidirectional cursor pagination.

All models serialise with camelCase aliases so that one JSON record is
written per message, summary or memory, while Python code keeps using
snake_case attribute names.
"""

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Generic, List, Literal, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def now_micros() -> int:
    """Current wall-clock time in microseconds since the epoch."""
    return time.time_ns() // 1000


def _ensure_utc(v: Any) -> Any:
    if isinstance(v, str):
        if v.endswith('Z'):
            v = v[:-1] + '+00:00'
        v = datetime.fromisoformat(v)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
    return v


class _CaseInsensitiveEnum(str, Enum):
    """String enum that accepts values regardless of case."""

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc] # Pydantic uses this signature
        if isinstance(value, str):
            upper_value = value.upper()
            for member in cls:
                if member.value == upper_value:
                    return member
        return None  # Let Pydantic handle the error for truly invalid values


class AgentMessageType(_CaseInsensitiveEnum):
    """Type tag carried by every stored message."""
    SYSTEM_PROMPT_REQUEST_MESSAGE = "SYSTEM_PROMPT_REQUEST_MESSAGE"
    USER_PROMPT_REQUEST_MESSAGE = "USER_PROMPT_REQUEST_MESSAGE"
    TOOL_CALL_RESPONSE_MESSAGE = "TOOL_CALL_RESPONSE_MESSAGE"
    TEXT_RESPONSE_MESSAGE = "TEXT_RESPONSE_MESSAGE"
    STRUCTURED_OUTPUT_RESPONSE_MESSAGE = "STRUCTURED_OUTPUT_RESPONSE_MESSAGE"
    TOOL_CALL_REQUEST_MESSAGE = "TOOL_CALL_REQUEST_MESSAGE"
    GENERIC_TEXT_MESSAGE = "GENERIC_TEXT_MESSAGE"
    GENERIC_RESOURCE_MESSAGE = "GENERIC_RESOURCE_MESSAGE"


class ErrorType(_CaseInsensitiveEnum):
    """
    Outcome codes attached to tool call responses.

    ``SUCCESS`` is the only non-error outcome. The ``retryable`` property tells
    the orchestration layer whether a retry may help; this library never
    retries on its own.
    """
    SUCCESS = "SUCCESS"
    NO_RESPONSE = "NO_RESPONSE"
    REFUSED = "REFUSED"
    FILTERED = "FILTERED"
    LENGTH_EXCEEDED = "LENGTH_EXCEEDED"
    TOOL_CALL_PERMANENT_FAILURE = "TOOL_CALL_PERMANENT_FAILURE"
    TOOL_CALL_TEMPORARY_FAILURE = "TOOL_CALL_TEMPORARY_FAILURE"
    JSON_ERROR = "JSON_ERROR"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    DESERIALIZATION_ERROR = "DESERIALIZATION_ERROR"
    GENERIC_MODEL_CALL_FAILURE = "GENERIC_MODEL_CALL_FAILURE"
    DATA_VALIDATION_FAILURE = "DATA_VALIDATION_FAILURE"
    MODEL_RUN_TERMINATED = "MODEL_RUN_TERMINATED"
    UNKNOWN = "UNKNOWN"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_ERRORS


_RETRYABLE_ERRORS = frozenset({
    ErrorType.NO_RESPONSE,
    ErrorType.TOOL_CALL_TEMPORARY_FAILURE,
    ErrorType.JSON_ERROR,
    ErrorType.SERIALIZATION_ERROR,
    ErrorType.DESERIALIZATION_ERROR,
    ErrorType.GENERIC_MODEL_CALL_FAILURE,
    ErrorType.DATA_VALIDATION_FAILURE,
    ErrorType.UNKNOWN,
})


class Role(_CaseInsensitiveEnum):
    """Role of the producer of a generic message."""
    SYSTEM = "SYSTEM"
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    TOOL = "TOOL"


class ResourceType(_CaseInsensitiveEnum):
    """Kind of payload carried by a :class:`GenericResource` message."""
    TEXT = "TEXT"
    BLOB = "BLOB"


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class _MessageBase(BaseModel):
    """
    Fields shared by every message variant.

    Attributes:
        session_id: Identifier of the session the message belongs to.
        run_id: Identifier of the agent run that produced the message.
        message_id: Unique identifier of the message.
        timestamp: Logical clock in microseconds since the epoch.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    session_id: str = Field(description="Identifier of the session this message belongs to.")
    run_id: str = Field(description="Identifier of the run that produced this message.")
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique identifier for the message.")
    timestamp: int = Field(default_factory=now_micros, description="Microseconds since the epoch.")

    @property
    def ordering_key(self) -> Tuple[int, str]:
        """Strict total order of messages inside one log."""
        return (self.timestamp, self.message_id)


class SystemPrompt(_MessageBase):
    message_type: Literal["SYSTEM_PROMPT_REQUEST_MESSAGE"] = "SYSTEM_PROMPT_REQUEST_MESSAGE"
    content: str
    dynamic: bool = False
    method_reference: Optional[str] = None


class UserPrompt(_MessageBase):
    message_type: Literal["USER_PROMPT_REQUEST_MESSAGE"] = "USER_PROMPT_REQUEST_MESSAGE"
    content: str
    sent_at: Optional[datetime] = None

    @field_validator('sent_at', mode='before')
    @classmethod
    def ensure_utc_sent_at(cls, v: Any) -> Any:
        return _ensure_utc(v)


class ToolCallResponse(_MessageBase):
    message_type: Literal["TOOL_CALL_RESPONSE_MESSAGE"] = "TOOL_CALL_RESPONSE_MESSAGE"
    tool_call_id: str
    tool_name: str
    response: Optional[str] = None
    error_type: Optional[ErrorType] = None
    sent_at: Optional[datetime] = None

    @field_validator('sent_at', mode='before')
    @classmethod
    def ensure_utc_sent_at(cls, v: Any) -> Any:
        return _ensure_utc(v)

    @property
    def success(self) -> bool:
        return self.error_type is None or self.error_type == ErrorType.SUCCESS


class Text(_MessageBase):
    message_type: Literal["TEXT_RESPONSE_MESSAGE"] = "TEXT_RESPONSE_MESSAGE"
    content: str


class StructuredOutput(_MessageBase):
    message_type: Literal["STRUCTURED_OUTPUT_RESPONSE_MESSAGE"] = "STRUCTURED_OUTPUT_RESPONSE_MESSAGE"
    content: str


class ToolCall(_MessageBase):
    message_type: Literal["TOOL_CALL_REQUEST_MESSAGE"] = "TOOL_CALL_REQUEST_MESSAGE"
    tool_call_id: str
    tool_name: str
    arguments: str = "{}"


class GenericText(_MessageBase):
    message_type: Literal["GENERIC_TEXT_MESSAGE"] = "GENERIC_TEXT_MESSAGE"
    role: Role
    text: str


class GenericResource(_MessageBase):
    message_type: Literal["GENERIC_RESOURCE_MESSAGE"] = "GENERIC_RESOURCE_MESSAGE"
    role: Role
    resource_type: ResourceType = ResourceType.TEXT
    uri: Optional[str] = None
    mime_type: Optional[str] = None
    content: Optional[str] = None
    serialized_json: Optional[str] = None


AgentMessage = Annotated[
    Union[SystemPrompt, UserPrompt, ToolCallResponse, Text, StructuredOutput,
          ToolCall, GenericText, GenericResource],
    Field(discriminator="message_type"),
]

_MESSAGE_ADAPTER: TypeAdapter = TypeAdapter(AgentMessage)
_MESSAGE_LIST_ADAPTER: TypeAdapter = TypeAdapter(List[AgentMessage])


def parse_message(data: Union[str, bytes, dict]) -> AgentMessage:
    """
    Decode one stored message record into the matching variant.

    Args:
        data: A JSON document (str/bytes) or an already decoded dictionary.

    Returns:
        The concrete message instance selected by its ``messageType`` tag.

    Raises:
        pydantic.ValidationError: If the record is malformed or the tag is unknown.
    """
    if isinstance(data, (str, bytes)):
        return _MESSAGE_ADAPTER.validate_json(data)
    return _MESSAGE_ADAPTER.validate_python(data)


def serialize_message(message: AgentMessage) -> str:
    """Serialise a message to its single-line JSON record form."""
    return message.model_dump_json(by_alias=True)


def serialize_messages(messages: List[AgentMessage]) -> bytes:
    """Serialise a list of messages as a JSON array (used by in-memory stores and exports)."""
    return _MESSAGE_LIST_ADAPTER.dump_json(messages, by_alias=True)


# ---------------------------------------------------------------------------
# Session summaries
# ---------------------------------------------------------------------------


class SessionSummary(BaseModel):
    """
    Durable per-session summary record.

    Attributes:
        session_id: Identifier of the session (upsert key).
        title: Short human readable title.
        summary: Summary text of the conversation so far.
        keywords: Topics/keywords extracted for the session.
        last_summarized_message_id: Newest message covered by ``summary``.
        raw: Raw summariser output, kept verbatim.
        updated_at: Microseconds since the epoch; strictly increases per save.

    Summaries are immutable; derive changed versions with ``model_copy(update=...)``.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    session_id: str = Field(description="Identifier of the session.")
    title: Optional[str] = Field(default=None, description="Session title.")
    summary: Optional[str] = Field(default=None, description="Summary text.")
    keywords: List[str] = Field(default_factory=list, description="Topics/keywords for the session.")
    last_summarized_message_id: Optional[str] = Field(default=None, description="Newest message covered by the summary.")
    raw: Optional[str] = Field(default=None, description="Raw summariser output.")
    updated_at: int = Field(default_factory=now_micros, description="Microseconds since the epoch of the last save.")


# ---------------------------------------------------------------------------
# Agent memories
# ---------------------------------------------------------------------------


class MemoryScope(_CaseInsensitiveEnum):
    """Whether a memory belongs to an agent globally or to one external entity."""
    AGENT = "AGENT"
    ENTITY = "ENTITY"


class MemoryType(_CaseInsensitiveEnum):
    SEMANTIC = "SEMANTIC"
    PROCEDURAL = "PROCEDURAL"
    EPISODIC = "EPISODIC"


class AgentMemory(BaseModel):
    """
    A long-lived memory record extracted from agent runs.

    The embedding vector is not part of the record; backends store it next to
    the record and always recompute it from ``content`` on save. Records are
    immutable; derive changed versions with ``model_copy(update=...)``.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    agent_name: str = Field(description="Name of the agent owning the memory.")
    scope: MemoryScope = Field(description="AGENT or ENTITY scope.")
    scope_id: Optional[str] = Field(default=None, description="Agent name or entity id the memory is scoped to.")
    memory_type: MemoryType = Field(description="Kind of memory.")
    name: str = Field(description="Stable name of the memory within its scope.")
    content: str = Field(description="Memory text; the embedding is computed from it.")
    topics: List[str] = Field(default_factory=list, description="Topics the memory relates to.")
    reusability_score: int = Field(default=0, ge=0, le=10, description="How broadly the memory applies (0-10).")
    created_at: Optional[datetime] = Field(default=None, description="Creation time (UTC).")
    updated_at: Optional[datetime] = Field(default=None, description="Last update time (UTC).")

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def ensure_utc_timestamps(cls, v: Any) -> Any:
        """Ensure timestamps are timezone-aware and in UTC if naive."""
        return _ensure_utc(v)


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class QueryDirection(_CaseInsensitiveEnum):
    OLDER = "OLDER"
    NEWER = "NEWER"


class DataPointer(BaseModel):
    """
    Pair of opaque cursors bounding what a client has already seen.

    ``older`` marks the oldest known position, ``newer`` the newest one.
    Either may be ``None`` when that edge is still unknown.
    """
    model_config = ConfigDict(frozen=True)

    older: Optional[str] = None
    newer: Optional[str] = None


class BiScrollable(BaseModel, Generic[T]):
    """One page of results plus the pointer to continue from in either direction."""
    items: List[T] = Field(default_factory=list)
    pointer: DataPointer = Field(default_factory=DataPointer)
