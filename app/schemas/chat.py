"""
Pydantic schemas for chat and custom-model API requests and responses.

Conversations and custom models are stored as plain dicts inside the user
document; these models validate them on the way out.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings

# =============================================================================
# Conversations
# =============================================================================


class Chat(BaseModel):
    """A single turn of a conversation."""

    role: Literal["user", "assistant"]
    content: str = ""


class Conversation(BaseModel):
    id: str
    chats: list[Chat] = []
    created_at: str | None = None


class SendMessageRequest(BaseModel):
    """New message for the active conversation."""

    message: str = Field(..., min_length=1, max_length=settings.MAX_MESSAGE_LENGTH)


class ChatsResponse(BaseModel):
    """Full chat list of the conversation that received the message."""

    chats: list[Chat]


class ConversationListResponse(BaseModel):
    message: str = "OK"
    conversations: list[Conversation]


class NewConversationResponse(BaseModel):
    message: str = "New conversation started"
    conversation: Conversation


# =============================================================================
# Custom models (fine-tuning)
# =============================================================================


class FineTuneStatus(str, Enum):
    """
    Local lifecycle of a fine-tune job.

    queued -> running -> succeeded | failed. The last two are terminal.
    """

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FineTuneStatus.SUCCEEDED, FineTuneStatus.FAILED)


class TrainingMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(..., max_length=settings.MAX_MESSAGE_LENGTH)


class TrainingExample(BaseModel):
    """One line of the fine-tune training file."""

    messages: list[TrainingMessage] = Field(..., min_length=1)

    @field_validator("messages")
    @classmethod
    def validate_has_assistant_turn(cls, v: list[TrainingMessage]) -> list[TrainingMessage]:
        """Each example needs at least one assistant turn to learn from."""
        if not any(m.role == "assistant" for m in v):
            raise ValueError("Each training example must contain at least one assistant message")
        return v


class CreateCustomModelRequest(BaseModel):
    """
    Request to fine-tune a custom model.

    Accepts the camelCase keys sent by the web client.
    """

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    training_data: list[TrainingExample] = Field(..., alias="trainingData", min_length=1)
    model_name: str = Field(..., alias="modelName", min_length=1, max_length=100)

    @field_validator("training_data")
    @classmethod
    def validate_training_size(cls, v: list[TrainingExample]) -> list[TrainingExample]:
        if len(v) > settings.MAX_TRAINING_EXAMPLES:
            raise ValueError(f"Too many training examples ({len(v)}). Maximum is {settings.MAX_TRAINING_EXAMPLES}")
        return v


class CustomModel(BaseModel):
    """A fine-tuned model owned by a user."""

    model_config = ConfigDict(protected_namespaces=())

    id: str
    user_id: str
    name: str
    job_id: str
    training_file_id: str
    model_id: str | None = None  # Set once the job succeeds
    status: FineTuneStatus
    created_at: str | None = None
    updated_at: str | None = None


class CreateCustomModelResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Model fine-tuned and saved"
    model: CustomModel
    training_file_id: str = Field(..., alias="trainingFileId")


class CustomModelResponse(BaseModel):
    message: str = "OK"
    model: CustomModel


class CustomModelListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "OK"
    custom_models: list[CustomModel] = Field(..., alias="customModels")
