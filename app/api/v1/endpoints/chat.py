"""
Chat API endpoints.

All routes require a session cookie. Conversation routes operate on the
caller's own conversations; custom-model routes drive the fine-tuning
workflow.
"""

from fastapi import APIRouter, Depends, Path, Security, status
from openai import AsyncOpenAI

from app.core.config import settings
from app.core.security import UserContext, get_current_user
from app.schemas.chat import (
    ChatsResponse,
    ConversationListResponse,
    CreateCustomModelRequest,
    CreateCustomModelResponse,
    CustomModelListResponse,
    CustomModelResponse,
    NewConversationResponse,
    SendMessageRequest,
)
from app.schemas.user import ErrorResponse
from app.services.conversation_service import ConversationService
from app.services.database import UserStore, get_user_store
from app.services.fine_tune_service import FineTuneService

router = APIRouter()

ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_openai_client() -> AsyncOpenAI | None:
    """Dependency to get configured OpenAI client."""
    if not settings.OPENAI_API_KEY:
        return None
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        organization=settings.OPENAI_ORGANIZATION,
    )


def get_conversation_service(
    client: AsyncOpenAI | None = Depends(get_openai_client),
    store: UserStore = Depends(get_user_store),
) -> ConversationService:
    return ConversationService(client, store)


def get_fine_tune_service(
    client: AsyncOpenAI | None = Depends(get_openai_client),
    store: UserStore = Depends(get_user_store),
) -> FineTuneService:
    return FineTuneService(client, store)


# =============================================================================
# Conversations
# =============================================================================


@router.post("/new", response_model=ChatsResponse, responses=ERROR_RESPONSES)
async def generate_chat_completion(
    request: SendMessageRequest,
    user_ctx: UserContext = Security(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ChatsResponse:
    """
    Send a message in the active conversation.

    The whole conversation history plus the new message is sent to the
    model. Both the message and the reply are stored.

    **Request Body:**
    ```json
    {"message": "Hello!"}
    ```
    """
    chats = await service.relay_message(user_ctx.user_id, request.message)
    return ChatsResponse(chats=chats)


@router.get("/all-conversations", response_model=ConversationListResponse, responses=ERROR_RESPONSES)
async def get_all_conversations(
    user_ctx: UserContext = Security(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    """List the caller's conversations, oldest first."""
    conversations = await service.list_conversations(user_ctx.user_id)
    return ConversationListResponse(conversations=conversations)


@router.post("/conversation/new", response_model=NewConversationResponse, responses=ERROR_RESPONSES)
async def start_new_conversation(
    user_ctx: UserContext = Security(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> NewConversationResponse:
    """Start an empty conversation and make it the active one."""
    conversation = await service.start_conversation(user_ctx.user_id)
    return NewConversationResponse(conversation=conversation)


@router.delete(
    "/conversation/{conversation_id}",
    response_model=ConversationListResponse,
    responses=ERROR_RESPONSES,
)
async def delete_conversation(
    conversation_id: str = Path(..., max_length=36, description="The conversation ID to delete"),
    user_ctx: UserContext = Security(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    """Delete one conversation and return the remaining ones."""
    conversations = await service.delete_conversation(user_ctx.user_id, conversation_id)
    return ConversationListResponse(conversations=conversations)


# =============================================================================
# Custom models
# =============================================================================


@router.post(
    "/custom-models",
    response_model=CreateCustomModelResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_custom_model(
    request: CreateCustomModelRequest,
    user_ctx: UserContext = Security(get_current_user),
    service: FineTuneService = Depends(get_fine_tune_service),
) -> CreateCustomModelResponse:
    """
    Fine-tune a custom model from labeled examples.

    The job is submitted but not awaited; poll
    `POST /chat/custom-models/{model_id}/refresh` to follow its status.

    **Request Body:**
    ```json
    {
        "modelName": "support-bot",
        "trainingData": [
            {"messages": [
                {"role": "user", "content": "Where is my order?"},
                {"role": "assistant", "content": "Let me check that for you."}
            ]}
        ]
    }
    ```
    """
    record, training_file_id = await service.create_custom_model(
        user_ctx.user_id,
        request.training_data,
        request.model_name,
    )
    return CreateCustomModelResponse(model=record, training_file_id=training_file_id)


@router.get("/custom-models", response_model=CustomModelListResponse, responses=ERROR_RESPONSES)
async def get_custom_models(
    user_ctx: UserContext = Security(get_current_user),
    service: FineTuneService = Depends(get_fine_tune_service),
) -> CustomModelListResponse:
    """List the caller's custom models."""
    models = await service.list_custom_models(user_ctx.user_id)
    return CustomModelListResponse(custom_models=models)


@router.post(
    "/custom-models/{model_id}/refresh",
    response_model=CustomModelResponse,
    responses=ERROR_RESPONSES,
)
async def refresh_custom_model(
    model_id: str = Path(..., max_length=36, description="The custom model ID to refresh"),
    user_ctx: UserContext = Security(get_current_user),
    service: FineTuneService = Depends(get_fine_tune_service),
) -> CustomModelResponse:
    """Poll the provider for the fine-tuning job's current status."""
    record = await service.refresh_custom_model(user_ctx.user_id, model_id)
    return CustomModelResponse(model=record)
