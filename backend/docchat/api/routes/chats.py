"""Chat endpoints - chat lifecycle and message sends under /api/chats."""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from backend.docchat.api.auth import get_current_context
from backend.docchat.api.deps import ServicesDep, get_conversation_manager
from backend.docchat.chat.manager import ConversationManager
from backend.docchat.db.context import RequestContext
from backend.docchat.errors import RateLimitedError
from backend.docchat.models.chats import Chat, ChatWithMessages, MessagePair
from backend.docchat.models.envelope import ApiResponse, ok
from backend.docchat.ratelimit import make_rate_limit_key

router = APIRouter(prefix="/api/chats", tags=["chats"])

ContextDep = Annotated[RequestContext, Depends(get_current_context)]
ManagerDep = Annotated[ConversationManager, Depends(get_conversation_manager)]


class CreateChatRequest(BaseModel):
    """Request body for POST /api/chats."""

    document_id: UUID
    title: str | None = Field(None, max_length=200, description="Defaults to 'New Chat'")


class SendMessageRequest(BaseModel):
    """Request body for POST /api/chats/{chat_id}/messages."""

    content: str = Field(..., description="User question")


@router.post("", response_model=ApiResponse[Chat], status_code=status.HTTP_201_CREATED)
async def create_chat(
    request: CreateChatRequest,
    ctx: ContextDep,
    manager: ManagerDep,
) -> ApiResponse[Chat]:
    chat = await manager.create_chat(ctx, request.document_id, request.title)
    return ok(chat, "Chat created")


@router.get("", response_model=ApiResponse[list[Chat]])
async def list_chats(ctx: ContextDep, manager: ManagerDep) -> ApiResponse[list[Chat]]:
    """List the caller's chats, most recently active first."""
    return ok(await manager.list_chats(ctx))


@router.get("/{chat_id}", response_model=ApiResponse[ChatWithMessages])
async def get_chat(
    chat_id: UUID, ctx: ContextDep, manager: ManagerDep
) -> ApiResponse[ChatWithMessages]:
    return ok(await manager.get_chat(ctx, chat_id))


@router.delete("/{chat_id}", response_model=ApiResponse[None])
async def delete_chat(chat_id: UUID, ctx: ContextDep, manager: ManagerDep) -> ApiResponse[None]:
    await manager.delete_chat(ctx, chat_id)
    return ApiResponse(success=True, message="Chat deleted")


@router.post("/{chat_id}/messages", response_model=ApiResponse[MessagePair])
async def send_message(
    chat_id: UUID,
    request: SendMessageRequest,
    ctx: ContextDep,
    manager: ManagerDep,
    services: ServicesDep,
) -> ApiResponse[MessagePair]:
    """Ask a question about the chat's document.

    Rate limited per user (messages_per_min); blank messages and unknown
    chats are rejected before they count against the quota. If generation
    fails the response is 502 and the stored user message is marked failed.
    """
    await manager.check_turn(ctx, chat_id, request.content)

    key = make_rate_limit_key(ctx, "messages")
    retry_after = await services.rate_limiter.check_quota(key, datetime.now(timezone.utc))
    if retry_after is not None:
        raise RateLimitedError(retry_after.seconds)

    pair = await manager.send_message(ctx, chat_id, request.content)
    return ok(pair, "Message sent")
