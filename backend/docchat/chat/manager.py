"""Conversation manager - one question/answer turn over a chat's document."""

import logging
from uuid import UUID

from backend.docchat.db.context import RequestContext
from backend.docchat.db.repositories import ChatRepository, DocumentRepository
from backend.docchat.docs.retriever import Retriever
from backend.docchat.errors import (
    GenerationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from backend.docchat.llm.client import ChatTurn, LLMClient
from backend.docchat.llm.result import Err
from backend.docchat.models.chats import (
    Chat,
    ChatWithMessages,
    Message,
    MessagePair,
    MessageRole,
    MessageStatus,
)
from backend.docchat.utils.metrics import chat_turns_total

logger = logging.getLogger(__name__)

DEFAULT_CHAT_TITLE = "New Chat"

SYSTEM_PROMPT_TEMPLATE = (
    "You are a helpful assistant answering questions about a document. "
    "Use the following context from the document to answer the user's question.\n\n"
    "Context:\n{context}\n\n"
    "If the answer cannot be found in the document, say so clearly."
)


def build_prompt(context: str, history: list[Message], question: str) -> list[ChatTurn]:
    """Assemble system instruction, prior turns and the new question.

    Only complete messages are replayed; failed user turns stay out of the prompt.
    """
    messages: list[ChatTurn] = [
        {"role": "system", "content": SYSTEM_PROMPT_TEMPLATE.format(context=context)}
    ]
    messages.extend(
        {"role": m.role.value, "content": m.content}
        for m in history
        if m.status == MessageStatus.complete
    )
    messages.append({"role": MessageRole.user.value, "content": question})
    return messages


class ConversationManager:
    """Chat lifecycle and message sends for documents the caller owns."""

    def __init__(
        self,
        *,
        chats: ChatRepository,
        documents: DocumentRepository,
        retriever: Retriever,
        llm: LLMClient,
    ) -> None:
        self._chats = chats
        self._documents = documents
        self._retriever = retriever
        self._llm = llm

    async def create_chat(
        self, ctx: RequestContext, document_id: UUID, title: str | None = None
    ) -> Chat:
        """Create a chat bound to one of the caller's documents.

        Raises:
            NotFoundError: If the document is missing or not owned by the caller
        """
        document = await self._documents.get_document(ctx, document_id)
        if document is None:
            raise NotFoundError("Document", document_id)

        chat = await self._chats.create_chat(
            ctx, document_id, (title or "").strip() or DEFAULT_CHAT_TITLE
        )
        logger.info(f"Created chat {chat.id} for document {document_id}")
        return chat.model_copy(update={"document_filename": document.filename})

    async def list_chats(self, ctx: RequestContext) -> list[Chat]:
        return await self._chats.list_chats(ctx)

    async def get_chat(self, ctx: RequestContext, chat_id: UUID) -> ChatWithMessages:
        """Chat with its messages, oldest first."""
        chat = await self._chats.get_chat(ctx, chat_id)
        if chat is None:
            raise NotFoundError("Chat", chat_id)

        messages = await self._chats.list_messages(chat_id)
        return ChatWithMessages(**chat.model_dump(), messages=messages)

    async def delete_chat(self, ctx: RequestContext, chat_id: UUID) -> None:
        if not await self._chats.delete_chat(ctx, chat_id):
            raise NotFoundError("Chat", chat_id)
        logger.info(f"Deleted chat {chat_id}")

    async def check_turn(self, ctx: RequestContext, chat_id: UUID, content: str) -> Chat:
        """Validate a message and its chat before any quota, store or model call.

        Raises:
            ValidationError: Blank message
            NotFoundError: Chat missing or not owned by the caller
        """
        if not content or not content.strip():
            raise ValidationError("Message content is required")

        chat = await self._chats.get_chat(ctx, chat_id)
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        return chat

    async def send_message(self, ctx: RequestContext, chat_id: UUID, content: str) -> MessagePair:
        """Answer a user message using the chat's document as context.

        Flow:
        1. Validate input and chat ownership (before any external call)
        2. Persist the user message
        3. Retrieve document context (failures fall back to empty context)
        4. Build the prompt from context, prior complete turns and the question
        5. Generate the answer
        6. Persist the assistant message

        If anything after step 2 fails, including cancellation, the user message
        is kept with status "failed" before the error propagates. A model
        failure surfaces as GenerationError carrying that message's id.

        Raises:
            ValidationError: Blank message
            NotFoundError: Chat missing or not owned by the caller
            GenerationError: The model call failed
            PersistenceError: Store failure
        """
        chat = await self.check_turn(ctx, chat_id, content)

        history = await self._chats.list_messages(chat_id)
        user_message = await self._chats.add_message(chat_id, MessageRole.user, content)

        retrieval = "not_run"
        try:
            outcome = await self._retriever.retrieve(chat.document_id, content)
            retrieval = outcome.status.value
            prompt = build_prompt(outcome.context, history, content)

            result = await self._llm.complete_chat(prompt)
            if isinstance(result, Err):
                raise GenerationError(result.error.detail, failed_message_id=user_message.id)

            assistant_message = await self._chats.add_message(
                chat_id, MessageRole.assistant, result.value
            )
        except BaseException as e:
            await self._fail_turn(chat_id, user_message.id, e, retrieval)
            raise

        chat_turns_total.labels(outcome="succeeded").inc()
        logger.info(
            f"Answered message in chat {chat_id} "
            f"(retrieval={outcome.status.value}, chunks={len(outcome.matches)})"
        )

        return MessagePair(
            user_message=user_message,
            assistant_message=assistant_message,
        )

    async def _fail_turn(
        self, chat_id: UUID, message_id: UUID, error: BaseException, retrieval: str
    ) -> None:
        """Mark an unanswered user turn failed so it is never replayed as complete."""
        chat_turns_total.labels(outcome="failed").inc()
        logger.error(
            f"Turn failed for chat {chat_id} ({type(error).__name__}): {error}",
            extra={
                "structured": {
                    "chat_id": str(chat_id),
                    "failed_message_id": str(message_id),
                    "retrieval": retrieval,
                }
            },
        )
        try:
            await self._chats.mark_message_failed(message_id)
        except PersistenceError:
            logger.exception(f"Could not mark message {message_id} as failed")
