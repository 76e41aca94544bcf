"""In-memory implementations of repository interfaces."""

import uuid

from backend.docchat.db.context import RequestContext
from backend.docchat.db.repositories import next_message_timestamp, utcnow
from backend.docchat.models.chats import Chat, Message, MessageRole, MessageStatus
from backend.docchat.models.documents import Document, MediaType


class InMemoryDocumentRepository:
    """In-memory implementation of DocumentRepository."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, Document] = {}
        self._pending: set[uuid.UUID] = set()

    async def create_document(
        self,
        ctx: RequestContext,
        *,
        filename: str,
        media_type: MediaType,
        storage_path: str,
        file_size: int,
    ) -> uuid.UUID:
        """Create a pending document."""
        document_id = uuid.uuid4()
        self._documents[document_id] = Document(
            id=document_id,
            owner_id=ctx.user_id,
            filename=filename,
            media_type=media_type,
            storage_path=storage_path,
            file_size=file_size,
            extracted_text="",
            created_at=utcnow(),
        )
        self._pending.add(document_id)
        return document_id

    async def complete_document(
        self, document_id: uuid.UUID, *, extracted_text: str, chunk_count: int
    ) -> None:
        """Attach extracted text to a pending document."""
        record = self._documents.get(document_id)
        if record is None:
            return

        self._documents[document_id] = record.model_copy(
            update={"extracted_text": extracted_text, "chunk_count": chunk_count}
        )
        self._pending.discard(document_id)

    async def get_document(
        self, ctx: RequestContext, document_id: uuid.UUID
    ) -> Document | None:
        """Get an ingested document owned by the caller."""
        record = self._documents.get(document_id)

        if record is None or document_id in self._pending:
            return None

        # Enforce ownership
        if record.owner_id != ctx.user_id:
            return None

        return record

    async def list_documents(self, ctx: RequestContext) -> list[Document]:
        """List the caller's ingested documents, newest first."""
        docs = [
            d
            for d in self._documents.values()
            if d.owner_id == ctx.user_id and d.id not in self._pending
        ]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    async def delete_document(self, document_id: uuid.UUID) -> None:
        """Delete a document."""
        self._documents.pop(document_id, None)
        self._pending.discard(document_id)


class InMemoryChatRepository:
    """In-memory implementation of ChatRepository."""

    def __init__(self) -> None:
        self._chats: dict[uuid.UUID, Chat] = {}
        self._messages: dict[uuid.UUID, list[Message]] = {}

    async def create_chat(
        self, ctx: RequestContext, document_id: uuid.UUID, title: str
    ) -> Chat:
        """Create a chat bound to a document."""
        now = utcnow()
        chat = Chat(
            id=uuid.uuid4(),
            owner_id=ctx.user_id,
            document_id=document_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        self._chats[chat.id] = chat
        self._messages[chat.id] = []
        return chat

    async def get_chat(self, ctx: RequestContext, chat_id: uuid.UUID) -> Chat | None:
        """Get a chat owned by the caller."""
        chat = self._chats.get(chat_id)

        if chat is None or chat.owner_id != ctx.user_id:
            return None

        return chat

    async def list_chats(self, ctx: RequestContext) -> list[Chat]:
        """List the caller's chats, most recently updated first."""
        chats = [c for c in self._chats.values() if c.owner_id == ctx.user_id]
        return sorted(chats, key=lambda c: c.updated_at, reverse=True)

    async def list_messages(self, chat_id: uuid.UUID) -> list[Message]:
        """List a chat's messages in chronological order."""
        return list(self._messages.get(chat_id, []))

    async def add_message(
        self,
        chat_id: uuid.UUID,
        role: MessageRole,
        content: str,
        status: MessageStatus = MessageStatus.complete,
    ) -> Message:
        """Append a message and move chat.updated_at forward."""
        history = self._messages.setdefault(chat_id, [])
        newest = history[-1].created_at if history else None

        message = Message(
            id=uuid.uuid4(),
            chat_id=chat_id,
            role=role,
            content=content,
            status=status,
            created_at=next_message_timestamp(newest),
        )
        history.append(message)

        chat = self._chats.get(chat_id)
        if chat is not None and chat.updated_at < message.created_at:
            self._chats[chat_id] = chat.model_copy(update={"updated_at": message.created_at})

        return message

    async def mark_message_failed(self, message_id: uuid.UUID) -> None:
        """Flag a user turn whose reply could not be generated."""
        for history in self._messages.values():
            for i, message in enumerate(history):
                if message.id == message_id:
                    history[i] = message.model_copy(update={"status": MessageStatus.failed})
                    return

    async def delete_chat(self, ctx: RequestContext, chat_id: uuid.UUID) -> bool:
        """Delete a chat and its messages."""
        if await self.get_chat(ctx, chat_id) is None:
            return False

        del self._chats[chat_id]
        self._messages.pop(chat_id, None)
        return True
