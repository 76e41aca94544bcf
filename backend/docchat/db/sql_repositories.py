"""SQL implementations of repository interfaces."""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.docchat.db.context import RequestContext
from backend.docchat.db.models import Chat as ChatDB
from backend.docchat.db.models import ChatMessage as ChatMessageDB
from backend.docchat.db.models import Document as DocumentDB
from backend.docchat.db.repositories import next_message_timestamp, utcnow
from backend.docchat.errors import PersistenceError
from backend.docchat.models.chats import Chat, Message, MessageRole, MessageStatus
from backend.docchat.models.documents import Document, MediaType

logger = logging.getLogger(__name__)


@asynccontextmanager
async def translate_db_errors(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Roll back and re-raise SQLAlchemy failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Database operation failed: {operation}: {type(e).__name__}")
        raise PersistenceError(f"{operation} failed: {e}") from e


def _to_document(row: DocumentDB) -> Document:
    return Document(
        id=row.document_id,
        owner_id=row.owner_id,
        filename=row.filename,
        media_type=MediaType(row.media_type),
        storage_path=row.storage_path,
        file_size=row.file_size,
        extracted_text=row.extracted_text or "",
        created_at=row.created_at,
        chunk_count=row.chunk_count,
    )


def _to_chat(row: ChatDB, document_filename: str | None = None) -> Chat:
    return Chat(
        id=row.chat_id,
        owner_id=row.owner_id,
        document_id=row.document_id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
        document_filename=document_filename,
    )


def _to_message(row: ChatMessageDB) -> Message:
    return Message(
        id=row.message_id,
        chat_id=row.chat_id,
        role=MessageRole(row.role),
        content=row.content,
        status=MessageStatus(row.status),
        created_at=row.created_at,
    )


class SqlDocumentRepository:
    """SQL implementation of DocumentRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_document(
        self,
        ctx: RequestContext,
        *,
        filename: str,
        media_type: MediaType,
        storage_path: str,
        file_size: int,
    ) -> uuid.UUID:
        """Create a pending document row."""
        document_id = uuid.uuid4()

        async with translate_db_errors(self._session, "create_document"):
            self._session.add(
                DocumentDB(
                    document_id=document_id,
                    owner_id=ctx.user_id,
                    filename=filename,
                    media_type=media_type.value,
                    storage_path=storage_path,
                    file_size=file_size,
                    extracted_text=None,
                    chunk_count=0,
                    created_at=utcnow(),
                )
            )
            await self._session.commit()

        return document_id

    async def complete_document(
        self, document_id: uuid.UUID, *, extracted_text: str, chunk_count: int
    ) -> None:
        """Attach extracted text and chunk count to a pending document."""
        async with translate_db_errors(self._session, "complete_document"):
            await self._session.execute(
                update(DocumentDB)
                .where(DocumentDB.document_id == document_id)
                .values(extracted_text=extracted_text, chunk_count=chunk_count)
            )
            await self._session.commit()

    async def get_document(
        self, ctx: RequestContext, document_id: uuid.UUID
    ) -> Document | None:
        """Get an ingested document owned by the caller."""
        async with translate_db_errors(self._session, "get_document"):
            result = await self._session.execute(
                select(DocumentDB).where(
                    DocumentDB.document_id == document_id,
                    DocumentDB.owner_id == ctx.user_id,
                    DocumentDB.extracted_text.is_not(None),
                )
            )
            row = result.scalar_one_or_none()

        return _to_document(row) if row is not None else None

    async def list_documents(self, ctx: RequestContext) -> list[Document]:
        """List the caller's ingested documents, newest first."""
        stmt = (
            select(DocumentDB)
            .where(
                DocumentDB.owner_id == ctx.user_id,
                DocumentDB.extracted_text.is_not(None),
            )
            .order_by(DocumentDB.created_at.desc())
        )

        async with translate_db_errors(self._session, "list_documents"):
            result = await self._session.execute(stmt)
            rows = result.scalars().all()

        return [_to_document(row) for row in rows]

    async def delete_document(self, document_id: uuid.UUID) -> None:
        """Delete a document row and detach chats that referenced it."""
        async with translate_db_errors(self._session, "delete_document"):
            # SQLite does not enforce ON DELETE actions unless foreign keys are enabled
            await self._session.execute(
                update(ChatDB).where(ChatDB.document_id == document_id).values(document_id=None)
            )
            await self._session.execute(
                delete(DocumentDB).where(DocumentDB.document_id == document_id)
            )
            await self._session.commit()


class SqlChatRepository:
    """SQL implementation of ChatRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_chat(
        self, ctx: RequestContext, document_id: uuid.UUID, title: str
    ) -> Chat:
        """Create a chat bound to a document."""
        now = utcnow()
        row = ChatDB(
            chat_id=uuid.uuid4(),
            owner_id=ctx.user_id,
            document_id=document_id,
            title=title,
            created_at=now,
            updated_at=now,
        )

        # Build the domain model before commit expires the ORM attributes
        chat = _to_chat(row)

        async with translate_db_errors(self._session, "create_chat"):
            self._session.add(row)
            await self._session.commit()

        return chat

    async def get_chat(self, ctx: RequestContext, chat_id: uuid.UUID) -> Chat | None:
        """Get a chat owned by the caller, with its document filename."""
        stmt = (
            select(ChatDB, DocumentDB.filename)
            .outerjoin(DocumentDB, DocumentDB.document_id == ChatDB.document_id)
            .where(ChatDB.chat_id == chat_id, ChatDB.owner_id == ctx.user_id)
        )

        async with translate_db_errors(self._session, "get_chat"):
            result = await self._session.execute(stmt)
            found = result.first()

        if found is None:
            return None

        row, filename = found
        return _to_chat(row, filename)

    async def list_chats(self, ctx: RequestContext) -> list[Chat]:
        """List the caller's chats, most recently updated first."""
        stmt = (
            select(ChatDB, DocumentDB.filename)
            .outerjoin(DocumentDB, DocumentDB.document_id == ChatDB.document_id)
            .where(ChatDB.owner_id == ctx.user_id)
            .order_by(ChatDB.updated_at.desc())
        )

        async with translate_db_errors(self._session, "list_chats"):
            result = await self._session.execute(stmt)
            rows = result.all()

        return [_to_chat(row, filename) for row, filename in rows]

    async def list_messages(self, chat_id: uuid.UUID) -> list[Message]:
        """List a chat's messages in chronological order."""
        stmt = (
            select(ChatMessageDB)
            .where(ChatMessageDB.chat_id == chat_id)
            .order_by(ChatMessageDB.created_at.asc())
        )

        async with translate_db_errors(self._session, "list_messages"):
            result = await self._session.execute(stmt)
            rows = list(result.scalars().all())

        return [_to_message(row) for row in rows]

    async def add_message(
        self,
        chat_id: uuid.UUID,
        role: MessageRole,
        content: str,
        status: MessageStatus = MessageStatus.complete,
    ) -> Message:
        """Append a message and move chat.updated_at forward."""
        async with translate_db_errors(self._session, "add_message"):
            newest = await self._session.scalar(
                select(func.max(ChatMessageDB.created_at)).where(ChatMessageDB.chat_id == chat_id)
            )
            created_at = next_message_timestamp(newest)

            row = ChatMessageDB(
                message_id=uuid.uuid4(),
                chat_id=chat_id,
                role=role.value,
                content=content,
                status=status.value,
                created_at=created_at,
            )
            message = _to_message(row)
            self._session.add(row)
            await self._session.execute(
                update(ChatDB)
                .where(ChatDB.chat_id == chat_id, ChatDB.updated_at < created_at)
                .values(updated_at=created_at)
            )
            await self._session.commit()

        return message

    async def mark_message_failed(self, message_id: uuid.UUID) -> None:
        """Flag a user turn whose reply could not be generated."""
        async with translate_db_errors(self._session, "mark_message_failed"):
            await self._session.execute(
                update(ChatMessageDB)
                .where(ChatMessageDB.message_id == message_id)
                .values(status=MessageStatus.failed.value)
            )
            await self._session.commit()

    async def delete_chat(self, ctx: RequestContext, chat_id: uuid.UUID) -> bool:
        """Delete a chat and its messages."""
        async with translate_db_errors(self._session, "delete_chat"):
            result = await self._session.execute(
                select(ChatDB.chat_id).where(
                    ChatDB.chat_id == chat_id, ChatDB.owner_id == ctx.user_id
                )
            )
            if result.scalar_one_or_none() is None:
                return False

            await self._session.execute(
                delete(ChatMessageDB).where(ChatMessageDB.chat_id == chat_id)
            )
            await self._session.execute(delete(ChatDB).where(ChatDB.chat_id == chat_id))
            await self._session.commit()

        return True
