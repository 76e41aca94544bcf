"""Service container and FastAPI dependencies."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from backend.docchat.chat.manager import ConversationManager
from backend.docchat.config import Settings
from backend.docchat.db.engine import create_async_engine_from_settings, create_session_factory
from backend.docchat.db.sql_repositories import SqlChatRepository, SqlDocumentRepository
from backend.docchat.docs.ingest import DocumentIngestor
from backend.docchat.docs.retriever import Retriever
from backend.docchat.docs.vector_store import SqlVectorStore
from backend.docchat.llm.client import LLMClient, build_llm_client
from backend.docchat.llm.embeddings import EmbeddingGenerator
from backend.docchat.ratelimit import InMemoryRateLimiter, RedisRateLimiter, build_rate_limiter


@dataclass
class AppServices:
    """Process-wide resources built once at startup."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    llm: LLMClient
    rate_limiter: RedisRateLimiter | InMemoryRateLimiter

    @property
    def embeddings(self) -> EmbeddingGenerator:
        return EmbeddingGenerator(
            self.llm,
            dimensions=self.settings.embedding_dimensions,
            batch_size=self.settings.embedding_batch_size,
            concurrency=self.settings.embedding_concurrency,
        )

    async def close(self) -> None:
        await self.rate_limiter.close()
        await self.llm.close()
        await self.engine.dispose()


def build_services(settings: Settings, *, llm: LLMClient | None = None) -> AppServices:
    """Build the service container from settings.

    Args:
        settings: Application settings
        llm: Client override (tests); built from settings when omitted
    """
    engine = create_async_engine_from_settings(settings)
    return AppServices(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(engine),
        llm=llm if llm is not None else build_llm_client(settings),
        rate_limiter=build_rate_limiter(settings.redis_url, settings.messages_per_min),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


ServicesDep = Annotated[AppServices, Depends(get_services)]


async def get_session(services: ServicesDep) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for async database session.

    Yields:
        AsyncSession instance
    """
    async with services.session_factory() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_ingestor(services: ServicesDep, session: SessionDep) -> DocumentIngestor:
    settings = services.settings
    return DocumentIngestor(
        documents=SqlDocumentRepository(session),
        store=SqlVectorStore(session),
        embeddings=services.embeddings,
        llm=services.llm,
        upload_dir=Path(settings.upload_dir),
        chunk_size=settings.chunk_size,
        max_upload_bytes=settings.max_upload_bytes,
    )


def get_document_repository(session: SessionDep) -> SqlDocumentRepository:
    return SqlDocumentRepository(session)


def get_conversation_manager(services: ServicesDep, session: SessionDep) -> ConversationManager:
    settings = services.settings
    retriever = Retriever(
        services.embeddings,
        SqlVectorStore(session),
        threshold=settings.match_threshold,
        k=settings.match_count,
    )
    return ConversationManager(
        chats=SqlChatRepository(session),
        documents=SqlDocumentRepository(session),
        retriever=retriever,
        llm=services.llm,
    )
