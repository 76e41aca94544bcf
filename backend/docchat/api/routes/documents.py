"""Document endpoints - upload, list, get, delete under /api/documents."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status

from backend.docchat.api.auth import get_current_context
from backend.docchat.api.deps import get_document_repository, get_ingestor
from backend.docchat.db.context import RequestContext
from backend.docchat.db.sql_repositories import SqlDocumentRepository
from backend.docchat.docs.ingest import DocumentIngestor
from backend.docchat.errors import NotFoundError
from backend.docchat.models.documents import Document
from backend.docchat.models.envelope import ApiResponse, ok

router = APIRouter(prefix="/api/documents", tags=["documents"])

ContextDep = Annotated[RequestContext, Depends(get_current_context)]


@router.post(
    "/upload",
    response_model=ApiResponse[Document],
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    ctx: ContextDep,
    ingestor: Annotated[DocumentIngestor, Depends(get_ingestor)],
    file: Annotated[UploadFile, File(description="PDF, TXT, DOC, DOCX, PNG or JPG")],
) -> ApiResponse[Document]:
    """Upload a document, extract its text and index it for chat.

    At most one byte past the upload limit is read, so an oversized body is
    rejected without being buffered in full.

    Returns:
        The ingested document, with its chunk count
    """
    data = await file.read(ingestor.max_upload_bytes + 1)
    document = await ingestor.ingest(
        ctx,
        data=data,
        filename=file.filename or "",
        declared_media_type=file.content_type,
    )
    return ok(document, "Document uploaded and processed successfully")


@router.get("", response_model=ApiResponse[list[Document]])
async def list_documents(
    ctx: ContextDep,
    documents: Annotated[SqlDocumentRepository, Depends(get_document_repository)],
) -> ApiResponse[list[Document]]:
    """List the caller's documents, newest first."""
    return ok(await documents.list_documents(ctx))


@router.get("/{document_id}", response_model=ApiResponse[Document])
async def get_document(
    document_id: UUID,
    ctx: ContextDep,
    documents: Annotated[SqlDocumentRepository, Depends(get_document_repository)],
) -> ApiResponse[Document]:
    document = await documents.get_document(ctx, document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    return ok(document)


@router.delete("/{document_id}", response_model=ApiResponse[None])
async def delete_document(
    document_id: UUID,
    ctx: ContextDep,
    ingestor: Annotated[DocumentIngestor, Depends(get_ingestor)],
) -> ApiResponse[None]:
    """Delete a document, its chunks and its stored file.

    Chats that referenced it are kept with no document.
    """
    if not await ingestor.delete(ctx, document_id):
        raise NotFoundError("Document", document_id)
    return ApiResponse(success=True, message="Document deleted")
