from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from notex.schemas.records import DeleteResult, RenameResult, WriteResult
from notex.schemas.requests import (
    ContentResponse, CreateLeafRequest, DeleteManyRequest, RenameRequest, WriteContentRequest
)
from notex.schemas.tree import LeafNode, NodeType
from notex.services import codec
from notex.services.store import DocumentStore, get_store
from notex.websocket import manager

router = APIRouter(prefix="/api/documents", tags=["documents"])

# Status codes for failed reads; every other operation reports failures in its body
READ_ERROR_STATUS = {
    "not_found": 404,
    "invalid_name": 400,
    "malformed_record": 422,
    "io_failure": 500,
}


@router.post("", response_model=Optional[LeafNode])
async def create_document(request: CreateLeafRequest, store: DocumentStore = Depends(get_store)):
    """
    Create a note or canvas; returns the new node, or null on failure
    """
    result = await store.create_leaf(request.parent_path, request.name, request.type)
    if not result.success:
        return None
    await manager.notify_tree_changed("create", result.node.path)
    return result.node


@router.get("/content", response_model=ContentResponse)
async def read_content(
    path: str = Query(..., description="Storage path of the document"),
    created_at: Optional[str] = Query(None, alias="createdAt", description="Creation time already known by the UI"),
    store: DocumentStore = Depends(get_store),
):
    """
    Load a document's content in the shape its editor expects
    """
    result = await store.read_content(path, known_created_at=created_at)
    if not result.success:
        raise HTTPException(status_code=READ_ERROR_STATUS.get(result.error_kind, 500), detail=result.error)

    return ContentResponse(
        path=path,
        type=result.type,
        content=codec.encode(result.content, result.type),
        created_at=result.created_at,
        updated_at=result.updated_at,
    )


@router.put("/content", response_model=WriteResult)
async def write_content(request: WriteContentRequest, store: DocumentStore = Depends(get_store)):
    """
    Replace a document's content; the value is stored exactly as sent
    """
    return await store.write_content(request.path, request.content)


@router.post("/rename", response_model=RenameResult)
async def rename(request: RenameRequest, store: DocumentStore = Depends(get_store)):
    """
    Rename a document or folder; newParent moves it
    """
    result = await store.rename(request.node, request.new_title, request.new_parent)
    if result.success:
        await manager.notify_tree_changed("rename", result.path)
    return result


@router.delete("", response_model=DeleteResult)
async def delete(
    path: str = Query(..., description="Storage path of the node"),
    type: Optional[NodeType] = Query(None, description="folder, note or canvas"),
    store: DocumentStore = Depends(get_store),
):
    """
    Delete a document, or a folder with everything under it
    """
    result = await store.delete(path, type)
    if result.success:
        await manager.notify_tree_changed("delete", result.path)
    return result


@router.post("/delete-many", response_model=List[DeleteResult])
async def delete_many(request: DeleteManyRequest, store: DocumentStore = Depends(get_store)):
    """
    Delete several paths independently; one result per path, no rollback
    """
    results = await store.delete_many(request.paths)
    for result in results:
        if result.success:
            await manager.notify_tree_changed("delete", result.path)
    return results
