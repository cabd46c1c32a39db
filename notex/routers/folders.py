from fastapi import APIRouter, Depends

from notex.schemas.records import FolderResult
from notex.schemas.requests import CreateFolderRequest
from notex.services.store import DocumentStore, get_store
from notex.websocket import manager

router = APIRouter(prefix="/api/folders", tags=["folders"])


@router.post("", response_model=FolderResult)
async def create_folder(request: CreateFolderRequest, store: DocumentStore = Depends(get_store)):
    """
    Create a folder (and any missing parents); existing folders are fine
    """
    result = await store.create_folder(request.parent_path, request.name)
    if result.success:
        await manager.notify_tree_changed("create_folder", result.path)
    return result
