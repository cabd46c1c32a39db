from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from notex.schemas.tree import TreeNode
from notex.services.store import DocumentStore, get_store

router = APIRouter(prefix="/api/tree", tags=["tree"])


@router.get("", response_model=List[TreeNode], response_model_exclude_none=True)
async def list_tree(
    search: Optional[str] = Query(None, description="Case-insensitive title filter"),
    store: DocumentStore = Depends(get_store),
):
    """
    Scan the storage root and return the ordered document tree
    """
    return await store.list_tree(search)
