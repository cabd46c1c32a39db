from typing import Any, List, Optional

from pydantic import Field

from notex.schemas.tree import ROOT_PATH, LeafType, TreeNode, WireModel


class CreateLeafRequest(WireModel):
    """New note or canvas under parent_path"""
    parent_path: str = ROOT_PATH
    name: Optional[str] = None
    type: LeafType = "note"


class CreateFolderRequest(WireModel):
    parent_path: str = ROOT_PATH
    name: Optional[str] = None


class RenameRequest(WireModel):
    """Rename a node; new_parent moves it"""
    node: TreeNode
    new_title: Optional[str] = None
    new_parent: Optional[str] = None


class WriteContentRequest(WireModel):
    path: str
    content: Any = None


class DeleteManyRequest(WireModel):
    paths: List[str] = Field(default_factory=list)


class ContentResponse(WireModel):
    """Leaf content as the editor widgets consume it"""
    path: str
    type: LeafType
    content: Any = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
