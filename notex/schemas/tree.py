from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


NodeType = Literal["folder", "note", "canvas"]
LeafType = Literal["note", "canvas"]

ROOT_PATH = "."


class WireModel(BaseModel):
    """Base for models exchanged with the UI (camelCase on the wire)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LeafNode(WireModel):
    """Note or canvas document in the tree"""
    id: str
    title: str
    type: LeafType
    path: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class FolderNode(WireModel):
    """Folder owning an ordered list of children; id and path coincide"""
    id: str
    title: str
    type: Literal["folder"] = "folder"
    path: str
    children: List["TreeNode"] = Field(default_factory=list)


TreeNode = Annotated[Union[FolderNode, LeafNode], Field(discriminator="type")]

FolderNode.model_rebuild()


class ScanError(WireModel):
    """Entry skipped during a scan"""
    path: str
    error: str


class ScanResult(WireModel):
    """Full tree snapshot plus the entries that could not be read"""
    nodes: List[TreeNode] = Field(default_factory=list)
    errors: List[ScanError] = Field(default_factory=list)
