from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from notex.errors import NotexError
from notex.schemas.tree import LeafNode, LeafType, WireModel


class PlainText(BaseModel):
    """Note content: the editor's string, carried as-is"""
    kind: Literal["text"] = "text"
    text: str = ""

    @property
    def value(self) -> str:
        return self.text


class StructuredSnapshot(BaseModel):
    """Canvas content: an opaque mapping the store never looks inside"""
    kind: Literal["snapshot"] = "snapshot"
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def value(self) -> Dict[str, Any]:
        return self.data


Content = Annotated[Union[PlainText, StructuredSnapshot], Field(discriminator="kind")]


class Record(BaseModel):
    """
    Persisted form of a leaf. `content` holds the raw stored value.

    Older records carry no `type`; the file suffix decides it.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    title: str
    type: Optional[LeafType] = None
    content: Any = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class StoreResult(WireModel):
    """Outcome of a store operation; failures carry a message and a kind"""
    success: bool = True
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def failed(cls, err: NotexError, **fields: Any):
        return cls(success=False, error=err.message, error_kind=err.kind, **fields)


class LeafResult(StoreResult):
    node: Optional[LeafNode] = None


class FolderResult(StoreResult):
    path: Optional[str] = None


class RenameResult(StoreResult):
    path: Optional[str] = None


class DeleteResult(StoreResult):
    path: Optional[str] = None


class WriteResult(StoreResult):
    updated_at: Optional[str] = None


class ContentResult(StoreResult):
    type: Optional[LeafType] = None
    content: Optional[Content] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
