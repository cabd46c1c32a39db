"""
Document store for Notex.

Create / rename / delete / read / write operations against the storage root.
Every public operation is a coroutine that returns a result model; storage
errors are logged and reported through `success`, `error` and `error_kind`
rather than raised. Structural mutations do not rescan on their own: callers
rescan afterwards to pick up the new paths.
"""

import asyncio
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, List, Optional, Tuple, Type, TypeVar

from notex.config import Settings, get_settings
from notex.errors import (
    InvalidNameError, IOFailureError, MalformedRecordError, NotexError, NotFoundError,
    as_notex_error
)
from notex.schemas.records import (
    ContentResult, DeleteResult, FolderResult, LeafResult, Record, RenameResult,
    StoreResult, WriteResult
)
from notex.schemas.tree import (
    ROOT_PATH, FolderNode, LeafNode, LeafType, NodeType, ScanResult, TreeNode
)
from notex.services import codec
from notex.services.sanitizer import sanitize_name
from notex.services.scanner import Scanner
from notex.services.tree import filter_tree

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=StoreResult)

LEAF_TYPES = ("note", "canvas")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentStore:
    """
    File-backed store of folders (directories) and leaves (JSON records).

    Paths exchanged with callers are POSIX paths relative to the storage
    root; "." (or "") is the root itself.
    """

    def __init__(
        self,
        root: Path,
        note_suffix: str = ".json",
        canvas_suffix: str = ".canvas.json",
        leaf_placeholder: str = "Untitled",
        folder_placeholder: str = "New Folder",
    ):
        self.root = Path(root)
        self.scanner = Scanner(self.root, note_suffix=note_suffix, canvas_suffix=canvas_suffix)
        self.leaf_placeholder = leaf_placeholder
        self.folder_placeholder = folder_placeholder

    @classmethod
    def from_settings(cls, settings: Settings) -> "DocumentStore":
        return cls(
            settings.storage_root,
            note_suffix=settings.note_suffix,
            canvas_suffix=settings.canvas_suffix,
            leaf_placeholder=settings.leaf_placeholder,
            folder_placeholder=settings.folder_placeholder,
        )

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    async def ensure_root(self) -> StoreResult:
        """Create the storage root (and parents) if missing; idempotent"""
        return await self._run(StoreResult, str(self.root), "ensure root", self._ensure_root_sync)

    async def scan(self) -> ScanResult:
        """Full rescan; an unreadable root yields an empty tree with one error"""
        ensured = await self.ensure_root()
        if not ensured.success:
            return ScanResult(errors=[{"path": ROOT_PATH, "error": ensured.error}])
        try:
            return await self.scanner.scan()
        except (NotexError, OSError) as e:
            err = as_notex_error(e, ROOT_PATH)
            logger.warning(f"Scan of {self.root} failed: {err.message}")
            return ScanResult(errors=[{"path": ROOT_PATH, "error": err.message}])

    async def list_tree(self, search: Optional[str] = None) -> List[TreeNode]:
        """
        Scan the storage root and return the ordered tree.

        Args:
            search: Optional title filter applied after the scan

        Returns:
            List of top-level nodes (folders carry their children)
        """
        result = await self.scan()
        return filter_tree(result.nodes, search)

    # ------------------------------------------------------------------
    # Structural mutations
    # ------------------------------------------------------------------

    async def create_leaf(self, parent_path: Optional[str], name: Optional[str], leaf_type: str = "note") -> LeafResult:
        """
        Create a note or canvas record under parent_path.

        Missing parent directories are created. The new leaf gets a fresh id
        and empty content of its type.

        Returns:
            LeafResult with the new node, or a failure
        """
        return await self._run(
            LeafResult, parent_path, f"create {leaf_type}",
            self._create_leaf_sync, parent_path, name, leaf_type
        )

    async def create_folder(self, parent_path: Optional[str], name: Optional[str]) -> FolderResult:
        """Create a folder (and intermediates); an existing folder is not an error"""
        return await self._run(
            FolderResult, parent_path, "create folder",
            self._create_folder_sync, parent_path, name
        )

    async def rename(self, node: TreeNode, new_title: Optional[str], new_parent: Optional[str] = None) -> RenameResult:
        """
        Rename a node, optionally moving it under new_parent.

        Folders are moved on disk (descendant paths change; rescan to see
        them). Leaves only get their record's title rewritten unless a new
        parent is given, in which case the record file moves too.

        Returns:
            RenameResult carrying the node's storage path afterwards
        """
        return await self._run(
            RenameResult, node.path, "rename",
            self._rename_sync, node, new_title, new_parent
        )

    async def delete(self, path: str, node_type: Optional[NodeType] = None) -> DeleteResult:
        """
        Delete a folder subtree or a single record.

        Args:
            path: Storage path of the node
            node_type: "folder", "note" or "canvas"; inferred from disk if None
        """
        result = await self._run(
            DeleteResult, path, "delete",
            self._delete_sync, path, node_type
        )
        if result.path is None:
            result.path = path
        return result

    async def delete_many(self, paths: Iterable[str]) -> List[DeleteResult]:
        """
        Delete each path independently.

        There is no rollback: items that failed stay, items that succeeded
        are gone. One result per input path, in input order.
        """
        results = []
        for path in paths:
            results.append(await self.delete(path))
        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning(f"Bulk delete: {failed} of {len(results)} items failed")
        return results

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def read_content(self, path: str, known_created_at: Optional[str] = None) -> ContentResult:
        """
        Load a leaf's content.

        createdAt comes from the record, else from inside a structured
        snapshot, else from known_created_at.
        """
        return await self._run(
            ContentResult, path, "read",
            self._read_content_sync, path, known_created_at
        )

    async def write_content(self, path: str, content) -> WriteResult:
        """
        Replace a leaf's content, keeping id, title and createdAt.

        Args:
            path: Storage path of the leaf
            content: PlainText / StructuredSnapshot (passed through) or a raw
                editor value (resolved once for the leaf's type)

        Returns:
            WriteResult with the new updatedAt, or a failure
        """
        return await self._run(
            WriteResult, path, "write",
            self._write_content_sync, path, content
        )

    # ------------------------------------------------------------------
    # Internals (run in a worker thread)
    # ------------------------------------------------------------------

    async def _run(self, result_cls: Type[R], path: Optional[str], action: str, func: Callable[..., R], *args) -> R:
        try:
            return await asyncio.to_thread(func, *args)
        except (NotexError, OSError) as e:
            err = as_notex_error(e, path)
            logger.warning(f"Failed to {action} {path!r}: [{err.kind}] {err.message}")
            return result_cls.failed(err)

    def _ensure_root_sync(self) -> StoreResult:
        self.root.mkdir(parents=True, exist_ok=True)
        return StoreResult()

    def _resolve(self, rel: Optional[str]) -> Tuple[Path, str]:
        """Absolute path and normalized relative path for a storage path"""
        raw = (rel or ROOT_PATH).replace("\\", "/")
        pure = PurePosixPath(raw)
        if pure.is_absolute():
            raise InvalidNameError(f"Absolute paths are not allowed: {rel}", path=rel)

        root = self.root.resolve()
        candidate = (root / pure).resolve()
        try:
            relative = candidate.relative_to(root)
        except ValueError:
            raise InvalidNameError(f"Path escapes the storage root: {rel}", path=rel)
        return candidate, relative.as_posix()

    def _relative(self, target: Path) -> str:
        return target.relative_to(self.root.resolve()).as_posix()

    def _leaf_type(self, file_path: Path, rel: str) -> LeafType:
        classified = self.scanner.classify(file_path.name)
        if classified is None:
            raise InvalidNameError(f"Not a document record: {rel}", path=rel)
        return classified[1]

    def _load_record(self, file_path: Path, rel: str) -> Record:
        if not file_path.is_file():
            raise NotFoundError(f"Record not found: {rel}", path=rel)
        try:
            text = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRecordError(f"Record is not UTF-8: {e}", path=rel)
        record = codec.loads_record(text, path=rel)
        record.type = self._leaf_type(file_path, rel)
        return record

    def _write_record(self, file_path: Path, record: Record):
        # hidden temp name keeps half-written records out of scans
        tmp = file_path.with_name(f".{file_path.name}.tmp")
        try:
            tmp.write_text(codec.dumps_record(record), encoding="utf-8")
            os.replace(tmp, file_path)
        finally:
            tmp.unlink(missing_ok=True)

    def _create_leaf_sync(self, parent_path: Optional[str], name: Optional[str], leaf_type: str) -> LeafResult:
        if leaf_type not in LEAF_TYPES:
            raise InvalidNameError(f"Unknown document type: {leaf_type}")
        title = sanitize_name(name, self.leaf_placeholder)
        parent, _ = self._resolve(parent_path)
        parent.mkdir(parents=True, exist_ok=True)

        leaf_id = str(uuid.uuid4())
        now = utc_now()
        record = Record(
            id=leaf_id,
            title=title,
            type=leaf_type,
            content=codec.encode(codec.default_content(leaf_type), leaf_type),
            created_at=now,
            updated_at=now,
        )
        file_path = parent / f"{leaf_id}{self.scanner.suffix_for(leaf_type)}"
        self._write_record(file_path, record)

        node = LeafNode(
            id=leaf_id,
            title=title,
            type=leaf_type,
            path=self._relative(file_path),
            created_at=now,
            updated_at=now,
        )
        logger.info(f"Created {leaf_type} {node.title!r} at {node.path}")
        return LeafResult(node=node)

    def _create_folder_sync(self, parent_path: Optional[str], name: Optional[str]) -> FolderResult:
        title = sanitize_name(name, self.folder_placeholder)
        parent, _ = self._resolve(parent_path)
        target = parent / title
        target.mkdir(parents=True, exist_ok=True)

        path = self._relative(target)
        logger.info(f"Created folder {path}")
        return FolderResult(path=path)

    def _rename_sync(self, node: TreeNode, new_title: Optional[str], new_parent: Optional[str]) -> RenameResult:
        if isinstance(node, FolderNode):
            return self._rename_folder(node, new_title, new_parent)
        return self._rename_leaf(node, new_title, new_parent)

    def _rename_folder(self, node: FolderNode, new_title: Optional[str], new_parent: Optional[str]) -> RenameResult:
        title = sanitize_name(new_title, self.folder_placeholder)
        source, source_rel = self._resolve(node.path)
        if source_rel == ROOT_PATH:
            raise InvalidNameError("The storage root cannot be renamed", path=node.path)
        if not source.is_dir():
            raise NotFoundError(f"Folder not found: {source_rel}", path=source_rel)

        parent = self._resolve(new_parent)[0] if new_parent is not None else source.parent
        dest = parent / title

        if dest == source:
            logger.debug(f"Rename of {source_rel} is a no-op")
            return RenameResult(path=source_rel)
        if source in dest.parents:
            raise InvalidNameError(f"Cannot move {source_rel} into itself", path=source_rel)
        if dest.exists() and not _same_entry(source, dest):
            raise IOFailureError(f"Destination already exists: {self._relative(dest)}", path=source_rel)

        parent.mkdir(parents=True, exist_ok=True)
        source.rename(dest)

        dest_rel = self._relative(dest)
        logger.info(f"Moved folder {source_rel} -> {dest_rel}")
        return RenameResult(path=dest_rel)

    def _rename_leaf(self, node: LeafNode, new_title: Optional[str], new_parent: Optional[str]) -> RenameResult:
        title = sanitize_name(new_title, self.leaf_placeholder)
        file_path, rel = self._resolve(node.path)
        record = self._load_record(file_path, rel)
        record.title = title

        if new_parent is None:
            self._write_record(file_path, record)
            logger.info(f"Renamed {rel} to {title!r}")
            return RenameResult(path=rel)

        dest_dir, _ = self._resolve(new_parent)
        dest = dest_dir / file_path.name
        if dest == file_path:
            self._write_record(file_path, record)
            return RenameResult(path=rel)
        if dest.exists():
            raise IOFailureError(f"Destination already exists: {self._relative(dest)}", path=rel)

        dest_dir.mkdir(parents=True, exist_ok=True)
        self._write_record(dest, record)
        file_path.unlink()

        dest_rel = self._relative(dest)
        logger.info(f"Moved {rel} -> {dest_rel} as {title!r}")
        return RenameResult(path=dest_rel)

    def _delete_sync(self, path: str, node_type: Optional[NodeType]) -> DeleteResult:
        target, rel = self._resolve(path)
        if rel == ROOT_PATH:
            raise InvalidNameError("The storage root cannot be deleted", path=path)

        if node_type is None and target.is_dir():
            node_type = "folder"

        if node_type == "folder":
            if not target.is_dir():
                raise NotFoundError(f"Folder not found: {rel}", path=rel)
            shutil.rmtree(target)
        else:
            if not target.is_file():
                raise NotFoundError(f"Record not found: {rel}", path=rel)
            # only record files; foreign and hidden temp files stay
            node_type = self._leaf_type(target, rel)
            if target.name.startswith("."):
                raise InvalidNameError(f"Not a document record: {rel}", path=rel)
            target.unlink()

        logger.info(f"Deleted {node_type} {rel}")
        return DeleteResult(path=rel)

    def _read_content_sync(self, path: str, known_created_at: Optional[str]) -> ContentResult:
        file_path, rel = self._resolve(path)
        leaf_type = self._leaf_type(file_path, rel)
        record = self._load_record(file_path, rel)
        content = codec.decode(record.content, leaf_type)

        created_at = record.created_at or codec.embedded_created_at(content) or known_created_at
        return ContentResult(
            type=leaf_type,
            content=content,
            created_at=created_at,
            updated_at=record.updated_at,
        )

    def _write_content_sync(self, path: str, content) -> WriteResult:
        file_path, rel = self._resolve(path)
        leaf_type = self._leaf_type(file_path, rel)
        record = self._load_record(file_path, rel)

        resolved = codec.to_content(content, leaf_type)
        record.content = codec.encode(resolved, leaf_type)
        record.updated_at = utc_now()
        self._write_record(file_path, record)

        logger.debug(f"Saved {rel}")
        return WriteResult(updated_at=record.updated_at)


def _same_entry(a: Path, b: Path) -> bool:
    # case-only renames on case-insensitive filesystems
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


@lru_cache
def get_store() -> DocumentStore:
    """Process-wide store built from settings (overridable as a FastAPI dependency)"""
    return DocumentStore.from_settings(get_settings())
