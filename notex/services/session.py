"""
Selection and autosave controller for Notex.

EditorSession is the single session-context value a UI drives: it owns the
current tree, the selected node, the open leaf's content, the canvas content
cache and the autosave timers. Per open leaf the state moves

    idle -> loading -> ready -> dirty -> saving -> ready ... -> idle

Edits are coalesced by a short throttle (which keeps the in-memory content
and cache warm) and persisted by a longer idle debounce. Leaving a leaf
flushes its latest edit to storage before anything else is loaded.

Structural mutations (create / rename / delete) are serialized against leaf
saves: a mutation flushes the open leaf and waits for every in-flight save,
and saves requested while a mutation runs wait for it and then write to the
rescanned path.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from notex.schemas.records import (
    Content, ContentResult, DeleteResult, FolderResult, LeafResult, RenameResult, WriteResult
)
from notex.schemas.tree import FolderNode, LeafNode, ScanError, TreeNode
from notex.services import codec
from notex.services.store import DocumentStore
from notex.services.tree import find_node, iter_nodes

logger = logging.getLogger(__name__)


class LeafState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DIRTY = "dirty"
    SAVING = "saving"


class EditorSession:
    """
    Session context for one UI.

    Args:
        store: Document store to read from and persist to
        throttle_interval: Seconds between propagations of rapid edits
        autosave_delay: Idle seconds after the last edit before a background save
    """

    def __init__(self, store: DocumentStore, throttle_interval: float = 0.5, autosave_delay: float = 10.0):
        self.store = store
        self.throttle_interval = throttle_interval
        self.autosave_delay = autosave_delay

        self.tree: List[TreeNode] = []
        self.scan_errors: List[ScanError] = []
        self.selected: Optional[TreeNode] = None
        self.state = LeafState.IDLE
        self.content: Optional[Content] = None
        self.created_at: Optional[str] = None
        self.updated_at: Optional[str] = None

        # canvas content by node id, for this session only
        self.cache: Dict[str, Content] = {}

        self._pending: Optional[Content] = None
        self._edit_seq = 0
        self._latest_seq = 0
        self._saved_seq: Dict[str, int] = {}
        self._throttle: Optional[asyncio.TimerHandle] = None
        self._debounce: Optional[asyncio.TimerHandle] = None
        self._save_locks: Dict[str, asyncio.Lock] = {}
        self._structure_lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()

    @property
    def is_dirty(self) -> bool:
        node = self.selected
        if not isinstance(node, LeafNode):
            return False
        return self._latest_seq > self._saved_seq.get(node.id, 0)

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    async def refresh(self) -> List[TreeNode]:
        """
        Rescan storage and re-resolve the selection by id.

        Paths may have moved under a folder rename, so the selection is looked
        up by id; if it is gone the selection is cleared.
        """
        result = await self.store.scan()
        self.tree = result.nodes
        self.scan_errors = result.errors

        live_ids = {node.id for node in iter_nodes(self.tree)}
        for node_id in [k for k in self.cache if k not in live_ids]:
            del self.cache[node_id]
        for node_id in [k for k in self._saved_seq if k not in live_ids]:
            del self._saved_seq[node_id]
        # a held lock still guards a running save
        for node_id, lock in list(self._save_locks.items()):
            if node_id not in live_ids and not lock.locked():
                del self._save_locks[node_id]

        if self.selected is not None:
            node = find_node(self.tree, self.selected.id)
            if node is None:
                logger.info(f"Selected node {self.selected.id} no longer exists, clearing selection")
                self._clear_selection()
            else:
                self.selected = node

        return self.tree

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def select(self, node_id: str) -> Optional[ContentResult]:
        """
        Select a node, flushing the previously open leaf first.

        Returns:
            ContentResult for a leaf (cached or loaded), None for a folder.
            If the previous leaf could not be saved the selection does not
            change and a failed ContentResult is returned.
        """
        await self._structure_settled()

        node = find_node(self.tree, node_id)
        if node is None:
            logger.warning(f"Cannot select unknown node {node_id}")
            return ContentResult(success=False, error=f"Unknown node: {node_id}", error_kind="not_found")

        if self.selected is not None and self.selected.id == node_id and self.state != LeafState.IDLE:
            return self._current_content()

        flushed = await self._leave()
        if flushed is not None and not flushed.success:
            return ContentResult(
                success=False,
                error=f"Unsaved changes could not be saved: {flushed.error}",
                error_kind=flushed.error_kind,
            )

        self.selected = node
        if isinstance(node, FolderNode):
            return None
        return await self._load(node)

    async def deselect(self) -> Optional[WriteResult]:
        """Flush and close the open leaf; returns the flush result if one ran"""
        await self._structure_settled()
        return await self._leave()

    # ------------------------------------------------------------------
    # Editing and saving
    # ------------------------------------------------------------------

    def edit(self, value: Any) -> Content:
        """
        Record an edit from the editor widget.

        The value is resolved once for the leaf's type; already-resolved
        content passes through untouched. Must be called from the event loop.
        """
        node = self.selected
        if not isinstance(node, LeafNode) or self.state in (LeafState.IDLE, LeafState.LOADING):
            raise RuntimeError("No document is open for editing")

        content = codec.to_content(value, node.type)
        self._pending = content
        self._edit_seq += 1
        self._latest_seq = self._edit_seq
        if self.state != LeafState.SAVING:
            self.state = LeafState.DIRTY

        loop = asyncio.get_running_loop()
        if self._throttle is None:
            self._propagate()
            self._throttle = loop.call_later(self.throttle_interval, self._throttle_fired)

        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = loop.call_later(self.autosave_delay, self._autosave_fired)

        return content

    async def save(self) -> WriteResult:
        """Persist the open leaf's latest content"""
        await self._structure_settled()
        return await self._save_selected()

    async def flush(self) -> Optional[WriteResult]:
        """Cancel pending timers and save now if there are unsaved edits"""
        await self._structure_settled()
        return await self._flush()

    # ------------------------------------------------------------------
    # Structural mutations (each followed by a full rescan)
    # ------------------------------------------------------------------

    async def create_leaf(self, parent_path: Optional[str], name: Optional[str], leaf_type: str = "note") -> LeafResult:
        """Create a note or canvas and select it"""
        result = await self._mutate(self.store.create_leaf(parent_path, name, leaf_type))
        if result.success and result.node is not None:
            await self.select(result.node.id)
        return result

    async def create_folder(self, parent_path: Optional[str], name: Optional[str]) -> FolderResult:
        return await self._mutate(self.store.create_folder(parent_path, name))

    async def rename(self, node_id: str, new_title: Optional[str], new_parent: Optional[str] = None) -> RenameResult:
        """Rename (or move, with new_parent) the node with this id"""
        node = find_node(self.tree, node_id)
        if node is None:
            return RenameResult(success=False, error=f"Unknown node: {node_id}", error_kind="not_found")
        return await self._mutate(self._rename_fresh(node_id, new_title, new_parent))

    async def delete(self, node_id: str) -> DeleteResult:
        node = find_node(self.tree, node_id)
        if node is None:
            return DeleteResult(success=False, error=f"Unknown node: {node_id}", error_kind="not_found")
        return await self._mutate(self.store.delete(node.path, node.type))

    async def delete_many(self, paths: Iterable[str]) -> List[DeleteResult]:
        """Delete each path independently; per-item results, no rollback"""
        return await self._mutate(self.store.delete_many(list(paths)))

    async def aclose(self):
        """Flush, cancel timers and wait for background saves"""
        await self.flush()
        self._cancel_timers()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mutate(self, operation):
        async with self._structure_lock:
            flushed = await self._flush()
            if flushed is not None and not flushed.success:
                logger.warning(f"Proceeding with structural change after failed save: {flushed.error}")
            await self._drain_saves()
            try:
                result = await operation
            finally:
                await self.refresh()
        return result

    async def _rename_fresh(self, node_id: str, new_title: Optional[str], new_parent: Optional[str]) -> RenameResult:
        # resolve again under the structure lock; an earlier mutation may have moved it
        node = find_node(self.tree, node_id)
        if node is None:
            return RenameResult(success=False, error=f"Unknown node: {node_id}", error_kind="not_found")
        return await self.store.rename(node, new_title, new_parent)

    async def _structure_settled(self):
        if self._structure_lock.locked():
            async with self._structure_lock:
                pass

    async def _drain_saves(self):
        for lock in list(self._save_locks.values()):
            async with lock:
                pass

    async def _load(self, node: LeafNode) -> ContentResult:
        self.state = LeafState.LOADING
        self._latest_seq = self._saved_seq.get(node.id, 0)

        cached = self.cache.get(node.id) if node.type == "canvas" else None
        if cached is not None:
            logger.debug(f"Canvas {node.id} served from session cache")
            self.content = cached
            self.created_at = node.created_at
            self.updated_at = node.updated_at
            self.state = LeafState.READY
            return self._current_content()

        result = await self.store.read_content(node.path, known_created_at=node.created_at)
        if not self._is_current(node):
            return result

        if not result.success:
            self.state = LeafState.IDLE
            self.content = None
            return result

        self.content = result.content
        self.created_at = result.created_at
        self.updated_at = result.updated_at
        if node.type == "canvas":
            self.cache[node.id] = result.content
        self.state = LeafState.READY
        return result

    async def _leave(self) -> Optional[WriteResult]:
        if self.selected is None:
            return None
        result = await self._flush()
        if result is not None and not result.success:
            return result
        self._clear_selection()
        return result

    async def _flush(self) -> Optional[WriteResult]:
        self._cancel_timers()
        if not self.is_dirty:
            self._propagate()
            return None
        return await self._save_selected()

    async def _save_selected(self) -> WriteResult:
        node = self.selected
        if not isinstance(node, LeafNode) or self.state in (LeafState.IDLE, LeafState.LOADING):
            return WriteResult(success=False, error="No document is open", error_kind="not_found")

        self._propagate()
        content = self.content
        seq = self._latest_seq

        lock = self._save_locks.setdefault(node.id, asyncio.Lock())
        async with lock:
            if seq <= self._saved_seq.get(node.id, 0):
                return WriteResult(updated_at=self.updated_at if self._is_current(node) else None)

            if self._is_current(node):
                self.state = LeafState.SAVING

            current = find_node(self.tree, node.id)
            path = current.path if current is not None else node.path
            result = await self.store.write_content(path, content)

            if result.success:
                self._saved_seq[node.id] = max(seq, self._saved_seq.get(node.id, 0))

            if self._is_current(node):
                if result.success:
                    self.updated_at = result.updated_at
                self.state = LeafState.DIRTY if self.is_dirty else LeafState.READY

        return result

    def _propagate(self):
        if self._pending is None:
            return
        self.content = self._pending
        self._pending = None
        node = self.selected
        if isinstance(node, LeafNode) and node.type == "canvas":
            self.cache[node.id] = self.content

    def _throttle_fired(self):
        self._throttle = None
        self._propagate()

    def _autosave_fired(self):
        self._debounce = None
        logger.debug("Idle autosave triggered")
        task = asyncio.ensure_future(self.save())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _cancel_timers(self):
        if self._throttle is not None:
            self._throttle.cancel()
            self._throttle = None
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    def _clear_selection(self):
        self._cancel_timers()
        self._pending = None
        self.selected = None
        self.content = None
        self.created_at = None
        self.updated_at = None
        self._latest_seq = 0
        self.state = LeafState.IDLE

    def _is_current(self, node: TreeNode) -> bool:
        return self.selected is not None and self.selected.id == node.id

    def _current_content(self) -> ContentResult:
        node = self.selected
        return ContentResult(
            type=node.type if isinstance(node, LeafNode) else None,
            content=self.content,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
