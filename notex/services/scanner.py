"""
Tree scanner for Notex.

Walks the storage root and rebuilds the full document tree. Directories become
folders, `<id><canvas_suffix>` files become canvases and `<id><note_suffix>`
files become notes. Hidden entries are skipped. Every level is ordered folders
first, then leaves, each group by case-insensitive title.

A record that cannot be read is left out of the tree and reported in
ScanResult.errors; the rest of the scan carries on.
"""

import asyncio
import logging
import os
from pathlib import Path, PurePosixPath
from typing import List, Optional, Set, Tuple

from notex.errors import MalformedRecordError, NotFoundError
from notex.schemas.tree import FolderNode, LeafNode, LeafType, ScanError, ScanResult, TreeNode
from notex.services.codec import loads_record

logger = logging.getLogger(__name__)


class Scanner:
    """Full-rebuild scanner bound to a storage root and record suffixes"""

    def __init__(self, root: Path, note_suffix: str = ".json", canvas_suffix: str = ".canvas.json"):
        self.root = Path(root)
        self.note_suffix = note_suffix
        self.canvas_suffix = canvas_suffix

    async def scan(self) -> ScanResult:
        """Rebuild the tree without blocking the event loop"""
        return await asyncio.to_thread(self.scan_sync)

    def scan_sync(self) -> ScanResult:
        """
        Rebuild the tree from disk.

        Returns:
            ScanResult with ordered nodes and per-entry errors

        Raises:
            NotFoundError: if the storage root does not exist
        """
        if not self.root.is_dir():
            raise NotFoundError(f"Storage root not found: {self.root}", path=str(self.root))

        errors: List[ScanError] = []
        seen_ids: Set[str] = set()
        nodes = self._scan_dir(PurePosixPath("."), seen_ids, errors)

        logger.info(f"Scanned {self.root}: {len(seen_ids)} nodes, {len(errors)} skipped")
        return ScanResult(nodes=nodes, errors=errors)

    def classify(self, filename: str) -> Optional[Tuple[str, LeafType]]:
        """
        Split a record file name into (identity, type).

        Returns:
            Tuple of id and leaf type, or None if the file is not a record
        """
        if filename.endswith(self.canvas_suffix):
            stem = filename[: -len(self.canvas_suffix)]
            return (stem, "canvas") if stem else None
        if filename.endswith(self.note_suffix):
            stem = filename[: -len(self.note_suffix)]
            return (stem, "note") if stem else None
        return None

    def suffix_for(self, leaf_type: LeafType) -> str:
        return self.canvas_suffix if leaf_type == "canvas" else self.note_suffix

    def _scan_dir(self, rel: PurePosixPath, seen_ids: Set[str], errors: List[ScanError]) -> List[TreeNode]:
        directory = self.root / rel
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Cannot list {directory}: {e}")
            errors.append(ScanError(path=str(rel), error=str(e)))
            return []

        folders: List[FolderNode] = []
        leaves: List[LeafNode] = []

        for entry in entries:
            if entry.name.startswith("."):
                continue

            rel_path = str(rel / entry.name)

            if entry.is_dir(follow_symlinks=False):
                seen_ids.add(rel_path)
                children = self._scan_dir(rel / entry.name, seen_ids, errors)
                folders.append(FolderNode(id=rel_path, title=entry.name, path=rel_path, children=children))
                continue

            classified = self.classify(entry.name)
            if classified is None:
                continue
            file_id, leaf_type = classified

            try:
                leaf = self._read_leaf(Path(entry.path), rel_path, file_id, leaf_type)
            except (OSError, UnicodeDecodeError, MalformedRecordError) as e:
                logger.warning(f"Skipping unreadable record {rel_path}: {e}")
                errors.append(ScanError(path=rel_path, error=str(e)))
                continue

            if leaf.id in seen_ids:
                logger.warning(f"Skipping {rel_path}: duplicate id {leaf.id}")
                errors.append(ScanError(path=rel_path, error=f"Duplicate id {leaf.id}"))
                continue

            seen_ids.add(leaf.id)
            leaves.append(leaf)

        folders.sort(key=_order_key)
        leaves.sort(key=_order_key)
        return [*folders, *leaves]

    def _read_leaf(self, file_path: Path, rel_path: str, file_id: str, leaf_type: LeafType) -> LeafNode:
        record = loads_record(file_path.read_text(encoding="utf-8"), path=rel_path)

        if record.id != file_id:
            logger.warning(f"Record {rel_path} embeds id {record.id}, file name says {file_id}")
        if record.type is not None and record.type != leaf_type:
            logger.warning(f"Record {rel_path} declares type {record.type}, file suffix says {leaf_type}")

        return LeafNode(
            id=record.id,
            title=record.title,
            type=leaf_type,
            path=rel_path,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


def _order_key(node) -> Tuple[str, str]:
    return (node.title.casefold(), node.id)
