from __future__ import annotations

import logging
import os
import re
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Sequence, Tuple
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import DELETE, MODIFY, RENAME, ChangeEvents
from .interfaces import DocumentRef, HeadingInfo, IDocumentStore

logger = logging.getLogger(__name__)

# ATX headings: "# Title", "## Title ##"
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)(?:\s+#+)?\s*$")
CODE_FENCE_PATTERN = re.compile(r"^(`{3,}|~{3,})")


def parse_headings(source: str) -> List[HeadingInfo]:
    """ATX headings of a Markdown document in order, skipping fenced code."""
    headings: List[HeadingInfo] = []
    open_fence: str | None = None
    for line in source.splitlines():
        stripped = line.strip()
        fence = CODE_FENCE_PATTERN.match(stripped)
        if open_fence is None and fence:
            open_fence = fence.group(1)
            continue
        if open_fence is not None:
            # only a bare fence of the same char, at least as long, closes the block
            if fence:
                marker = fence.group(1)
                info = stripped[len(marker):].strip()
                if marker[0] == open_fence[0] and len(marker) >= len(open_fence) and not info:
                    open_fence = None
            continue
        # indented 4+ spaces is a code block, not a heading
        if len(line) - len(line.lstrip(" ")) >= 4:
            continue
        m = HEADING_PATTERN.match(stripped)
        if m:
            headings.append(HeadingInfo(text=m.group(2).strip(), level=len(m.group(1))))
    return headings


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed document collection; ids are POSIX-style paths."""

    def __init__(self):
        self._docs: Dict[str, Tuple[DocumentRef, List[HeadingInfo]]] = {}

    @staticmethod
    def make_ref(document_id: str, indexable: bool = True) -> DocumentRef:
        p = PurePosixPath(document_id)
        parent = str(p.parent)
        return DocumentRef(
            document_id=document_id,
            name=p.stem,
            container_path="" if parent == "." else parent,
            indexable=indexable,
        )

    def put(self, document_id: str, headings: Sequence[HeadingInfo] | Sequence[Tuple[str, int]] = (), indexable: bool = True) -> DocumentRef:
        ref = self.make_ref(document_id, indexable=indexable)
        infos = [h if isinstance(h, HeadingInfo) else HeadingInfo(text=h[0], level=h[1]) for h in headings]
        self._docs[document_id] = (ref, infos)
        return ref

    def rename(self, old_id: str, new_id: str) -> DocumentRef:
        ref, infos = self._docs.pop(old_id)
        return self.put(new_id, infos, indexable=ref.indexable)

    def remove(self, document_id: str) -> None:
        self._docs.pop(document_id, None)

    def list_documents(self) -> Iterable[DocumentRef]:
        return [ref for ref, _ in self._docs.values() if ref.indexable]

    def resolve(self, document_id: str) -> DocumentRef | None:
        item = self._docs.get(document_id)
        return item[0] if item else None

    def read_headings(self, document: DocumentRef) -> Sequence[HeadingInfo] | None:
        item = self._docs.get(document.document_id)
        return list(item[1]) if item else None


class FileSystemVault(IDocumentStore):
    """Directory of Markdown notes exposed as a document store."""

    def __init__(self, root: str | os.PathLike, extensions: Sequence[str] = (".md",)):
        self.root = Path(root).resolve()
        self.extensions = tuple(e.lower() for e in extensions)

    def _is_hidden(self, rel: Path) -> bool:
        return any(part.startswith(".") for part in rel.parts)

    def document_id_for(self, path: str | os.PathLike) -> str | None:
        try:
            rel = Path(path).resolve().relative_to(self.root)
        except ValueError:
            return None
        return rel.as_posix()

    def _ref_for(self, rel: Path) -> DocumentRef:
        parent = rel.parent.as_posix()
        return DocumentRef(
            document_id=rel.as_posix(),
            name=rel.stem,
            container_path="" if parent == "." else parent,
            indexable=rel.suffix.lower() in self.extensions,
        )

    def list_documents(self) -> Iterable[DocumentRef]:
        docs: List[DocumentRef] = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(self.root)
            if self._is_hidden(rel) or rel.suffix.lower() not in self.extensions:
                continue
            docs.append(self._ref_for(rel))
        return docs

    def resolve(self, document_id: str) -> DocumentRef | None:
        rel = Path(document_id)
        if rel.is_absolute() or ".." in rel.parts:
            return None
        path = self.root / rel
        if not path.is_file():
            return None
        return self._ref_for(rel)

    def read_headings(self, document: DocumentRef) -> Sequence[HeadingInfo] | None:
        path = self.root / document.document_id
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            return None
        return parse_headings(text)


class _VaultEventHandler(FileSystemEventHandler):
    def __init__(self, vault: FileSystemVault, events: ChangeEvents):
        super().__init__()
        self.vault = vault
        self.events = events

    def _doc_id(self, path) -> str | None:
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        doc_id = self.vault.document_id_for(path)
        if doc_id is None or self.vault._is_hidden(Path(doc_id)):
            return None
        return doc_id

    def on_created(self, event: FileSystemEvent) -> None:
        self.on_modified(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        doc_id = self._doc_id(event.src_path)
        if doc_id:
            logger.debug("event.vault.modify path=%s", doc_id)
            self.events.emit(MODIFY, doc_id)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        old_id = self._doc_id(event.src_path)
        new_id = self._doc_id(event.dest_path)
        logger.debug("event.vault.rename oldPath=%s newPath=%s", old_id, new_id)
        if new_id and old_id:
            self.events.emit(RENAME, new_id, old_id)
        elif old_id:
            self.events.emit(DELETE, old_id)
        elif new_id:
            self.events.emit(MODIFY, new_id)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        doc_id = self._doc_id(event.src_path)
        if doc_id:
            logger.debug("event.vault.delete path=%s", doc_id)
            self.events.emit(DELETE, doc_id)


class VaultWatcher:
    """Feeds file-system changes under a vault into a `ChangeEvents` hub."""

    def __init__(self, vault: FileSystemVault, events: ChangeEvents):
        self.handler = _VaultEventHandler(vault, events)
        self.vault = vault
        self._observer: Observer | None = None

    def start(self) -> None:
        if self._observer is not None:
            return
        self._observer = Observer()
        self._observer.schedule(self.handler, str(self.vault.root), recursive=True)
        self._observer.daemon = True
        self._observer.start()

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None

    def __enter__(self) -> "VaultWatcher":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
