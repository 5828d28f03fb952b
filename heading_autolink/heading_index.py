from __future__ import annotations

from collections.abc import Mapping
import logging
import threading
from typing import Any, Dict, List, Sequence, Set
from tqdm import tqdm

from .config import Settings
from .interfaces import DocumentRef, HeadingEntry, HeadingInfo, IDocumentStore, IScheduler, ScoredHeading
from .scheduling import Debouncer, ThreadingScheduler
from .scoring import score_candidate, tokenize

logger = logging.getLogger(__name__)

DEFAULT_REINDEX_DELAY = 0.12


def _coerce_heading(raw: Any) -> HeadingInfo | None:
    if isinstance(raw, HeadingInfo):
        text, level = raw.text, raw.level
    elif isinstance(raw, Mapping):
        text = raw.get("heading", raw.get("text"))
        level = raw.get("level", 1)
    elif isinstance(raw, (tuple, list)) and len(raw) == 2:
        text, level = raw
    else:
        return None
    if not isinstance(text, str):
        return None
    try:
        level = max(1, int(level))
    except (TypeError, ValueError):
        level = 1
    return HeadingInfo(text=text, level=level)


def _rank_key(result: ScoredHeading):
    e = result.entry
    return (-result.score, len(e.heading), e.document_name, e.heading)


class HeadingIndex:
    """In-memory heading index over a document store.

    Entries are kept per document and flattened into a single search corpus
    whenever any document's list changes. Change notifications are coalesced
    through a debounced flush so bursts of edits cost one batch of reindexing.
    All mutations and searches are serialized by one lock, so a flush running
    on a timer thread can't expose a half-built corpus to `search`.
    """

    def __init__(
        self,
        store: IDocumentStore,
        scheduler: IScheduler | None = None,
        reindex_delay: float = DEFAULT_REINDEX_DELAY,
    ):
        self.store = store
        self._lock = threading.RLock()
        self._entries_by_id: Dict[str, List[HeadingEntry]] = {}
        self._all_entries: List[HeadingEntry] = []
        self._pending_ids: Set[str] = set()
        self._debouncer = Debouncer(scheduler or ThreadingScheduler(), reindex_delay, self.flush_pending)

    @property
    def entries(self) -> List[HeadingEntry]:
        with self._lock:
            return list(self._all_entries)

    @property
    def document_count(self) -> int:
        with self._lock:
            return len(self._entries_by_id)

    @property
    def pending_ids(self) -> Set[str]:
        with self._lock:
            return set(self._pending_ids)

    @property
    def flush_pending_scheduled(self) -> bool:
        return self._debouncer.pending

    @property
    def reindex_delay(self) -> float:
        return self._debouncer.delay

    @reindex_delay.setter
    def reindex_delay(self, delay: float) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        # takes effect from the next schedule_reindex
        self._debouncer.delay = delay

    def entries_for(self, document_id: str) -> List[HeadingEntry]:
        with self._lock:
            return list(self._entries_by_id.get(document_id, []))

    def initialize(self, show_progress: bool = False) -> None:
        logger.debug("index.initialize")
        self.rebuild_all(show_progress=show_progress)

    def rebuild_all(self, show_progress: bool = False) -> None:
        with self._lock:
            # enumerate before clearing so a failing store leaves the index as it was
            documents = list(self.store.list_documents())
            self._entries_by_id.clear()
            for doc in tqdm(documents, desc="Indexing headings", unit="doc", disable=not show_progress):
                try:
                    self.reindex_document(doc, refresh=False)
                except Exception:
                    logger.exception("Failed to index %s", doc.document_id)
            self._refresh_flat_cache()
            logger.debug("index.rebuildAll files=%d headings=%d", len(self._entries_by_id), len(self._all_entries))

    def reindex_document(self, doc: DocumentRef, refresh: bool = True) -> None:
        raw = self.store.read_headings(doc) or []
        entries: List[HeadingEntry] = []
        for item in raw:
            info = _coerce_heading(item)
            if info is None:
                logger.debug("index.skip_heading doc=%s item=%r", doc.document_id, item)
                continue
            entries.append(
                HeadingEntry(
                    heading=info.text,
                    document_id=doc.document_id,
                    document_name=doc.name,
                    container_path=doc.container_path or "",
                    level=info.level,
                )
            )
        with self._lock:
            self._entries_by_id[doc.document_id] = entries
            if refresh:
                self._refresh_flat_cache()

    def schedule_reindex(self, document_id: str) -> None:
        with self._lock:
            ref = self.store.resolve(document_id)
            if ref is not None and not ref.indexable and document_id not in self._entries_by_id:
                return
            self._pending_ids.add(document_id)
            self._debouncer.trigger()

    def flush_pending(self) -> int:
        """Reindex every pending document now. Returns how many were processed."""
        with self._lock:
            ids = list(self._pending_ids)
            self._pending_ids.clear()
            self._debouncer.cancel()

            for document_id in ids:
                try:
                    ref = self.store.resolve(document_id)
                    if ref is not None and ref.indexable:
                        self.reindex_document(ref, refresh=False)
                    else:
                        self._entries_by_id.pop(document_id, None)
                except Exception:
                    # keep whatever this document had; the rest of the batch still runs
                    logger.exception("Failed to reindex %s", document_id)

            self._refresh_flat_cache()
            logger.debug("index.flushReindex changedFiles=%d headings=%d", len(ids), len(self._all_entries))
            return len(ids)

    def handle_rename(self, document_id: str, old_id: str) -> None:
        with self._lock:
            self._entries_by_id.pop(old_id, None)
            ref = self.store.resolve(document_id)
            if ref is not None and ref.indexable:
                self.schedule_reindex(document_id)
            # old entries must disappear right away, not after the debounce
            self._refresh_flat_cache()

    def handle_removal(self, document_id: str) -> None:
        with self._lock:
            self._entries_by_id.pop(document_id, None)
            self._pending_ids.discard(document_id)
            self._refresh_flat_cache()

    def close(self) -> None:
        with self._lock:
            self._debouncer.cancel()
            self._pending_ids.clear()

    def _refresh_flat_cache(self) -> None:
        self._all_entries = [e for entries in self._entries_by_id.values() for e in entries]

    def search(self, query: str, settings: Settings) -> List[ScoredHeading]:
        normalized = query if settings.case_sensitive else query.lower()
        if len(normalized) < settings.min_chars:
            return []
        tokens = tokenize(normalized)

        with self._lock:
            corpus: Sequence[HeadingEntry] = self._all_entries

            results: List[ScoredHeading] = []
            for entry in corpus:
                candidate = entry.heading if settings.case_sensitive else entry.heading_lower
                scored = score_candidate(
                    candidate,
                    normalized,
                    tokens,
                    settings.enable_fuzzy_matching,
                    settings.min_fuzzy_score,
                )
                if scored is None:
                    continue
                results.append(ScoredHeading(entry=entry, score=scored.score, match_type=scored.match_type))

        results.sort(key=_rank_key)
        limited = results[: max(0, settings.max_suggestions)]
        logger.debug(
            "search query=%r normalized=%r totalHeadings=%d matches=%d returned=%d",
            query, normalized, len(corpus), len(results), len(limited),
        )
        return limited
