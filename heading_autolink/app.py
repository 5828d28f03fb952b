from __future__ import annotations

import logging
import os
from typing import Any

from .config import SETTINGS, Settings, merge_settings, save_settings
from .events import DELETE, MODIFY, RENAME, RESOLVED, ChangeEvents, SubscriptionGroup
from .heading_index import HeadingIndex
from .interfaces import EditorPosition, ForeignPopupCheck, IDocumentStore, IEditor, IScheduler, TriggerInfo
from .suggest import HeadingSuggest

PACKAGE_LOGGER = "heading_autolink"

logger = logging.getLogger(__name__)


def apply_log_level(settings: Settings) -> None:
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if settings.debug_logging else logging.WARNING)


class HeadingAutolink:
    """Wires the heading index and the suggestion controller to a host.

    `load()` builds the index and subscribes to the host's change events;
    `unload()` releases every subscription and drops any pending reindex.
    """

    def __init__(
        self,
        store: IDocumentStore,
        events: ChangeEvents,
        scheduler: IScheduler | None = None,
        settings: Settings = SETTINGS,
        popup_check: ForeignPopupCheck | None = None,
        settings_path: str | os.PathLike | None = None,
    ):
        self.store = store
        self.events = events
        self.settings = settings
        self.settings_path = settings_path
        self.index = HeadingIndex(store, scheduler=scheduler, reindex_delay=settings.reindex_delay)
        self.suggest = HeadingSuggest(self.index, settings, popup_check=popup_check)
        self._subscriptions = SubscriptionGroup()
        self.loaded = False

    def load(self, show_progress: bool = False) -> None:
        apply_log_level(self.settings)
        logger.debug("plugin.onload")
        self.index.initialize(show_progress=show_progress)

        subs = self._subscriptions
        subs.add(self.events.on(MODIFY, self._on_modify))
        subs.add(self.events.on(RENAME, self._on_rename))
        subs.add(self.events.on(DELETE, self._on_delete))
        subs.add(self.events.on(RESOLVED, self._on_resolved))
        self.loaded = True

    def unload(self) -> None:
        logger.debug("plugin.onunload")
        self._subscriptions.close()
        self.index.close()
        self.loaded = False

    def __enter__(self) -> "HeadingAutolink":
        self.load()
        return self

    def __exit__(self, *exc) -> None:
        self.unload()

    def _on_modify(self, document_id: str) -> None:
        logger.debug("event.modify path=%s", document_id)
        self.index.schedule_reindex(document_id)

    def _on_rename(self, document_id: str, old_id: str) -> None:
        logger.debug("event.rename oldPath=%s newPath=%s", old_id, document_id)
        self.index.handle_rename(document_id, old_id)

    def _on_delete(self, document_id: str) -> None:
        logger.debug("event.delete path=%s", document_id)
        self.index.handle_removal(document_id)

    def _on_resolved(self) -> None:
        logger.debug("event.resolved")
        self.index.rebuild_all()

    def trigger_manual(self, cursor: EditorPosition, editor: IEditor) -> TriggerInfo | None:
        return self.suggest.trigger_manual(cursor, editor)

    def update_settings(self, **changes: Any) -> Settings:
        self.settings = merge_settings(self.settings, changes)
        self.suggest.settings = self.settings
        self.index.reindex_delay = self.settings.reindex_delay
        apply_log_level(self.settings)
        if self.settings_path is not None:
            save_settings(self.settings, self.settings_path)
        return self.settings
