from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
import time
from typing import Callable, List

from .config import Settings
from .heading_index import HeadingIndex
from .interfaces import (
    EditorPosition,
    ForeignPopupCheck,
    HeadingEntry,
    IDetector,
    IEditor,
    IPreviewProvider,
    ISearcher,
    ISelector,
    LinkInsertion,
    ScoredHeading,
    SuggestionPreview,
    TriggerInfo,
)
from .phrase import extract_phrase, tail_window

logger = logging.getLogger(__name__)

LINK_OPEN = "[["
LINK_CLOSE = "]]"

_LINK_SPECIAL = re.compile(r"([\\|\[\]])")


def escape_link_part(text: str) -> str:
    return _LINK_SPECIAL.sub(r"\\\1", text)


def build_link(entry: HeadingEntry, insert_alias: bool) -> str:
    """`[[Doc#Heading]]`, or `[[Doc#Heading|Heading]]` with an alias."""
    target = f"{escape_link_part(entry.document_name)}#{escape_link_part(entry.heading)}"
    if not insert_alias:
        return f"{LINK_OPEN}{target}{LINK_CLOSE}"
    return f"{LINK_OPEN}{target}|{escape_link_part(entry.heading)}{LINK_CLOSE}"


class TriggerState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    TRIGGERED = "triggered"
    SELECTING = "selecting"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SuggestContext:
    editor: IEditor
    start: EditorPosition
    end: EditorPosition
    query: str


class HeadingSuggest(IDetector, ISearcher, IPreviewProvider, ISelector):
    def __init__(
        self,
        index: HeadingIndex,
        settings: Settings,
        popup_check: ForeignPopupCheck | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.index = index
        self.settings = settings
        self.popup_check = popup_check or (lambda: False)
        self._clock = clock
        self._manual_until: float | None = None
        self.state = TriggerState.IDLE
        self.context: SuggestContext | None = None
        self.last_skip_reason: str | None = None

    @property
    def manual_trigger_active(self) -> bool:
        return self._manual_until is not None and self._clock() < self._manual_until

    def trigger_manual(self, cursor: EditorPosition, editor: IEditor) -> TriggerInfo | None:
        """Run detection now, ignoring foreign popups for a short window."""
        self._manual_until = self._clock() + self.settings.manual_trigger_window
        return self.on_trigger(cursor, editor)

    def _skip(self, reason: str, **details) -> None:
        logger.debug("trigger.skip reason=%s %s", reason, details or "")
        self.last_skip_reason = reason
        self.context = None
        self.state = TriggerState.IDLE

    def on_trigger(self, cursor: EditorPosition, editor: IEditor) -> TriggerInfo | None:
        settings = self.settings
        self.state = TriggerState.DETECTING
        self.last_skip_reason = None

        if (
            not self.manual_trigger_active
            and settings.suppress_when_other_suggestions_open
            and self.popup_check()
        ):
            self._skip("foreign-suggestion-open")
            return None

        before_cursor = editor.get_line(cursor.line)[: max(0, cursor.ch)]
        if not before_cursor:
            self._skip("empty-before-cursor")
            return None

        if before_cursor.rfind(LINK_OPEN) > before_cursor.rfind(LINK_CLOSE):
            self._skip("inside-wikilink")
            return None

        segment_start, segment = tail_window(before_cursor, settings.max_scan_chars)
        phrase = extract_phrase(segment, settings.max_phrase_words)
        if phrase is None:
            self._skip("no-phrase-match", segment=segment)
            return None

        query = phrase.query
        if len(query.strip()) < settings.min_chars:
            self._skip("below-min-chars", query=query, min_chars=settings.min_chars)
            return None

        start = EditorPosition(cursor.line, segment_start + phrase.start_offset)
        end = EditorPosition(cursor.line, len(before_cursor))
        logger.debug("trigger.hit query=%r start=%s end=%s", query, start, end)
        self.context = SuggestContext(editor=editor, start=start, end=end, query=query)
        self.state = TriggerState.TRIGGERED
        return TriggerInfo(start=start, end=end, query=query)

    def get_suggestions(self, query: str) -> List[ScoredHeading]:
        logger.debug("suggest.get query=%r", query)
        return self.index.search(query, self.settings)

    def render_preview(self, suggestion: ScoredHeading) -> SuggestionPreview:
        entry = suggestion.entry
        folder = entry.container_path if self.settings.include_folder_in_preview and entry.container_path else None
        return SuggestionPreview(
            title=f"{'#' * max(1, entry.level)} {entry.heading}",
            document_name=entry.document_name,
            container_path=folder,
            match_type=suggestion.match_type,
        )

    def select_suggestion(
        self,
        suggestion: ScoredHeading,
        context: SuggestContext | TriggerInfo | None = None,
        editor: IEditor | None = None,
    ) -> LinkInsertion | None:
        """Replace the trigger span with a link to `suggestion`.

        `context` may be the `TriggerInfo` returned by `on_trigger`; its span is
        applied to `editor`, or to the editor the trigger was detected in.
        """
        ctx = context or self.context
        if isinstance(ctx, TriggerInfo):
            target = editor or (self.context.editor if self.context else None)
            if target is None:
                return None
            ctx = SuggestContext(editor=target, start=ctx.start, end=ctx.end, query=ctx.query)
        elif ctx is not None and editor is not None:
            ctx = SuggestContext(editor=editor, start=ctx.start, end=ctx.end, query=ctx.query)
        if ctx is None:
            return None
        self.state = TriggerState.SELECTING

        link = build_link(suggestion.entry, self.settings.insert_alias)
        logger.debug("suggest.select query=%r link=%r file=%s", ctx.query, link, suggestion.entry.document_id)
        new_cursor = EditorPosition(ctx.start.line, ctx.start.ch + len(link))
        ctx.editor.replace_range(link, ctx.start, ctx.end)
        ctx.editor.set_cursor(new_cursor)

        self.context = None
        self.state = TriggerState.IDLE
        return LinkInsertion(replacement_text=link, new_cursor=new_cursor)

    def cancel(self) -> None:
        """Dismiss the current trigger; the next detection starts from scratch."""
        self.context = None
        self.state = TriggerState.CANCELLED
