from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Callable, Iterable, Sequence, Literal, Any

MatchType = Literal["exact", "prefix", "substring", "token", "fuzzy"]


@dataclass(frozen=True)
class HeadingInfo:
    text: str
    level: int  # 1 = top level


@dataclass(frozen=True)
class DocumentRef:
    document_id: str  # path-like, stable
    name: str
    container_path: str = ""
    indexable: bool = True


@dataclass(frozen=True)
class HeadingEntry:
    heading: str
    document_id: str
    document_name: str
    container_path: str
    level: int
    heading_lower: str = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "heading_lower", self.heading.lower())


@dataclass(frozen=True)
class ScoredHeading:
    entry: HeadingEntry
    score: int
    match_type: MatchType


@dataclass(frozen=True)
class EditorPosition:
    line: int
    ch: int


@dataclass(frozen=True)
class TriggerInfo:
    start: EditorPosition
    end: EditorPosition
    query: str


@dataclass(frozen=True)
class SuggestionPreview:
    title: str  # heading text with depth marker, e.g. "## Setup"
    document_name: str
    container_path: str | None
    match_type: MatchType

    @property
    def subtitle(self) -> str:
        parts = [self.document_name]
        if self.container_path:
            parts.append(self.container_path)
        parts.append(self.match_type)
        return "  •  ".join(parts)


@dataclass(frozen=True)
class LinkInsertion:
    replacement_text: str
    new_cursor: EditorPosition


ForeignPopupCheck = Callable[[], bool]


class IDocumentStore(Protocol):
    def list_documents(self) -> Iterable[DocumentRef]:
        """Every indexable document currently in the collection."""
        ...

    def resolve(self, document_id: str) -> DocumentRef | None:
        ...

    def read_headings(self, document: DocumentRef) -> Sequence[Any] | None:
        """Parsed heading list of a document, or None when the host has none cached.

        Items are normally HeadingInfo; mappings with "heading"/"text" and "level"
        keys and (text, level) pairs are accepted too.
        """
        ...


class IEditor(Protocol):
    def get_line(self, line: int) -> str:
        ...

    def replace_range(self, text: str, start: EditorPosition, end: EditorPosition) -> None:
        ...

    def set_cursor(self, pos: EditorPosition) -> None:
        ...


class ICancellable(Protocol):
    def cancel(self) -> None:
        ...


class IScheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ICancellable:
        ...


class IDetector(Protocol):
    def on_trigger(self, cursor: EditorPosition, editor: IEditor) -> TriggerInfo | None:
        ...


class ISearcher(Protocol):
    def get_suggestions(self, query: str) -> list[ScoredHeading]:
        ...


class IPreviewProvider(Protocol):
    def render_preview(self, suggestion: ScoredHeading) -> SuggestionPreview:
        ...


class ISelector(Protocol):
    def select_suggestion(
        self, suggestion: ScoredHeading, context: Any = None, editor: IEditor | None = None
    ) -> LinkInsertion | None:
        ...
