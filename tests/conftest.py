import pytest

from heading_autolink.config import Settings
from heading_autolink.heading_index import HeadingIndex
from heading_autolink.scheduling import ManualScheduler
from heading_autolink.vault import InMemoryDocumentStore


@pytest.fixture
def settings():
    # explicit values so AUTOLINK_* variables in the environment can't leak in
    return Settings(
        min_chars=3,
        enable_fuzzy_matching=True,
        min_fuzzy_score=18,
        case_sensitive=False,
        insert_alias=True,
        include_folder_in_preview=True,
        max_phrase_words=6,
        max_suggestions=20,
        debug_logging=False,
        suppress_when_other_suggestions_open=True,
        reindex_delay=0.12,
    )


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def store():
    s = InMemoryDocumentStore()
    s.put("guides/Setup.md", [("Install", 1), ("Installation", 2), ("Heading Link", 2)])
    s.put("Notes.md", [("Changelog", 1), ("Logging", 2)])
    return s


@pytest.fixture
def index(store, scheduler):
    idx = HeadingIndex(store, scheduler=scheduler, reindex_delay=0.12)
    idx.initialize()
    return idx
