from dataclasses import replace

import pytest

from heading_autolink.heading_index import HeadingIndex
from heading_autolink.interfaces import HeadingInfo


def test_initialize_flattens_in_document_order(index):
    headings = [e.heading for e in index.entries]
    assert headings == ["Install", "Installation", "Heading Link", "Changelog", "Logging"]
    assert index.document_count == 2
    setup = index.entries_for("guides/Setup.md")[0]
    assert setup.document_name == "Setup"
    assert setup.container_path == "guides"
    assert setup.heading_lower == "install"


def test_exact_heading_ranks_first(index, settings):
    results = index.search("Heading Link", settings)
    assert results[0].entry.heading == "Heading Link"
    assert results[0].score == 1000
    assert results[0].match_type == "exact"


def test_prefix_ordering(index, settings):
    results = index.search("install", settings)
    assert [r.entry.heading for r in results[:2]] == ["Install", "Installation"]
    assert results[0].score > results[1].score


def test_substring_ordering(index, settings):
    results = {r.entry.heading: r for r in index.search("log", settings)}
    assert results["Logging"].score > results["Changelog"].score
    assert results["Changelog"].match_type == "substring"


def test_min_chars_and_limit(index, settings):
    assert index.search("in", settings) == []
    assert len(index.search("in", replace(settings, min_chars=1, max_suggestions=1))) == 1


def test_case_sensitive_search(index, settings):
    cs = replace(settings, case_sensitive=True)
    assert index.search("install", cs) == []
    assert index.search("Install", cs)[0].entry.heading == "Install"


def test_ties_break_on_length_then_document_then_heading(store, scheduler, settings):
    store.put("b/Beta.md", [("Deploy Notes", 1), ("New deploy flow", 2)])
    store.put("a/Alpha.md", [("Deploy Notes", 1), ("Deploy Steps", 1), ("Ops deploy", 2)])
    index = HeadingIndex(store, scheduler=scheduler)
    index.initialize()
    results = index.search("deploy", settings)
    ordered = [(r.entry.document_name, r.entry.heading) for r in results]
    assert ordered == [
        ("Alpha", "Deploy Notes"),
        ("Alpha", "Deploy Steps"),
        ("Beta", "Deploy Notes"),
        # same substring score, shorter heading first
        ("Alpha", "Ops deploy"),
        ("Beta", "New deploy flow"),
    ]


def test_debounce_coalesces_into_one_flush(index, store, scheduler, settings):
    flushes = []
    original = index.flush_pending

    def counting_flush():
        flushes.append(index.pending_ids)
        return original()

    index._debouncer._callback = counting_flush

    store.put("Notes.md", [("Release Process", 1)])
    index.schedule_reindex("Notes.md")
    scheduler.advance(0.1)
    store.put("guides/Setup.md", [("Quickstart", 1)])
    index.schedule_reindex("guides/Setup.md")
    scheduler.advance(0.1)
    store.put("Notes.md", [("Release Checklist", 1)])
    index.schedule_reindex("Notes.md")

    # still within the window of the last call
    scheduler.advance(0.1)
    assert flushes == []
    assert index.search("release checklist", settings) == []

    scheduler.advance(0.05)
    assert flushes == [{"Notes.md", "guides/Setup.md"}]
    assert index.pending_ids == set()
    assert not index.flush_pending_scheduled
    assert [e.heading for e in index.entries] == ["Quickstart", "Release Checklist"]


def test_flush_removes_vanished_documents(index, store, scheduler):
    index.schedule_reindex("Notes.md")
    store.remove("Notes.md")
    scheduler.advance(1)
    assert index.entries_for("Notes.md") == []
    assert all(e.document_id != "Notes.md" for e in index.entries)


def test_flush_removes_documents_that_changed_kind(index, store, scheduler):
    store.put("Notes.md", [("Changelog", 1)], indexable=False)
    index.schedule_reindex("Notes.md")
    scheduler.advance(1)
    assert index.entries_for("Notes.md") == []


def test_schedule_ignores_unindexed_other_kinds(index, store, scheduler):
    store.put("image.png", indexable=False)
    index.schedule_reindex("image.png")
    assert index.pending_ids == set()
    assert scheduler.pending == 0


def test_handle_removal(index, settings):
    index.handle_removal("Notes.md")
    assert all(e.document_id != "Notes.md" for e in index.entries)
    assert index.search("changelog", settings) == []


def test_handle_rename(index, store, scheduler, settings):
    store.rename("Notes.md", "archive/Old Notes.md")
    index.handle_rename("archive/Old Notes.md", "Notes.md")
    assert index.entries_for("Notes.md") == []
    assert index.search("changelog", settings) == []

    scheduler.advance(1)
    result = index.search("changelog", settings)[0]
    assert result.entry.document_id == "archive/Old Notes.md"
    assert result.entry.document_name == "Old Notes"
    assert result.entry.container_path == "archive"


def test_rename_to_other_kind_drops_entries(index, store, scheduler):
    store.remove("Notes.md")
    store.put("Notes.txt", indexable=False)
    index.handle_rename("Notes.txt", "Notes.md")
    assert index.pending_ids == set()
    assert all(e.document_id != "Notes.md" for e in index.entries)


def test_rebuild_all_is_idempotent(index):
    index.rebuild_all()
    first = index.entries
    index.rebuild_all()
    assert index.entries == first


def test_malformed_headings_are_tolerated(store, scheduler):
    store._docs["Broken.md"] = (store.make_ref("Broken.md"), [
        HeadingInfo("Fine", 2),
        {"heading": "From mapping", "level": "3"},
        ("Pair", 0),
        None,
        {"level": 1},
        HeadingInfo("Bad level", "x"),
    ])
    index = HeadingIndex(store, scheduler=scheduler)
    index.initialize()
    entries = index.entries_for("Broken.md")
    assert [(e.heading, e.level) for e in entries] == [
        ("Fine", 2), ("From mapping", 3), ("Pair", 1), ("Bad level", 1),
    ]


def test_missing_heading_list_means_no_headings(store, scheduler):
    class NoCache(type(store)):
        def read_headings(self, document):
            return None

    s = NoCache()
    s.put("A.md", [("Ignored", 1)])
    index = HeadingIndex(s, scheduler=scheduler)
    index.initialize()
    assert index.document_count == 1
    assert index.entries == []


def test_failing_document_does_not_break_batch(index, store, scheduler):
    original = store.read_headings

    def flaky(doc):
        if doc.document_id == "Notes.md":
            raise RuntimeError("boom")
        return original(doc)

    store.read_headings = flaky
    store.put("guides/Setup.md", [("Quickstart", 1)])
    index.schedule_reindex("Notes.md")
    index.schedule_reindex("guides/Setup.md")
    scheduler.advance(1)

    # failed document keeps its previous entries
    assert [e.heading for e in index.entries_for("Notes.md")] == ["Changelog", "Logging"]
    assert [e.heading for e in index.entries_for("guides/Setup.md")] == ["Quickstart"]

    # and scheduling still works afterwards
    store.read_headings = original
    store.put("Notes.md", [("Roadmap", 1)])
    index.schedule_reindex("Notes.md")
    scheduler.advance(1)
    assert [e.heading for e in index.entries_for("Notes.md")] == ["Roadmap"]


def test_close_cancels_pending_flush(index, scheduler):
    index.schedule_reindex("Notes.md")
    index.close()
    assert scheduler.pending == 0
    assert index.pending_ids == set()


def test_failed_enumeration_leaves_index_intact(index, store, settings):
    before = index.entries

    def unavailable():
        raise OSError("vault unavailable")

    store.list_documents = unavailable
    with pytest.raises(OSError):
        index.rebuild_all()
    assert index.document_count == 2
    assert index.entries == before
    assert [r.entry.heading for r in index.search("changelog", settings)] == ["Changelog"]


def test_reindex_delay_can_change(index, scheduler):
    index.reindex_delay = 0.5
    index.schedule_reindex("Notes.md")
    scheduler.advance(0.3)
    assert index.pending_ids == {"Notes.md"}
    scheduler.advance(0.25)
    assert index.pending_ids == set()
