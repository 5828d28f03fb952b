from __future__ import annotations

import argparse
import logging
import sys
from .app import HeadingAutolink
from .config import SETTINGS, load_settings, merge_settings
from .editor import TextBuffer
from .events import ChangeEvents
from .messages import format_previews, no_suggestions_response, skip_hint
from .scheduling import ThreadingScheduler
from .vault import FileSystemVault, VaultWatcher


def link_line(app: HeadingAutolink, line: str, choose=None) -> str | None:
    """Detect the phrase at the end of `line`, let `choose` pick a suggestion, return the new line."""
    buffer = TextBuffer(line)
    trigger = app.trigger_manual(buffer.cursor, buffer)
    if trigger is None:
        print(skip_hint(app.suggest.last_skip_reason))
        return None

    suggestions = app.suggest.get_suggestions(trigger.query)
    if not suggestions:
        print(no_suggestions_response(trigger.query, app.settings.enable_fuzzy_matching))
        return None

    print(format_previews([app.suggest.render_preview(s) for s in suggestions]))
    idx = choose(len(suggestions)) if choose else 0
    if idx is None:
        app.suggest.cancel()
        return None
    app.suggest.select_suggestion(suggestions[idx])
    return buffer.text


def _ask_choice(n: int) -> int | None:
    raw = input("Pick #> ").strip()
    if not raw:
        return None
    try:
        choice = int(raw)
    except ValueError:
        return None
    return choice - 1 if 1 <= choice <= n else None


def main():
    parser = argparse.ArgumentParser(description="Suggest [[links]] to Markdown headings while you type")
    parser.add_argument("--vault", required=True, help="Directory of Markdown notes")
    parser.add_argument("--settings", default=None, help="JSON settings file to load (missing file means defaults)")
    parser.add_argument("--watch", action="store_true", help="Keep the index fresh while files change")
    parser.add_argument("--debug", action="store_true", help="Log index and trigger diagnostics")
    parser.add_argument("--once", default=None, help="Link the phrase at the end of TEXT and exit")
    args = parser.parse_args()

    settings = load_settings(args.settings) if args.settings else SETTINGS
    if args.debug:
        settings = merge_settings(settings, {"debug_logging": True})
    logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])

    vault = FileSystemVault(args.vault)
    events = ChangeEvents()
    app = HeadingAutolink(vault, events, scheduler=ThreadingScheduler(), settings=settings, settings_path=args.settings)
    app.load(show_progress=args.once is None)
    watcher = VaultWatcher(vault, events) if args.watch else None
    if watcher:
        watcher.start()

    try:
        if args.once is not None:
            result = link_line(app, args.once)
            if result is not None:
                print(result)
            return

        print(f"Indexed {len(app.index.entries)} headings in {app.index.document_count} notes.")
        print("Type text; the phrase before the end of the line is matched (Ctrl+C to exit):")
        while True:
            line = input("\n> ")
            if not line.strip():
                continue
            result = link_line(app, line, choose=_ask_choice)
            if result is not None:
                print(f"\n{result}")
    except (KeyboardInterrupt, EOFError):
        print("\nBye")
    finally:
        if watcher:
            watcher.stop()
        app.unload()


if __name__ == "__main__":
    main()
