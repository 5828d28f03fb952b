from __future__ import annotations

from typing import List

from .interfaces import SuggestionPreview

NO_TRIGGER = "Nothing to match before the cursor."

_SKIP_HINTS = {
	"empty-before-cursor": "Type a few words first.",
	"inside-wikilink": "The cursor is inside an open [[link]]; close it before asking for suggestions.",
	"no-phrase-match": "No words found at the end of the line.",
	"below-min-chars": "Keep typing; the phrase is still shorter than the minimum length.",
	"foreign-suggestion-open": "Another suggestion list is open.",
}


def no_suggestions_response(query: str, fuzzy_enabled: bool) -> str:
	"""Reply shown when a phrase was detected but no heading matched it."""
	hint = "" if fuzzy_enabled else " Fuzzy matching is off; enabling it finds headings from abbreviations."
	words = query.split()
	if len(words) > 1:
		return f"No heading matches “{query}”. Try fewer words, e.g. “{words[-1]}”.{hint}"
	return f"No heading matches “{query}”.{hint}"


def skip_hint(reason: str | None) -> str:
	return _SKIP_HINTS.get(reason or "", NO_TRIGGER)


def format_previews(previews: List[SuggestionPreview]) -> str:
	lines = []
	for i, p in enumerate(previews, start=1):
		lines.append(f"{i:>2}. {p.title}")
		lines.append(f"    {p.subtitle}")
	return "\n".join(lines)
