from __future__ import annotations

from typing import List

from .interfaces import EditorPosition, IEditor


class TextBuffer(IEditor):
    """Plain-text editor surface addressed by (line, ch) positions."""

    def __init__(self, text: str = ""):
        self.lines: List[str] = text.split("\n")
        self.cursor = EditorPosition(len(self.lines) - 1, len(self.lines[-1]))

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def get_line(self, line: int) -> str:
        if 0 <= line < len(self.lines):
            return self.lines[line]
        return ""

    def _offset(self, pos: EditorPosition) -> int:
        line = max(0, min(pos.line, len(self.lines) - 1))
        ch = max(0, min(pos.ch, len(self.lines[line])))
        return sum(len(l) + 1 for l in self.lines[:line]) + ch

    def replace_range(self, text: str, start: EditorPosition, end: EditorPosition) -> None:
        a, b = self._offset(start), self._offset(end)
        if b < a:
            a, b = b, a
        full = self.text
        self.lines = (full[:a] + text + full[b:]).split("\n")

    def set_cursor(self, pos: EditorPosition) -> None:
        self.cursor = pos
