"""Code fence scanning for Markdown sources.

Fenced blocks are located with the same grammar the ``fenced_code`` renderer
uses, so a fence the renderer would not treat as code is reported instead of
being rendered as ordinary Markdown.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from markdown.extensions.fenced_code import FencedBlockPreprocessor

from ..errors import MarkupError
from ..models import Document

TAB_LENGTH = 4

# Anything a reader would take for a fence delimiter.
_FENCE_LINE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_BLANK_LINE_RE = re.compile(r"(?<=\n) +\n")


@dataclass(frozen=True)
class FencedBlock:
    """A fenced code block, by its opening and closing line numbers."""

    start: int
    end: int

    def __contains__(self, lineno: int) -> bool:
        return self.start <= lineno <= self.end


def _normalize(text: str) -> str:
    # Mirrors the whitespace normalisation Markdown applies before fences are found.
    text = text.replace("\r\n", "\n").replace("\r", "\n").expandtabs(TAB_LENGTH)
    return _BLANK_LINE_RE.sub("\n", text)


def fenced_blocks(text: str) -> List[FencedBlock]:
    """Return the fenced code blocks the renderer will escape, in document order."""
    source = _normalize(text) + "\n\n"
    blocks: List[FencedBlock] = []
    for match in FencedBlockPreprocessor.FENCED_BLOCK_RE.finditer(source):
        start = source.count("\n", 0, match.start()) + 1
        end = source.count("\n", 0, match.end()) + 1
        blocks.append(FencedBlock(start=start, end=end))
    return blocks


def _code_lines(blocks: List[FencedBlock]) -> Set[int]:
    return {lineno for block in blocks for lineno in range(block.start, block.end + 1)}


def iter_lines(text: str) -> Iterator[tuple[int, str, bool]]:
    """Yield ``(lineno, line, in_code)`` for every line of ``text``.

    Fence delimiter lines themselves are reported as code.
    """
    normalized = _normalize(text)
    code = _code_lines(fenced_blocks(normalized))
    lines = normalized.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for lineno, line in enumerate(lines, start=1):
        yield lineno, line, lineno in code


def stray_fence(text: str) -> Optional[tuple[int, str]]:
    """Return ``(lineno, message)`` for the first fence line outside a code block."""
    lines = list(iter_lines(text))
    for index, (lineno, line, in_code) in enumerate(lines):
        if in_code:
            continue
        match = _FENCE_LINE_RE.match(line)
        if match is None:
            continue
        fence = match.group("fence")
        info = match.group("info").strip()
        if match.group("indent"):
            return lineno, f"code fence {fence!r} must start at the beginning of the line"
        closers = (rest.rstrip() for _, rest, code in lines[index + 1 :] if not code)
        if info and fence in closers:
            return lineno, f"code fence {fence!r} has an unsupported info string {info!r}"
        return lineno, f"code fence {fence!r} opened here is never closed"
    return None


def check_fences(document: Document) -> None:
    """Raise :class:`MarkupError` when ``document`` has a fence that is not a code block."""
    problem = stray_fence(document.text)
    if problem is not None:
        lineno, message = problem
        raise MarkupError(document.rel_path, lineno, message)


def extract_title(text: str) -> Optional[str]:
    """Return the first level-one ATX heading outside code blocks."""
    for _, line, in_code in iter_lines(text):
        if in_code:
            continue
        match = re.match(r"^ {0,3}#\s+(.*?)(?:\s+#+)?\s*$", line)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


__all__ = [
    "FencedBlock",
    "check_fences",
    "extract_title",
    "fenced_blocks",
    "iter_lines",
    "stray_fence",
]
