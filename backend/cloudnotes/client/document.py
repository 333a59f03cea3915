"""Structured rich-text model for note content.

A :class:`Document` is an ordered list of :class:`Run` objects. A run is either
text carrying its own format flags or an inline image. Formatting is changed
through explicit range commands (``apply_bold(0, 5)``), never through a
"current selection" somewhere else. The stored note ``content`` stays an
opaque string; this model reads and writes the HTML subset the editor uses.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

FORMATS = ("bold", "italic", "underline", "strikethrough")

# outermost first when serializing
_FORMAT_TAGS = {"bold": "strong", "italic": "em", "underline": "u", "strikethrough": "s"}
_TAG_FORMATS = {
    "b": "bold",
    "strong": "bold",
    "i": "italic",
    "em": "italic",
    "u": "underline",
    "s": "strikethrough",
    "strike": "strikethrough",
    "del": "strikethrough",
}
_BLOCK_TAGS = {"p", "div", "li", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote"}
_SKIP_TAGS = {"script", "style", "button"}

OBJECT_CHAR = "\ufffc"


@dataclass(frozen=True)
class Run:
    text: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    image: Optional[str] = None

    @classmethod
    def image_run(cls, url: str) -> "Run":
        return cls(text=OBJECT_CHAR, image=url)

    @property
    def formats(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in FORMATS}

    def same_style(self, other: "Run") -> bool:
        return self.image is None and other.image is None and self.formats == other.formats


def _normalize(runs: Iterable[Run]) -> list[Run]:
    out: list[Run] = []
    for run in runs:
        if not run.text:
            continue
        if out and out[-1].same_style(run):
            out[-1] = replace(out[-1], text=out[-1].text + run.text)
        else:
            out.append(run)
    return out


class Document:
    def __init__(self, runs: Iterable[Run] = ()):
        self.runs: list[Run] = _normalize(runs)

    def __len__(self) -> int:
        return sum(len(r.text) for r in self.runs)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Document) and self.runs == other.runs

    @property
    def text(self) -> str:
        return "".join(r.text for r in self.runs)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def insert_text(self, pos: int, text: str, **formats: bool) -> None:
        """Insert text at `pos`; unspecified formats follow the preceding character."""
        self._check_range(pos, pos)
        _check_formats(formats)
        base = self.formats_at(pos - 1) if pos > 0 else {}
        base.update(formats)
        i = self._split(pos)
        self.runs.insert(i, Run(text=text, **base))
        self.runs = _normalize(self.runs)

    def insert_image(self, pos: int, url: str) -> None:
        self._check_range(pos, pos)
        i = self._split(pos)
        self.runs.insert(i, Run.image_run(url))
        self.runs = _normalize(self.runs)

    def delete_range(self, start: int, end: int) -> None:
        self._check_range(start, end)
        i = self._split(start)
        j = self._split(end)
        del self.runs[i:j]
        self.runs = _normalize(self.runs)

    def apply_format(self, start: int, end: int, name: str, value: bool = True) -> None:
        self._check_range(start, end)
        _check_formats({name: value})
        i = self._split(start)
        j = self._split(end)
        for k in range(i, j):
            if self.runs[k].image is None:
                self.runs[k] = replace(self.runs[k], **{name: value})
        self.runs = _normalize(self.runs)

    def toggle_format(self, start: int, end: int, name: str) -> None:
        """Set `name` on the range unless every text run in it already has it."""
        self._check_range(start, end)
        covered = [r for r in self._slice(start, end) if r.image is None]
        already = bool(covered) and all(getattr(r, name) for r in covered)
        self.apply_format(start, end, name, not already)

    def apply_bold(self, start: int, end: int) -> None:
        self.apply_format(start, end, "bold")

    def apply_italic(self, start: int, end: int) -> None:
        self.apply_format(start, end, "italic")

    def apply_underline(self, start: int, end: int) -> None:
        self.apply_format(start, end, "underline")

    def apply_strikethrough(self, start: int, end: int) -> None:
        self.apply_format(start, end, "strikethrough")

    def formats_at(self, pos: int) -> dict[str, bool]:
        offset = 0
        for run in self.runs:
            if offset <= pos < offset + len(run.text):
                return {} if run.image is not None else run.formats
            offset += len(run.text)
        return {}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_html(self) -> str:
        parts: list[str] = []
        for run in self.runs:
            if run.image is not None:
                parts.append(f'<img src="{html.escape(run.image, quote=True)}">')
                continue
            chunk = html.escape(run.text, quote=False).replace("\n", "<br>")
            for name in reversed(FORMATS):
                if getattr(run, name):
                    tag = _FORMAT_TAGS[name]
                    chunk = f"<{tag}>{chunk}</{tag}>"
            parts.append(chunk)
        return "".join(parts)

    @classmethod
    def from_html(cls, markup: str) -> "Document":
        runs: list[Run] = []
        if markup:
            _walk(BeautifulSoup(markup, "html.parser"), {}, runs)
        return cls(runs)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_range(self, start: int, end: int) -> None:
        if not 0 <= start <= end <= len(self):
            raise IndexError(f"Range {start}:{end} outside document of length {len(self)}")

    def _split(self, pos: int) -> int:
        """Make a run boundary at `pos`; return the index of the run starting there."""
        offset = 0
        for i, run in enumerate(self.runs):
            end = offset + len(run.text)
            if pos == offset:
                return i
            if pos < end:
                cut = pos - offset
                self.runs[i : i + 1] = [replace(run, text=run.text[:cut]), replace(run, text=run.text[cut:])]
                return i + 1
            offset = end
        return len(self.runs)

    def _slice(self, start: int, end: int) -> list[Run]:
        copy = Document()
        copy.runs = list(self.runs)
        i = copy._split(start)
        j = copy._split(end)
        return copy.runs[i:j]


def _check_formats(formats: dict[str, bool]) -> None:
    unknown = set(formats) - set(FORMATS)
    if unknown:
        raise ValueError(f"Unknown format(s): {', '.join(sorted(unknown))}")


def _walk(node: Tag, fmt: dict[str, bool], runs: list[Run]) -> None:
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            runs.append(Run(text=str(child), **fmt))
            continue
        if not isinstance(child, Tag):
            continue
        name = child.name.lower()
        if name in _SKIP_TAGS:
            continue
        if name == "br":
            runs.append(Run(text="\n", **fmt))
            continue
        if name == "img":
            if child.get("src"):
                runs.append(Run.image_run(child["src"]))
            continue
        if name in _BLOCK_TAGS and runs and not runs[-1].text.endswith("\n"):
            runs.append(Run(text="\n", **fmt))
        inner = dict(fmt)
        if name in _TAG_FORMATS:
            inner[_TAG_FORMATS[name]] = True
        _walk(child, inner, runs)


def plain_text(markup: str) -> str:
    """Text content of stored markup, tags dropped (like the DOM's textContent)."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(list(_SKIP_TAGS)):
        tag.decompose()
    return soup.get_text()


def preview(markup: str, limit: int = 80) -> str:
    text = plain_text(markup)
    return text[:limit] + "..." if len(text) > limit else text


def word_count(markup: str) -> int:
    return len(plain_text(markup).split())
