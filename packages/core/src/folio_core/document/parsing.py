from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.token import Token

from folio_core.document.enums import LinearItemType

_TRAILING_BLANK_LINES_RE = re.compile(r"(?:\n[ \t]*)+$")
_WS_RE = re.compile(r"[ \t]+")

_md = MarkdownIt("commonmark")


@dataclass(frozen=True)
class ParsedBlock:
    """What the reindexer needs from the parser for one leaf block."""

    block_type: LinearItemType
    level: int | None
    plain_text: str
    raw_span: tuple[int, int]
    markdown: str


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_markdown_to_blocks(markdown: str) -> list[ParsedBlock]:
    """
    Contract:
    - Line endings are normalized before parsing; spans index the normalized text.
    - Headings, paragraphs, list items, code, thematic breaks and HTML blocks are leaves.
    - Lists and block quotes are flattened: their leaves are emitted in document order.
    - A list item is one leaf; nested lists stay inside its markdown.
    """
    source = normalize_line_endings(markdown)
    tokens = _md.parse(source)
    line_starts = _line_starts(source)

    blocks: list[ParsedBlock] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]

        if tok.type == "heading_open":
            close = _find_close(tokens, i)
            blocks.append(
                _leaf(
                    source,
                    line_starts,
                    tok,
                    LinearItemType.heading,
                    _inline_text(tokens[i + 1 : close]),
                    level=int(tok.tag[1:]),
                )
            )
            i = close + 1
            continue

        if tok.type == "paragraph_open":
            close = _find_close(tokens, i)
            blocks.append(
                _leaf(source, line_starts, tok, LinearItemType.paragraph, _inline_text(tokens[i + 1 : close]))
            )
            i = close + 1
            continue

        if tok.type == "list_item_open":
            close = _find_close(tokens, i)
            blocks.append(
                _leaf(source, line_starts, tok, LinearItemType.list_item, _inline_text(tokens[i + 1 : close]))
            )
            i = close + 1
            continue

        if tok.type in {"fence", "code_block"}:
            blocks.append(_leaf(source, line_starts, tok, LinearItemType.code, tok.content.rstrip("\n")))
        elif tok.type == "hr":
            blocks.append(_leaf(source, line_starts, tok, LinearItemType.thematic_break, ""))
        elif tok.type == "html_block":
            blocks.append(_leaf(source, line_starts, tok, LinearItemType.html, html_to_text(tok.content)))

        # Containers (lists, quotes) and closing tokens fall through: their
        # children are visited in order by the linear scan.
        i += 1

    return blocks


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    return _clean_text(soup.get_text(" ", strip=True))


def _leaf(
    source: str,
    line_starts: Sequence[int],
    tok: Token,
    block_type: LinearItemType,
    plain_text: str,
    *,
    level: int | None = None,
) -> ParsedBlock:
    start_line, end_line = tok.map if tok.map else (0, 0)
    start = line_starts[start_line] if start_line < len(line_starts) else len(source)
    end = line_starts[end_line] if end_line < len(line_starts) else len(source)
    raw = _TRAILING_BLANK_LINES_RE.sub("", source[start:end].rstrip("\n"))
    return ParsedBlock(
        block_type=block_type,
        level=level,
        plain_text=plain_text,
        raw_span=(start, start + len(raw)),
        markdown=raw,
    )


def _find_close(tokens: Sequence[Token], open_idx: int) -> int:
    opener = tokens[open_idx]
    close_type = opener.type[: -len("_open")] + "_close"
    for j in range(open_idx + 1, len(tokens)):
        if tokens[j].type == close_type and tokens[j].level == opener.level:
            return j
    return len(tokens) - 1


def _inline_text(tokens: Sequence[Token]) -> str:
    parts: list[str] = []
    for tok in tokens:
        if tok.type != "inline":
            continue
        text = _render_inline(tok.children or [])
        if text:
            parts.append(text)
    return "\n".join(parts)


def _render_inline(children: Sequence[Token]) -> str:
    out: list[str] = []
    for child in children:
        if child.type in {"text", "code_inline"}:
            out.append(child.content)
        elif child.type in {"softbreak", "hardbreak"}:
            out.append("\n")
        elif child.type == "image":
            out.append(_render_inline(child.children or []))
    return "".join(out).strip()


def _line_starts(source: str) -> list[int]:
    starts = [0]
    for idx, ch in enumerate(source):
        if ch == "\n":
            starts.append(idx + 1)
    return starts


def _clean_text(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()
