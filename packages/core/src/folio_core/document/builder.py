"""Turning parser output and caller drafts into blocks, and blocks into documents."""

from __future__ import annotations

from typing import Sequence

from folio_core.document.enums import LinearItemType
from folio_core.document.models import PARAGRAPH_SEPARATOR, Block, ItemDraft, LinearDocument
from folio_core.document.parsing import ParsedBlock, normalize_line_endings, parse_markdown_to_blocks
from folio_core.document.reindex import reindex
from folio_core.identity import new_document_id


def compose_markdown(blocks: Sequence[Block]) -> str:
    return PARAGRAPH_SEPARATOR.join(block.markdown for block in blocks)


def block_from_parsed(parsed: ParsedBlock, pointer_id: int) -> Block:
    return Block(
        pointer_id=pointer_id,
        type=parsed.block_type,
        markdown=parsed.markdown,
        text=parsed.plain_text,
        level=parsed.level,
    )


def block_from_draft(draft: ItemDraft, pointer_id: int) -> Block:
    """
    Build a block from caller content, inferring what the caller left out.

    A draft is always exactly one item, even when its markdown would parse to
    several blocks; type and level come from the first parsed block.
    """
    markdown = normalize_line_endings(draft.markdown).strip("\n")
    parsed = parse_markdown_to_blocks(markdown)
    first = parsed[0] if parsed else None

    block_type = draft.type or (first.block_type if first else LinearItemType.paragraph)

    level: int | None = None
    if block_type == LinearItemType.heading:
        level = draft.level or (first.level if first and first.level else 1)

    if draft.text is not None:
        text = draft.text
    elif parsed:
        text = PARAGRAPH_SEPARATOR.join(p.plain_text for p in parsed if p.plain_text)
    else:
        text = markdown.strip()

    return Block(pointer_id=pointer_id, type=block_type, markdown=markdown, text=text, level=level)


def build_document(
    blocks: Sequence[Block],
    *,
    document_id: str,
    next_pointer_id: int,
    generation: int = 0,
) -> LinearDocument:
    """The only constructor used after load or edit: items and source text are always rederived."""
    frozen = tuple(blocks)
    return LinearDocument(
        id=document_id,
        source_text=compose_markdown(frozen),
        items=reindex(frozen),
        blocks=frozen,
        next_pointer_id=next_pointer_id,
        generation=generation,
    )


def load_markdown(markdown: str, document_id: str | None = None) -> LinearDocument:
    parsed = parse_markdown_to_blocks(markdown)
    blocks = [block_from_parsed(p, pointer_id) for pointer_id, p in enumerate(parsed, start=1)]
    return build_document(
        blocks,
        document_id=document_id or new_document_id(),
        next_pointer_id=len(blocks) + 1,
    )
