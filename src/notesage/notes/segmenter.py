"""Heading-based markdown segmentation for the notes index.

Splits a markdown document into sections at every heading. Each section
carries the heading lines of its ancestors so it still makes sense when
retrieved on its own.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from markdown_it import MarkdownIt
from markdown_it.token import Token
from slugify import slugify

from notesage.errors import SegmentationError
from notesage.notes.schema import Block, BlockKind, RawSection

# MDX statements and expressions that only make sense to a JSX runtime
_MDX_LINE = re.compile(
    r"""^\s*(
        import\s+(?:.+\s+from\s+)?['"][^'"]+['"];?
      | export\s+(?:default|const|let|var|function|class|async|\{)\b.*
      | \{.*\}
    )\s*$""",
    re.VERBOSE,
)

_CODE_TYPES = {"fence", "code_block"}

_parser = MarkdownIt("commonmark").enable("table")


def segment(raw_text: str) -> list[RawSection]:
    """Split markdown text into heading-contextualised sections.

    Runs start at each heading. A run made of a heading alone is not
    emitted, but its heading still becomes an ancestor of deeper runs.
    Content before the first heading forms its own leading run.

    Raises:
        SegmentationError: if the text cannot be parsed.
    """
    blocks = [b for b in parse_blocks(raw_text) if b.kind is not BlockKind.EMBEDDED]

    ancestors: list[Block] = []
    sections: list[RawSection] = []

    for run in split_runs(blocks):
        lead = run[0]
        depth = lead.depth if lead.is_heading else 0

        # Sibling or shallower heading: drop ancestors it is not nested in
        if ancestors and depth <= ancestors[-1].depth:
            _pop_ancestors(ancestors, depth)

        if lead.is_heading and len(run) == 1:
            ancestors.append(lead)
            continue

        parts = [_heading_line(a) for a in ancestors]
        parts.extend(block.markdown for block in run)

        heading = lead.text if lead.is_heading else None
        sections.append(RawSection(
            content="\n\n".join(parts).strip(),
            heading=heading,
            slug=(slugify(heading) or None) if heading else None,
            breadcrumb=tuple(a.text for a in ancestors),
        ))

        if lead.is_heading:
            ancestors.append(lead)

    return sections


def parse_blocks(raw_text: str) -> list[Block]:
    """Parse markdown into its top-level blocks, in document order."""
    if not isinstance(raw_text, str):
        raise SegmentationError(f"Expected markdown text, got {type(raw_text).__name__}")

    text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    try:
        tokens = _parser.parse(text)
    except Exception as e:
        raise SegmentationError(f"Could not parse markdown: {e}") from e

    lines = text.split("\n")
    blocks: list[Block] = []

    for i, token in enumerate(tokens):
        if token.level != 0 or token.nesting == -1 or token.map is None:
            continue
        start, end = token.map
        source = "\n".join(lines[start:end]).rstrip()
        blocks.append(_make_block(token, tokens[i + 1] if i + 1 < len(tokens) else None, source))

    return blocks


def split_runs(blocks: Iterable[Block]) -> list[list[Block]]:
    """Group blocks into runs, each heading starting a new run."""
    runs: list[list[Block]] = []
    for block in blocks:
        if not runs or block.is_heading:
            runs.append([block])
        else:
            runs[-1].append(block)
    return runs


def _make_block(token: Token, following: Token | None, source: str) -> Block:
    if token.type == "heading_open":
        text = following.content.strip() if following is not None and following.type == "inline" else ""
        return Block(kind=BlockKind.HEADING, markdown=source, depth=int(token.tag[1:]), text=text)
    if token.type in _CODE_TYPES:
        return Block(kind=BlockKind.CODE, markdown=source)
    if token.type == "html_block":
        return Block(kind=BlockKind.EMBEDDED, markdown=source)
    if token.type == "paragraph_open":
        if source and all(_MDX_LINE.match(line) for line in source.splitlines() if line.strip()):
            return Block(kind=BlockKind.EMBEDDED, markdown=source)
        return Block(kind=BlockKind.PARAGRAPH, markdown=source)
    return Block(kind=BlockKind.OTHER, markdown=source)


def _pop_ancestors(ancestors: list[Block], depth: int) -> None:
    """Remove ancestors at the given depth or deeper."""
    while ancestors and ancestors[-1].depth >= depth:
        ancestors.pop()


def _heading_line(block: Block) -> str:
    return f"{'#' * block.depth} {block.text}"
