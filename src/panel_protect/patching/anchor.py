"""
Anchor-based textual insertion.

Insertion is line oriented: an anchor selects one or more lines of the
artifact and the block is spliced immediately before or after each selected
line. Every original line keeps its content, order and line ending.

Known limitation: the scan is purely textual, so an anchor inside a comment
or a string literal is treated exactly like a live one.
"""

from panel_protect.core.models import Anchor, AnchorPosition, InsertSide


def find_anchor_lines(lines: list[str], anchor: Anchor) -> list[int]:
    """
    Return the zero-based indices of the lines the anchor selects.

    ``LAST`` walks the whole content so that the true last match wins even
    when the pattern also occurs earlier.
    """
    hits = [index for index, line in enumerate(lines) if anchor.matches(line)]
    if not hits:
        return []

    match anchor.position:
        case AnchorPosition.FIRST:
            return [hits[0]]
        case AnchorPosition.LAST:
            return [hits[-1]]
        case _:
            return hits


def _detect_eol(lines: list[str]) -> str:
    for line in lines:
        if line.endswith("\r\n"):
            return "\r\n"
        if line.endswith("\n"):
            return "\n"
    return "\n"


def _block_lines(block: str, eol: str) -> list[str]:
    body = block.rstrip("\r\n")
    return [line.rstrip("\r") + eol for line in body.split("\n")]


def insert(content: str, anchor: Anchor, block: str) -> tuple[str, bool]:
    """
    Splice ``block`` into ``content`` relative to ``anchor``.

    Args:
        content: Current artifact text
        anchor: Pattern, position rule and side
        block: Text to insert; one or more lines

    Returns:
        (new_content, applied). When the anchor is absent the original
        content is returned unchanged with ``applied=False``.
    """
    lines = content.splitlines(keepends=True)
    targets = find_anchor_lines(lines, anchor)
    if not targets:
        return content, False

    eol = _detect_eol(lines)
    inserted = _block_lines(block, eol)

    # Splice from the bottom up so earlier indices stay valid.
    for index in sorted(targets, reverse=True):
        if anchor.side is InsertSide.BEFORE:
            lines[index:index] = inserted
            continue

        anchor_line = lines[index]
        if anchor_line.endswith(("\n", "\r")):
            lines[index + 1:index + 1] = inserted
        else:
            # Unterminated last line: terminate it, keep the file's
            # missing trailing newline by dropping the block's own.
            lines[index] = anchor_line + eol
            tail = list(inserted)
            tail[-1] = tail[-1][: -len(eol)]
            lines[index + 1:index + 1] = tail

    return "".join(lines), True
