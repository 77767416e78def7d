from __future__ import annotations

from .post import SourceItem


def select_caption(item: SourceItem) -> str:
    """Top-level title when present, otherwise the first media item's title."""
    if item.title:
        return item.title
    if item.media:
        return item.media[0].title or ""
    return ""


def fix_text_encoding(text: str) -> str:
    """
    Undo the Latin-1 mojibake Instagram writes into its JSON exports.

    The export stores UTF-8 bytes as if each byte were a Latin-1 code point, so the
    bytes are recovered with a Latin-1 encode and read back as UTF-8. Text that
    already holds code points above U+00FF was not mangled and is returned as is.
    """
    if not text:
        return ""

    try:
        raw = text.encode("latin-1")
    except UnicodeEncodeError:
        return text

    return raw.decode("utf-8", errors="replace")


def normalized_caption(item: SourceItem) -> str:
    return fix_text_encoding(select_caption(item))
