"""Recover readable text from ZICNOTEDATA.ZDATA blobs.

The blob is an undocumented, usually gzipped protobuf. We do not parse it.
Plain UTF-8 payloads are returned as-is; anything else goes through a
heuristic that picks the most prose-like run of characters.
"""

import gzip
import unicodedata
import zlib

from notes_export.errors import DecodeError

GZIP_MAGIC = b"\x1f\x8b"

# Characters examined when deciding whether a string is human text.
SAMPLE_CHARS = 2048

# Blocks scoring at or below this are rejected.
MIN_BLOCK_SCORE = 20

WHITESPACE_CAP = 200

_ALLOWED_CONTROLS = frozenset("\n\r\t")


def _is_weird(ch: str) -> bool:
    return ch not in _ALLOWED_CONTROLS and unicodedata.category(ch) == "Cc"


def decode_note_text(data: bytes) -> str:
    """Return the best-effort plain text of a note blob.

    Raises:
        DecodeError: gzip decompression failed, or no block looked like text.
    """
    if data.startswith(GZIP_MAGIC):
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            msg = "gunzip note blob"
            raise DecodeError(msg) from e

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    else:
        text = text.strip("\0").strip()
        if looks_like_human_text(text):
            return normalize_text(text)

    best = best_effort_extract_text(data)
    if not best.strip():
        msg = "could not extract text from note blob"
        raise DecodeError(msg)
    return best


def looks_like_human_text(text: str) -> bool:
    """Whether control characters are rare enough for `text` to be prose."""
    if not text:
        return False
    printable = 0
    weird = 0
    for ch in text[:SAMPLE_CHARS]:
        if _is_weird(ch):
            weird += 1
        else:
            printable += 1
    return printable > 0 and weird * 20 < printable


def normalize_text(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_blocks(text: str) -> list[str]:
    """Split on control characters and U+FFFD, dropping blank runs."""
    blocks: list[str] = []
    current: list[str] = []
    for ch in text:
        if ch == "\ufffd" or _is_weird(ch):
            block = "".join(current).strip()
            if block:
                blocks.append(block)
            current = []
            continue
        current.append(ch)
    block = "".join(current).strip()
    if block:
        blocks.append(block)
    return blocks


def score_block(block: str) -> int:
    """Score how much a run looks like prose: dense alphanumerics plus some whitespace."""
    alnum = sum(1 for ch in block if ch.isalnum())
    whitespace = sum(1 for ch in block if ch.isspace())
    dense = max(0, alnum - len(block) // 4)
    return dense + min(whitespace, WHITESPACE_CAP)


def best_effort_extract_text(data: bytes) -> str:
    """Return the highest-scoring block of the lossily decoded blob, or "" if none qualifies."""
    blocks = split_blocks(data.decode("utf-8", errors="replace"))
    if not blocks:
        return ""
    # max() keeps the earliest block on ties.
    best = max(blocks, key=score_block)
    if score_block(best) <= MIN_BLOCK_SCORE:
        return ""
    return normalize_text(best)
