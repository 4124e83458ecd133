"""
Overlapping fixed-size token windows with character offsets into the original text.

Chunk text is the space-joined normalized tokens. The offsets point into the
original content: an exact search of the chunk text in the lowercased content
is tried first, and when punctuation or other normalization drift prevents a
verbatim hit the offsets are estimated from the token positions instead.
"""

from typing import List, Optional, Sequence, Tuple

from thesis_check.config import CHUNK_OVERLAP, CHUNK_SIZE, MIN_TOKENS
from thesis_check.errors import InsufficientContent, OffsetResolutionFailure
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import Chunk
from thesis_check.utils.text_utils import lower_preserving_offsets, tokenize

logger = get_logger("chunker")


def _stride(chunk_size: int, overlap: int) -> int:
    if chunk_size <= 0 or overlap < 0:
        raise ValueError(f"Invalid chunk size {chunk_size} / overlap {overlap}")
    stride = chunk_size - overlap
    if stride <= 0:
        raise ValueError(f"Overlap ({overlap}) must be smaller than chunk size ({chunk_size})")
    return stride


def _locate_tokens(lowered: str, tokens: Sequence[str]) -> List[Tuple[int, int]]:
    """Sequential scan giving each token's (start, end) in the lowered text.

    Tokens that cannot be found get a position proportional to their index.
    """
    spans: List[Tuple[int, int]] = []
    cursor = 0
    total = len(tokens) or 1
    for idx, tok in enumerate(tokens):
        pos = lowered.find(tok, cursor)
        if pos < 0:
            est = min(len(lowered), max(cursor, round(idx / total * len(lowered))))
            spans.append((est, min(len(lowered), est + len(tok))))
            continue
        spans.append((pos, pos + len(tok)))
        cursor = pos + len(tok)
    return spans


def _estimate_offsets(
    spans: List[Tuple[int, int]], first: int, last: int, text_len: int
) -> Tuple[int, int]:
    start = min(spans[first][0], text_len)
    end = min(max(spans[last][1], start), text_len)
    return start, end


def chunk_tokens(
    tokens: Sequence[str],
    text: str,
    source_doc_id: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    min_tokens: Optional[int] = MIN_TOKENS,
) -> List[Chunk]:
    """Split a normalized token stream into overlapping chunks.

    Raises InsufficientContent when there are fewer than `min_tokens` tokens
    (pass None to disable the minimum, e.g. for short reference paragraphs).
    """
    stride = _stride(chunk_size, overlap)
    if min_tokens is not None and len(tokens) < min_tokens:
        raise InsufficientContent(len(tokens), min_tokens, source_doc_id)
    if not tokens:
        return []

    lowered = lower_preserving_offsets(text)
    token_positions: Optional[List[Tuple[int, int]]] = None
    chunks: List[Chunk] = []
    cursor = 0
    estimated = 0

    for i in range(0, len(tokens), stride):
        window = tokens[i:i + chunk_size]
        chunk_text = " ".join(window)
        last = i + len(window) - 1

        pos = lowered.find(chunk_text, cursor)
        if pos >= 0:
            start, end = pos, pos + len(chunk_text)
        else:
            if token_positions is None:
                token_positions = _locate_tokens(lowered, tokens)
            start, end = _estimate_offsets(token_positions, i, last, len(text))
            estimated += 1
        cursor = start

        chunks.append(Chunk(
            source_doc_id=source_doc_id,
            start_offset=start,
            end_offset=end,
            text=chunk_text,
            token_count=len(window),
        ))
        if i + chunk_size >= len(tokens):
            break

    if estimated:
        logger.debug(
            f"{source_doc_id}: {estimated}/{len(chunks)} chunk offsets estimated",
            exc_info=OffsetResolutionFailure(f"{estimated} chunks not found verbatim"),
        )
    return chunks


def tokenize_for_chunking(text: str) -> List[str]:
    """Lowercased, whitespace-normalized word tokens used by every chunker caller."""
    return tokenize(text)


def build_chunks(
    text: str,
    source_doc_id: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    min_tokens: Optional[int] = MIN_TOKENS,
) -> Tuple[List[str], List[Chunk]]:
    """Tokenize `text` and chunk it. Returns (tokens, chunks)."""
    tokens = tokenize_for_chunking(text)
    return tokens, chunk_tokens(tokens, text, source_doc_id, chunk_size, overlap, min_tokens)
