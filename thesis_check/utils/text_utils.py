import re
from typing import List, Tuple
from nltk.tokenize import RegexpTokenizer

_word_tokenizer = RegexpTokenizer(r"\w+")
_sentence_tokenizer = RegexpTokenizer(r"[^.!?]+[.!?]+")

PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def lower_preserving_offsets(text: str) -> str:
    """Lowercase without changing string length, so offsets stay valid."""
    if not text:
        return ""
    lowered = text.lower()
    if len(lowered) == len(text):
        return lowered
    return "".join(c.lower() if len(c.lower()) == 1 else c for c in text)


def tokenize(text: str) -> List[str]:
    """Lowercased word tokens; punctuation is dropped."""
    return _word_tokenizer.tokenize(lower_preserving_offsets(text or ""))


def token_spans(text: str) -> List[Tuple[int, int]]:
    return list(_word_tokenizer.span_tokenize(lower_preserving_offsets(text or "")))


def normalize_whitespace(s: str) -> str:
    return " ".join(s.split())


def sentence_spans(text: str) -> List[Tuple[int, int]]:
    """Spans of `[^.!?]+[.!?]+` sentences; trailing text without a terminator is dropped."""
    return list(_sentence_tokenizer.span_tokenize(text or ""))


def split_sentences(text: str) -> List[str]:
    return _sentence_tokenizer.tokenize(text or "")


def paragraph_spans(text: str) -> List[Tuple[int, int]]:
    """Blank-line delimited paragraphs as (start, end), including empty ones."""
    spans = []
    start = 0
    for m in PARAGRAPH_SPLIT.finditer(text or ""):
        spans.append((start, m.start()))
        start = m.end()
    spans.append((start, len(text or "")))
    return spans


def split_paragraphs(text: str) -> List[str]:
    return PARAGRAPH_SPLIT.split(text or "")


def trimmed_span(text: str, start: int, end: int) -> Tuple[int, int]:
    """Shrink (start, end) so the slice has no leading/trailing whitespace."""
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end
