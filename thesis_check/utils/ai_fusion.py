from typing import List, Optional, Sequence

import numpy as np

from thesis_check.config import DEFAULT_SPAN_CONFIDENCE, FUSION_CONFIDENCE_THRESHOLD, SEGMENT_MERGE_GAP
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import (
    AIFlaggedSegment,
    DetectionResult,
    FusedAIResult,
    ProviderScore,
)

logger = get_logger("ai_fusion")


def _ordered(detections: Sequence[DetectionResult]) -> List[DetectionResult]:
    return sorted(detections, key=lambda d: (d.kind, d.provider))


def merge_adjacent_segments(
    segments: Sequence[AIFlaggedSegment],
    content: Optional[str] = None,
    max_gap: int = SEGMENT_MERGE_GAP,
) -> List[AIFlaggedSegment]:
    """Merge segments separated by at most `max_gap` characters, averaging confidence.

    Re-running on already merged output returns it unchanged.
    """
    if len(segments) <= 1:
        return list(segments)
    ordered = sorted(segments, key=lambda s: (s.start_offset, s.end_offset))
    merged: List[AIFlaggedSegment] = []
    current = ordered[0]
    for nxt in ordered[1:]:
        if nxt.start_offset - current.end_offset <= max_gap:
            start = current.start_offset
            end = max(current.end_offset, nxt.end_offset)
            text = content[start:end] if content is not None else f"{current.text} ... {nxt.text}"
            current = AIFlaggedSegment(
                start_offset=start,
                end_offset=end,
                text=text,
                confidence_percent=round((current.confidence_percent + nxt.confidence_percent) / 2),
            )
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged


def combine_flagged_spans(
    detections: Sequence[DetectionResult],
    content: str,
    threshold: float = FUSION_CONFIDENCE_THRESHOLD,
    max_gap: int = SEGMENT_MERGE_GAP,
    default_confidence: float = DEFAULT_SPAN_CONFIDENCE,
) -> List[AIFlaggedSegment]:
    """Per-character confidence map over every provider's segments.

    Each character accumulates confidence x provider weight; contiguous runs
    above `threshold` become segments carrying the run's mean value.
    """
    n = len(content)
    if n == 0:
        return []
    acc = np.zeros(n, dtype=float)
    for detection in _ordered(detections):
        for seg in detection.details:
            start = max(0, min(seg.start_offset, n))
            end = max(start, min(seg.end_offset, n))
            if end > start:
                acc[start:end] += (seg.confidence_percent or default_confidence) * detection.weight

    hot = acc > threshold
    if not hot.any():
        return []
    edges = np.diff(np.concatenate(([0], hot.astype(np.int8), [0])))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)

    segments = [
        AIFlaggedSegment(
            start_offset=int(s),
            end_offset=int(e),
            text=content[s:e],
            confidence_percent=min(100, round(float(acc[s:e].mean()))),
        )
        for s, e in zip(starts, ends)
    ]
    return merge_adjacent_segments(segments, content, max_gap)


def fuse_detections(
    detections: Sequence[DetectionResult],
    content: str,
    threshold: float = FUSION_CONFIDENCE_THRESHOLD,
    max_gap: int = SEGMENT_MERGE_GAP,
    default_confidence: float = DEFAULT_SPAN_CONFIDENCE,
) -> FusedAIResult:
    """Weighted average of provider scores, renormalized by the weights present."""
    ordered = _ordered(detections)
    providers = [ProviderScore(provider=d.provider, score=d.score, weight=d.weight) for d in ordered]
    if not ordered:
        return FusedAIResult()

    if len(ordered) == 1 and ordered[0].kind == "heuristic":
        only = ordered[0]
        return FusedAIResult(
            ai_score=round(only.score),
            flagged_segments=list(only.details),
            providers=providers,
        )

    total_weight = sum(d.weight for d in ordered)
    ai_score = round(sum(d.score * d.weight for d in ordered) / total_weight)
    segments = combine_flagged_spans(ordered, content, threshold, max_gap, default_confidence)
    logger.info(
        f"🧮 Fused AI score {ai_score}% from {', '.join(p.provider for p in providers)} "
        f"({len(segments)} segments)"
    )
    return FusedAIResult(ai_score=max(0, min(100, ai_score)), flagged_segments=segments, providers=providers)
