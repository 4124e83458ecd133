"""
AI-text classification through the Hugging Face Inference API
(fakespot-ai/roberta-base-ai-text-detection-v1 by default).
"""

from typing import Optional

from huggingface_hub import InferenceClient

from thesis_check.config import HF_CLASSIFIER_WEIGHT, HF_FLAG_THRESHOLD, HF_MAX_CHARS, HF_MODEL, HF_TOKEN
from thesis_check.errors import ProviderUnavailable
from thesis_check.logger import get_logger
from thesis_check.schemas.source_schemas import ClassifierResponse, FlaggedSpan

logger = get_logger("hf_classifier")


def label_to_score(label: str, confidence: float) -> float:
    """Map an AI/HUMAN label with its confidence onto a 0-100 AI likelihood."""
    label = (label or "").upper()
    if label == "AI":
        ai = confidence
    elif label == "HUMAN":
        ai = 1.0 - confidence
    else:
        ai = 0.5
    return round(min(max(ai, 0.0), 1.0) * 100, 1)


class HuggingFaceClassifier:
    name = "huggingface"

    def __init__(
        self,
        client: Optional[InferenceClient] = None,
        model: str = HF_MODEL,
        token: str = HF_TOKEN,
        weight: float = HF_CLASSIFIER_WEIGHT,
        max_chars: int = HF_MAX_CHARS,
        flag_threshold: float = HF_FLAG_THRESHOLD,
    ):
        self.client = client if client is not None else InferenceClient(api_key=token or None)
        self.model = model
        self.weight = weight
        self.max_chars = max_chars
        self.flag_threshold = flag_threshold

    def classify(self, text: str) -> ClassifierResponse:
        excerpt = (text or "")[:self.max_chars]
        if len(excerpt) < 20:
            raise ProviderUnavailable(self.name, "text too short for classification")
        try:
            result = self.client.text_classification(excerpt, model=self.model)
        except Exception as e:
            raise ProviderUnavailable(self.name, str(e)) from e
        if not result:
            raise ProviderUnavailable(self.name, "empty response")

        top = result[0]
        label = top.get("label", "") if isinstance(top, dict) else getattr(top, "label", "")
        confidence = top.get("score", 0.5) if isinstance(top, dict) else getattr(top, "score", 0.5)
        score = label_to_score(label, confidence)
        logger.info(f"Classification: {label} (confidence: {confidence:.4f}) -> {score}%")

        spans = []
        if score > self.flag_threshold:
            spans.append(FlaggedSpan(start=0, end=len(excerpt), confidence=score))
        return ClassifierResponse(score=score, flagged_spans=spans)
