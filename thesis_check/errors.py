"""
Error taxonomy for the analysis engine.

Only JobFailure ever reaches the caller of the coordinator; the other errors
are degraded signals that the matchers and the analysis service handle locally.
"""


class AnalysisError(Exception):
    """Base class for every error raised by the analysis engine."""


class InsufficientContent(AnalysisError):
    """Text is below the minimum token threshold; the signal is skipped."""

    def __init__(self, token_count: int, minimum: int, source: str = ""):
        self.token_count = token_count
        self.minimum = minimum
        self.source = source
        label = f" for {source}" if source else ""
        super().__init__(f"Only {token_count} tokens{label} (minimum {minimum})")


class ProviderUnavailable(AnalysisError):
    """A search, fetch, classifier or corpus-source collaborator is missing or erroring."""

    def __init__(self, provider: str, reason: str = "unavailable"):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class OffsetResolutionFailure(AnalysisError):
    """Chunk text could not be found verbatim in the original content."""


class JobFailure(AnalysisError):
    """An analysis job failed before producing a complete result."""

    def __init__(self, document_id: str, reason: str):
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Analysis of {document_id} failed: {reason}")
