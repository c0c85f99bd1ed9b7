from .paper import (
    EnrichmentStatus,
    PaperRecord,
    Topic,
    Enrichment,
    Paper,
    User,
    RegenerateResult,
    UrlAnalysisResult,
)

__all__ = [
    "EnrichmentStatus",
    "PaperRecord",
    "Topic",
    "Enrichment",
    "Paper",
    "User",
    "RegenerateResult",
    "UrlAnalysisResult",
]
