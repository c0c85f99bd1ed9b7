from .paper import (
    SavePaperRequest,
    AddTopicRequest,
    AnalyzeUrlRequest,
    MutationResponse,
)

__all__ = [
    "SavePaperRequest",
    "AddTopicRequest",
    "AnalyzeUrlRequest",
    "MutationResponse",
]
