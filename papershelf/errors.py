"""
Error taxonomy shared by the crawler, analyzer, repositories and service.
"""


class PaperShelfError(Exception):
    """Base class for all PaperShelf errors."""


class TransientProviderError(PaperShelfError):
    """arXiv kept answering 429 after every backoff attempt."""


class ProviderError(PaperShelfError):
    """Non-retryable failure talking to or parsing the arXiv feed."""


class ConfigurationError(PaperShelfError):
    """A required setting (e.g. the model credential) is missing."""


class ModelOutputMalformed(PaperShelfError):
    """The model reply did not contain a usable JSON object."""


class AnalysisFailed(PaperShelfError):
    """The model call itself failed (transport, auth, quota)."""


class PdfDownloadError(PaperShelfError):
    """The PDF could not be fetched or the response was not a PDF."""


class NotFoundError(PaperShelfError):
    """A paper, saved-paper link or topic does not exist."""


class NoPdfAvailable(PaperShelfError):
    """The paper has no PDF link, so it cannot be analyzed."""


class Unauthorized(PaperShelfError):
    """No authenticated identity was supplied."""
