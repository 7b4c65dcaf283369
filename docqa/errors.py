"""Error taxonomy shared by the build phase, the query pipeline and the API.

Every error carries a ``category`` so callers can tell bad input from a
service that is not ready yet from a failing or slow upstream model.
"""
from typing import Optional


class DocQAError(Exception):
    """Base class for all service errors."""

    category = "internal"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        self.message = str(self)

    def to_dict(self) -> dict:
        return {"error": self.message, "category": self.category}


class InvalidConfiguration(DocQAError, ValueError):
    """Invalid configuration value."""

    category = "configuration"


class EmptyCorpus(DocQAError):
    """No segments to index."""

    category = "configuration"


class InvalidRequest(DocQAError):
    """Malformed request."""

    category = "bad_request"
    status_code = 400


class IndexNotReady(DocQAError):
    """Vector index has not been built yet."""

    category = "not_ready"
    status_code = 503


class ServiceNotReady(DocQAError):
    """Service is still starting up."""

    category = "not_ready"
    status_code = 503


class UpstreamEmbeddingError(DocQAError):
    """Embedding service call failed."""

    category = "upstream"
    status_code = 502


class UpstreamGenerationError(DocQAError):
    """Generation service call failed."""

    category = "upstream"
    status_code = 502


class UpstreamTimeout(DocQAError):
    """Upstream model call timed out."""

    category = "upstream_timeout"
    status_code = 504

    def __init__(self, message: str = "", stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.stage:
            data["stage"] = self.stage
        return data
