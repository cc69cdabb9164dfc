"""
Result of handling one webhook delivery.

Ingestors never build HTTP responses themselves; they return an IngestResult
that the Azure Functions layer turns into ``func.HttpResponse``.
"""

from concurrent.futures import Future
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import BaseError


class IngestResult(BaseModel):
    """HTTP status, plain-text body and outcome of one delivery."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status_code: int = Field(default=200, description="HTTP status answered to the sender")
    body: str = Field(default="", description="Plain text response body")
    mimetype: str = Field(default="text/plain", description="Response content type")
    outcome: str = Field(default="ok", description="Short machine readable outcome")

    # Per-entry work dispatched before the acknowledgment was produced
    pending: List[Future] = Field(default_factory=list, exclude=True)

    @classmethod
    def ok(cls, message: str, outcome: str = "ok") -> "IngestResult":
        return cls(status_code=200, body=message, outcome=outcome)

    @classmethod
    def text(cls, token: str) -> "IngestResult":
        """Echo a validation token verbatim."""
        return cls(status_code=200, body=token, outcome="validation")

    @classmethod
    def accepted(cls, futures: List[Future]) -> "IngestResult":
        return cls(status_code=202, body="", outcome="dispatched", pending=list(futures))

    @classmethod
    def from_error(cls, error: BaseError) -> "IngestResult":
        """
        Map an engine error onto a response. Benign outcomes (ResolutionFailure,
        SyncSkipped) carry status 200 and are answered as such.
        """
        return cls(
            status_code=error.status_code,
            body=error.message,
            outcome=error.error_code.name.lower(),
        )

    @property
    def success(self) -> bool:
        return self.status_code < 400
