import logging
import uuid
from dataclasses import dataclass


class RequestLogger(logging.LoggerAdapter):
    """Prefixes every message with the id of the request that logged it."""

    def process(self, msg, kwargs):
        return f"[{self.extra['request_id']}] {msg}", kwargs


@dataclass(frozen=True)
class RequestContext:
    """Per-request state handed explicitly to every component of a lookup."""

    request_id: str
    debug: bool = False

    @classmethod
    def new(cls, debug: bool = False) -> "RequestContext":
        return cls(request_id=uuid.uuid4().hex[:8], debug=debug)

    def logger(self, name: str) -> RequestLogger:
        """Return a request-scoped adapter around the named logger."""
        return RequestLogger(logging.getLogger(name), {"request_id": self.request_id})
