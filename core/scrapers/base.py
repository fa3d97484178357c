# Abstract contract for a page session: one rendering context that loads a
# search page, interacts with it and hands its content to extraction.

import abc
import logging
from typing import List, Optional

from core.context import RequestContext
from core.errors import PriceLookupError
from core.models import PageArtifact, SearchQuery


class BaseSession(abc.ABC):
    """Base class for page sessions.

    A session owns exactly one rendering context from ``open()`` to
    ``close()``. Use it as a context manager: ``close()`` then runs exactly
    once on every exit path, including a failed ``open()``.

    Only ``open()`` and protocol-level navigation failures may raise. Every
    other step reports absence through its return value and records the
    degradation in ``degradations``.
    """

    def __init__(self, name: str, context: Optional[RequestContext] = None):
        """Initialize the session.

        Args:
            name: Identifier of the site this session talks to, used in logs
            context: Request the session belongs to; a fresh one is made
                     when omitted (e.g. for health probes)
        """
        self.name = name
        self.context = context or RequestContext.new()
        self.logger = self.context.logger(f"scraper.{name}")
        self.degradations: List[PriceLookupError] = []
        self.close_count = 0
        self._closed = False

    def __enter__(self) -> "BaseSession":
        try:
            self.open()
        except BaseException:
            # A half-opened context still holds resources
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @abc.abstractmethod
    def open(self) -> None:
        """Acquire the rendering context.

        Raises:
            ContextAcquisitionFailure: if the backend cannot be launched
        """
        raise NotImplementedError("Sessions must implement open()")

    @abc.abstractmethod
    def navigate(self, query: SearchQuery, timeout_ms: Optional[int] = None) -> bool:
        """Load the search page for the query.

        Returns:
            True when the page settled in time, False when it timed out and
            whatever markup is available will be used.
        """
        raise NotImplementedError("Sessions must implement navigate()")

    @abc.abstractmethod
    def dismiss_consent_banner(self, timeout_ms: Optional[int] = None) -> bool:
        """Click the consent banner away. Returns False when there is none."""
        raise NotImplementedError("Sessions must implement dismiss_consent_banner()")

    @abc.abstractmethod
    def trigger_lazy_load(self) -> int:
        """Scroll to the bottom to load lazy content. Returns the steps taken."""
        raise NotImplementedError("Sessions must implement trigger_lazy_load()")

    @abc.abstractmethod
    def wait_for_prices(self, timeout_ms: Optional[int] = None) -> bool:
        """Wait for a price element to appear. Returns False on timeout."""
        raise NotImplementedError("Sessions must implement wait_for_prices()")

    @abc.abstractmethod
    def capture(self, need_image: bool = False) -> PageArtifact:
        """Return the current markup and, if asked, a full-page image."""
        raise NotImplementedError("Sessions must implement capture()")

    @abc.abstractmethod
    def _release(self) -> None:
        """Free whatever ``open()`` acquired. Must tolerate a partial open."""
        raise NotImplementedError("Sessions must implement _release()")

    def close(self) -> None:
        """Release the rendering context. Safe to call more than once."""
        # Guard against double release from __exit__ and explicit close()
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        try:
            self._release()
        except Exception as e:  # pylint: disable=broad-exception-caught
            # Log and move on, the request result is already decided
            self.logger.warning("Error while closing session: %s", str(e))
        self.logger.info("Session closed")

    def _degrade(self, error: PriceLookupError, level: int = logging.WARNING) -> None:
        """Record a tolerated failure and carry on."""
        self.degradations.append(error)
        self.logger.log(level, "%s", error)
