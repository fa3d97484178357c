import contextlib
import enum
import logging
import os
import threading
from typing import Callable, List, Optional

from config.settings import Settings, get_settings
from core.context import RequestContext
from core.errors import ContextAcquisitionFailure
from core.extraction.ocr import get_ocr_engine
from core.extraction.pipeline import ExtractionPipeline
from core.models import ExtractionResult, PageArtifact, SearchQuery, SearchResult
from core.pricing.statistics import StatisticsEngine
from core.scrapers.base import BaseSession
from core.scrapers.websites.takealot_session import TakealotSession

SessionFactory = Callable[[RequestContext], BaseSession]


class RequestState(str, enum.Enum):
    INIT = "INIT"
    SESSION_OPEN = "SESSION_OPEN"
    NAVIGATED = "NAVIGATED"
    CONSENT_HANDLED = "CONSENT_HANDLED"
    CONSENT_ABSENT = "CONSENT_ABSENT"
    SCROLLED = "SCROLLED"
    EXTRACTED = "EXTRACTED"
    STATS_COMPUTED = "STATS_COMPUTED"
    DONE = "DONE"
    ERROR = "ERROR"


class RequestTrace:
    """Tracks and logs the state transitions of one request."""

    def __init__(self, logger):
        self.logger = logger
        self.states: List[RequestState] = [RequestState.INIT]

    @property
    def state(self) -> RequestState:
        return self.states[-1]

    def advance(self, state: RequestState, detail: str = "") -> None:
        self.logger.info("%s -> %s%s", self.state.value, state.value, f" {detail}" if detail else "")
        self.states.append(state)

    def fail(self, error: BaseException) -> None:
        self.logger.error("%s -> ERROR: %s", self.state.value, str(error))
        self.states.append(RequestState.ERROR)


class PriceSearchService:
    """Looks up a search term and summarizes the prices on the results page.

    Each request gets its own rendering context; a bounded number of them
    may be alive at once.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        pipeline: ExtractionPipeline,
        statistics: Optional[StatisticsEngine] = None,
        max_concurrent_sessions: int = 2,
        acquire_timeout_s: float = 60.0,
        debug_output_dir: str = "debug_output",
    ):
        self.session_factory = session_factory
        self.pipeline = pipeline
        self.statistics = statistics or StatisticsEngine()
        self.acquire_timeout_s = acquire_timeout_s
        self.debug_output_dir = debug_output_dir
        self._slots = threading.BoundedSemaphore(max_concurrent_sessions)

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, threshold: Optional[int] = None
    ) -> "PriceSearchService":
        settings = settings or get_settings()
        pipeline = ExtractionPipeline.default(
            get_ocr_engine(settings.OCR_LANGUAGES, gpu=settings.OCR_GPU),
            threshold=threshold or settings.MIN_CONFIDENCE_MATCHES,
        )
        return cls(
            session_factory=lambda context: TakealotSession.from_settings(context, settings),
            pipeline=pipeline,
            max_concurrent_sessions=settings.MAX_CONCURRENT_SESSIONS,
            acquire_timeout_s=settings.NAVIGATION_TIMEOUT_MS / 1000,
            debug_output_dir=settings.DEBUG_OUTPUT_DIR,
        )

    def lookup(self, term: str, debug: bool = False) -> SearchResult:
        """Validate a raw term and search for it.

        Raises:
            InvalidInput: if the term is empty, before any browser starts
        """
        return self.search(SearchQuery(term=term, debug=debug))

    def search(self, query: SearchQuery, context: Optional[RequestContext] = None) -> SearchResult:
        """Run one lookup end to end.

        Raises:
            ContextAcquisitionFailure: if no rendering context could be started
            NavigationFailure: if the page could not be loaded at all
            RecognitionFailure: if OCR was needed and failed to run
        """
        context = context or RequestContext.new(debug=query.debug)
        log = context.logger("price-service")
        trace = RequestTrace(log)
        log.info("Looking up prices for %r", query.term)

        try:
            with self._session_slot():
                extraction, warnings = self._extract(query, context, trace, log)
        except Exception as e:
            trace.fail(e)
            raise

        stats = self.statistics.compute(extraction.values)
        trace.advance(RequestState.STATS_COMPUTED, f"({stats.count} prices)")

        result = SearchResult(
            search_term=query.term,
            extraction=extraction,
            stats=stats,
            warnings=tuple(warnings),
        )
        trace.advance(RequestState.DONE)
        return result

    def _extract(self, query, context, trace, log):
        session = self.session_factory(context)
        with session:
            trace.advance(RequestState.SESSION_OPEN)

            session.navigate(query)
            trace.advance(RequestState.NAVIGATED)

            if session.dismiss_consent_banner():
                trace.advance(RequestState.CONSENT_HANDLED)
            else:
                trace.advance(RequestState.CONSENT_ABSENT)

            session.trigger_lazy_load()
            session.wait_for_prices()
            trace.advance(RequestState.SCROLLED)

            artifact = session.capture(need_image=False)
            # Remember the OCR screenshot so debug output does not take another
            captured: List[PageArtifact] = []

            def capture(need_image: bool = False) -> PageArtifact:
                captured.append(session.capture(need_image=need_image))
                return captured[-1]

            extraction = self.pipeline.run(artifact, capture=capture, logger=log)
            trace.advance(RequestState.EXTRACTED, f"via {extraction.strategy.value}")

            if context.debug:
                image = next((a.image for a in captured if a.has_image), None)
                self._save_debug_output(session, artifact, image, extraction, context, log)

        return extraction, [str(error) for error in session.degradations]

    @contextlib.contextmanager
    def _session_slot(self):
        """Hold one of the bounded rendering-context slots."""
        if not self._slots.acquire(timeout=self.acquire_timeout_s):
            raise ContextAcquisitionFailure(
                f"No browser slot became free within {self.acquire_timeout_s:.0f} s"
            )
        try:
            yield
        finally:
            self._slots.release()

    def _save_debug_output(
        self,
        session: BaseSession,
        artifact: PageArtifact,
        image: Optional[bytes],
        extraction: ExtractionResult,
        context: RequestContext,
        log,
    ) -> None:
        """Write the captured markup and a screenshot next to each other.

        ``image`` is a screenshot already taken for OCR; a fresh one is taken
        when it is None.
        """
        try:
            os.makedirs(self.debug_output_dir, exist_ok=True)
            base = os.path.join(self.debug_output_dir, f"{session.name}_{context.request_id}")

            with open(f"{base}.html", "w", encoding="utf-8") as f:
                f.write(artifact.markup)

            screenshot = image or session.capture(need_image=True).image
            if screenshot:
                with open(f"{base}.png", "wb") as f:
                    f.write(screenshot)
            log.debug("Saved debug output to %s.* (strategy %s)", base, extraction.strategy.value)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log.warning("Could not save debug output: %s", str(e))

    def check_backend(self, context: Optional[RequestContext] = None) -> bool:
        """Open and close a rendering context to prove the backend works.

        Raises:
            ContextAcquisitionFailure: if the backend cannot be launched
        """
        context = context or RequestContext.new()
        with self._session_slot():
            with self.session_factory(context):
                pass
        logging.getLogger("price-service").info("Browser backend is reachable")
        return True

