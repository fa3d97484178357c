import pytest

from core.extraction.pipeline import ExtractionPipeline
from core.scrapers.websites.static_session import StaticSession
from core.service import PriceSearchService


class FakeOcrEngine:
    """Stands in for the EasyOCR-backed engine; never loads any model."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.images = []

    def recognize(self, image):
        self.images.append(image)
        if self.error is not None:
            raise self.error
        return self.text


class FailingSession(StaticSession):
    """Static session that raises ``error`` when it reaches step ``fail_at``."""

    def __init__(self, context=None, fail_at=None, error=None, **kwargs):
        super().__init__(context=context, **kwargs)
        self.fail_at = fail_at
        self.error = error
        self.release_count = 0

    def _maybe_fail(self, step):
        if step == self.fail_at:
            raise self.error

    def open(self):
        super().open()
        self._maybe_fail("open")

    def navigate(self, query, timeout_ms=None):
        result = super().navigate(query, timeout_ms)
        self._maybe_fail("navigate")
        return result

    def trigger_lazy_load(self):
        steps = super().trigger_lazy_load()
        self._maybe_fail("trigger_lazy_load")
        return steps

    def capture(self, need_image=False):
        self._maybe_fail("capture_image" if need_image else "capture")
        return super().capture(need_image)

    def _release(self):
        self.release_count += 1
        super()._release()


def price_markup(*prices, css_class="currency"):
    """Build a results page with one price element per price string."""
    items = "".join(
        f'<li class="product"><span class="{css_class}">{price}</span></li>' for price in prices
    )
    return f"<html><body><ul>{items}</ul></body></html>"


@pytest.fixture
def ocr_engine():
    return FakeOcrEngine()


@pytest.fixture
def sessions():
    """Every session the service creates, in creation order."""
    return []


@pytest.fixture
def make_service(sessions, ocr_engine, tmp_path):
    """Build a service whose sessions are static and recorded in ``sessions``."""

    def factory(session_cls=StaticSession, threshold=5, max_concurrent_sessions=2, **session_kwargs):
        def session_factory(context):
            session = session_cls(context=context, **session_kwargs)
            sessions.append(session)
            return session

        return PriceSearchService(
            session_factory=session_factory,
            pipeline=ExtractionPipeline.default(ocr_engine, threshold=threshold),
            max_concurrent_sessions=max_concurrent_sessions,
            acquire_timeout_s=0.05,
            debug_output_dir=str(tmp_path / "debug_output"),
        )

    return factory
