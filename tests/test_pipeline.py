import threading
import time

import pytest

from conftest import FakeOcrEngine, price_markup
from core.errors import RecognitionFailure
from core.extraction import ocr
from core.extraction.ocr import OcrEngine
from core.extraction.pipeline import DEFAULT_MIN_CONFIDENCE_MATCHES, ExtractionPipeline
from core.extraction.strategies import (
    ExtractionStrategy,
    MarkupScanStrategy,
    OcrStrategy,
    StructuredScanStrategy,
)
from core.models import PageArtifact, PriceToken, Strategy


class StubStrategy(ExtractionStrategy):
    def __init__(self, name, count, requires_image=False):
        self.name = name
        self.requires_image = requires_image
        super().__init__()
        self.count = count
        self.calls = []

    def extract(self, artifact):
        self.calls.append(artifact)
        return [PriceToken(f"R{i + 1}", float(i + 1)) for i in range(self.count)]


def stubs(structured, markup, ocr):
    return [
        StubStrategy(Strategy.STRUCTURED, structured),
        StubStrategy(Strategy.MARKUP_SCAN, markup),
        StubStrategy(Strategy.OCR, ocr, requires_image=True),
    ]


def with_image(need_image):
    return PageArtifact(markup="<html></html>", image=b"png-bytes")


def test_default_threshold_is_five():
    assert DEFAULT_MIN_CONFIDENCE_MATCHES == 5


def test_structured_scan_sufficient_skips_other_strategies():
    strategies = stubs(5, 8, 9)
    captures = []

    result = ExtractionPipeline(strategies).run(
        PageArtifact(markup=""), capture=lambda need: captures.append(need)
    )

    assert result.strategy == Strategy.STRUCTURED
    assert len(result.values) == 5
    assert strategies[1].calls == []
    assert strategies[2].calls == []
    assert captures == []


def test_markup_scan_adopted_when_structured_falls_short():
    strategies = stubs(2, 8, 9)

    result = ExtractionPipeline(strategies).run(PageArtifact(markup=""), capture=with_image)

    assert result.strategy == Strategy.MARKUP_SCAN
    assert len(result.values) == 8
    assert strategies[2].calls == []
    assert [a.count for a in result.attempts] == [2, 8]


def test_ocr_runs_on_captured_image_when_cheaper_strategies_fall_short():
    strategies = stubs(1, 3, 6)
    captures = []

    def capture(need_image):
        captures.append(need_image)
        return with_image(need_image)

    result = ExtractionPipeline(strategies).run(PageArtifact(markup=""), capture=capture)

    assert result.strategy == Strategy.OCR
    assert captures == [True]
    assert strategies[2].calls[0].image == b"png-bytes"


def test_highest_yield_adopted_when_none_reaches_threshold():
    result = ExtractionPipeline(stubs(2, 4, 3)).run(PageArtifact(markup=""), capture=with_image)

    assert result.strategy == Strategy.MARKUP_SCAN
    assert len(result.values) == 4
    assert [a.strategy for a in result.attempts] == [
        Strategy.STRUCTURED,
        Strategy.MARKUP_SCAN,
        Strategy.OCR,
    ]


def test_zero_yield_everywhere_is_a_valid_result():
    result = ExtractionPipeline(stubs(0, 0, 0)).run(PageArtifact(markup=""), capture=with_image)

    assert result.strategy == Strategy.STRUCTURED
    assert result.values == ()


def test_ties_keep_the_cheaper_strategy():
    result = ExtractionPipeline(stubs(3, 3, 1)).run(PageArtifact(markup=""), capture=with_image)

    assert result.strategy == Strategy.STRUCTURED


def test_threshold_is_configurable():
    result = ExtractionPipeline(stubs(2, 8, 9), threshold=2).run(PageArtifact(markup=""))

    assert result.strategy == Strategy.STRUCTURED


def test_missing_capture_is_a_recognition_failure():
    with pytest.raises(RecognitionFailure):
        ExtractionPipeline(stubs(0, 0, 0)).run(PageArtifact(markup=""))


def test_capture_error_is_a_recognition_failure():
    def broken_capture(need_image):
        raise RuntimeError("Target page, context or browser has been closed")

    with pytest.raises(RecognitionFailure, match="capture page image"):
        ExtractionPipeline(stubs(0, 0, 0)).run(PageArtifact(markup=""), capture=broken_capture)


def test_pipeline_needs_strategies():
    with pytest.raises(ValueError):
        ExtractionPipeline([])


def test_default_pipeline_order():
    pipeline = ExtractionPipeline.default(FakeOcrEngine())

    assert [s.name for s in pipeline.strategies] == [
        Strategy.STRUCTURED,
        Strategy.MARKUP_SCAN,
        Strategy.OCR,
    ]


# Concrete strategies


def test_structured_scan_reads_one_price_per_element():
    markup = price_markup("R 1,299", "R 99 was R 149", "R 349.99", "Free")

    tokens = StructuredScanStrategy().extract(PageArtifact(markup=markup))

    assert [t.value for t in tokens] == [1299.0, 99.0, 349.99]


def test_structured_scan_prefers_earlier_selectors():
    markup = (
        '<div class="price-box"><span data-ref="price">R 10</span> R 20</div>'
        '<div class="price-box"><span data-ref="price">R 30</span></div>'
    )

    tokens = StructuredScanStrategy().extract(PageArtifact(markup=markup))

    assert [t.value for t in tokens] == [10.0, 30.0]


def test_structured_scan_falls_through_to_broader_selectors():
    markup = price_markup("R 5", "R 6", css_class="product-price")

    tokens = StructuredScanStrategy().extract(PageArtifact(markup=markup))

    assert [t.value for t in tokens] == [5.0, 6.0]


def test_structured_scan_empty_markup():
    assert StructuredScanStrategy().extract(PageArtifact(markup="")) == []


def test_markup_scan_finds_prices_outside_price_elements():
    markup = (
        '<script>window.__STATE__={"listing":"R 2,499","was":"R 2,999"}</script>'
        '<p>From R 199</p>'
    )

    tokens = MarkupScanStrategy().extract(PageArtifact(markup=markup))

    assert [t.value for t in tokens] == [2499.0, 2999.0, 199.0]


def test_ocr_strategy_searches_recognized_text():
    engine = FakeOcrEngine(text="Samsung A15\nR 2,999\nR3,499.00\nDeal R 10")
    artifact = PageArtifact(markup="", image=b"png")

    tokens = OcrStrategy(engine).extract(artifact)

    assert [t.value for t in tokens] == [2999.0, 3499.0, 10.0]
    assert engine.images == [b"png"]


def test_ocr_strategy_without_image_fails():
    with pytest.raises(RecognitionFailure):
        OcrStrategy(FakeOcrEngine()).extract(PageArtifact(markup=""))


def test_ocr_engine_errors_propagate():
    engine = FakeOcrEngine(error=RecognitionFailure("model crashed"))

    with pytest.raises(RecognitionFailure):
        OcrStrategy(engine).extract(PageArtifact(markup="", image=b"png"))


class FakeReader:
    def __init__(self, lines=None, error=None):
        self.lines = lines or []
        self.error = error

    def readtext(self, image, detail=0, paragraph=False):
        if self.error:
            raise self.error
        return self.lines


def test_ocr_engine_joins_recognized_lines():
    engine = OcrEngine()
    engine._reader = FakeReader(lines=["R 100", "R 200"])

    assert engine.recognize(b"png") == "R 100\nR 200"


def test_ocr_engine_wraps_reader_errors():
    engine = OcrEngine()
    engine._reader = FakeReader(error=ValueError("cannot identify image"))

    with pytest.raises(RecognitionFailure, match="cannot identify image"):
        engine.recognize(b"not an image")


def test_shared_ocr_engine_built_once_under_concurrency(monkeypatch):
    built = []

    class SlowEngine:
        def __init__(self, languages, gpu):
            built.append(languages)
            time.sleep(0.05)

    monkeypatch.setattr(ocr, "_shared_engine", None)
    monkeypatch.setattr(ocr, "OcrEngine", SlowEngine)

    threads = [threading.Thread(target=ocr.get_ocr_engine) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(built) == 1
