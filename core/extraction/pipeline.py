import logging
from typing import Callable, List, Optional, Sequence

from core.errors import RecognitionFailure
from core.extraction.ocr import OcrEngine
from core.extraction.strategies import (
    ExtractionStrategy,
    MarkupScanStrategy,
    OcrStrategy,
    StructuredScanStrategy,
)
from core.models import ExtractionResult, PageArtifact, PriceToken, StrategyAttempt

# Minimum number of prices a strategy must find to be trusted without trying
# the next, more expensive one. Fixed heuristic; does not scale with page size.
DEFAULT_MIN_CONFIDENCE_MATCHES = 5

CaptureFn = Callable[[bool], PageArtifact]


class ExtractionPipeline:
    """Runs strategies cheapest first and keeps the first sufficient result.

    A strategy is sufficient when it finds at least ``threshold`` prices.
    When none is, the attempted strategy with the strictly highest yield is
    adopted (earlier strategies win ties), even if that yield is zero.
    """

    def __init__(
        self,
        strategies: Sequence[ExtractionStrategy],
        threshold: int = DEFAULT_MIN_CONFIDENCE_MATCHES,
        logger: Optional[logging.Logger] = None,
    ):
        if not strategies:
            raise ValueError("An extraction pipeline needs at least one strategy")
        self.strategies = list(strategies)
        self.threshold = threshold
        self.logger = logger or logging.getLogger("extraction")

    @classmethod
    def default(
        cls,
        ocr_engine: OcrEngine,
        threshold: int = DEFAULT_MIN_CONFIDENCE_MATCHES,
        selectors: Optional[Sequence[str]] = None,
    ) -> "ExtractionPipeline":
        """Structured scan, then markup scan, then OCR."""
        return cls(
            [
                StructuredScanStrategy(selectors=selectors),
                MarkupScanStrategy(),
                OcrStrategy(ocr_engine),
            ],
            threshold=threshold,
        )

    def run(
        self,
        artifact: PageArtifact,
        capture: Optional[CaptureFn] = None,
        logger=None,
    ) -> ExtractionResult:
        """Extract prices from the artifact.

        Args:
            artifact: Captured page content, usually markup only
            capture: Called as ``capture(True)`` to obtain an artifact with a
                     page image when an image-based strategy is reached
            logger: Optional request-scoped logger overriding the pipeline's

        Raises:
            RecognitionFailure: if an image-based strategy cannot run
        """
        log = logger or self.logger
        attempts: List[StrategyAttempt] = []
        candidates: List[List[PriceToken]] = []

        for strategy in self.strategies:
            if strategy.requires_image and not artifact.has_image:
                artifact = self._with_image(artifact, capture, log)

            tokens = strategy.extract(artifact)
            attempts.append(StrategyAttempt(strategy.name, len(tokens)))
            candidates.append(tokens)
            log.info("Strategy %s found %d prices", strategy.name.value, len(tokens))

            if len(tokens) >= self.threshold:
                return ExtractionResult.from_tokens(strategy.name, tokens, attempts)

        best = 0
        for index, tokens in enumerate(candidates):
            if len(tokens) > len(candidates[best]):
                best = index

        adopted = attempts[best].strategy
        log.info(
            "No strategy reached %d prices, adopting %s with %d",
            self.threshold,
            adopted.value,
            attempts[best].count,
        )
        return ExtractionResult.from_tokens(adopted, candidates[best], attempts)

    def _with_image(self, artifact, capture, log) -> PageArtifact:
        if capture is None:
            raise RecognitionFailure("No way to capture a page image for text recognition")

        log.info("Capturing full-page image for text recognition")
        try:
            return capture(True)
        except RecognitionFailure:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise RecognitionFailure(f"Could not capture page image: {e}") from e
