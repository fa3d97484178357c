# Interchangeable price extraction strategies.
# Each one reads a PageArtifact and reports the price tokens it found; the
# pipeline decides which result to keep.

import abc
import logging
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from core.errors import RecognitionFailure
from core.extraction.ocr import OcrEngine
from core.models import PageArtifact, PriceToken, Strategy
from core.pricing.parser import find_prices

# Price-bearing element descriptors, most specific first.
DEFAULT_PRICE_SELECTORS = (
    '[data-ref="price"]',
    '[class*="currency"]',
    '[class*="price"]',
)


class ExtractionStrategy(abc.ABC):
    """Contract shared by every extraction strategy.

    Strategies must not raise for "nothing found": an empty list is a normal
    answer. Only a strategy that cannot run at all may raise.
    """

    name: Strategy
    requires_image = False

    def __init__(self):
        self.logger = logging.getLogger(f"extraction.{self.name.value.lower()}")

    @abc.abstractmethod
    def extract(self, artifact: PageArtifact) -> List[PriceToken]:
        """Return the price tokens found in the artifact."""
        raise NotImplementedError("Extraction strategies must implement extract()")


class StructuredScanStrategy(ExtractionStrategy):
    """Reads one price per price-bearing element of the rendered DOM.

    Selectors are tried in priority order and the first one that yields any
    price wins, so nested price elements matched by a broader selector are
    not counted twice.
    """

    name = Strategy.STRUCTURED

    def __init__(self, selectors: Optional[Sequence[str]] = None, parser: str = "lxml"):
        super().__init__()
        self.selectors = tuple(selectors or DEFAULT_PRICE_SELECTORS)
        self.parser = parser

    def extract(self, artifact: PageArtifact) -> List[PriceToken]:
        if not artifact.markup:
            return []

        soup = BeautifulSoup(artifact.markup, self.parser)
        for selector in self.selectors:
            elements = soup.select(selector)
            if not elements:
                self.logger.debug("No elements for selector %s", selector)
                continue

            tokens = []
            for element in elements:
                tokens.extend(find_prices(element.get_text(" ", strip=True), first_only=True))

            if tokens:
                self.logger.debug(
                    "Selector %s matched %d elements, %d prices",
                    selector,
                    len(elements),
                    len(tokens),
                )
                return tokens
        return []


class MarkupScanStrategy(ExtractionStrategy):
    """Searches the whole raw markup for currency tokens."""

    name = Strategy.MARKUP_SCAN

    def extract(self, artifact: PageArtifact) -> List[PriceToken]:
        return find_prices(artifact.markup)


class OcrStrategy(ExtractionStrategy):
    """Recognizes text on a full-page screenshot and searches it for prices."""

    name = Strategy.OCR
    requires_image = True

    def __init__(self, engine: OcrEngine):
        super().__init__()
        self.engine = engine

    def extract(self, artifact: PageArtifact) -> List[PriceToken]:
        if not artifact.has_image:
            raise RecognitionFailure("No page image available for text recognition")

        text = self.engine.recognize(artifact.image)
        self.logger.debug("Recognized %d characters of text", len(text))
        return find_prices(text)
