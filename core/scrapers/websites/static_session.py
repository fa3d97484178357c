from typing import Optional

from core.context import RequestContext
from core.models import PageArtifact, SearchQuery
from core.scrapers.base import BaseSession

DEMO_MARKUP = """
<html><body>
  <div class="search-product">
    <h4>USB-C Cable 1m</h4><span class="currency plus currency-module_currency_29IIm">R 99</span>
  </div>
  <div class="search-product">
    <h4>HDMI Cable 2m</h4><span class="currency plus currency-module_currency_29IIm">R 149</span>
  </div>
  <div class="search-product">
    <h4>Wireless Mouse</h4><span class="currency plus currency-module_currency_29IIm">R 349.99</span>
  </div>
  <div class="search-product">
    <h4>Mechanical Keyboard</h4><span class="currency plus currency-module_currency_29IIm">R 1,299</span>
  </div>
  <div class="search-product">
    <h4>27" Monitor</h4><span class="currency plus currency-module_currency_29IIm">R 3,499</span>
  </div>
</body></html>
"""


class StaticSession(BaseSession):
    """A session that serves fixed markup without a browser (for testing).

    Every lifecycle call is appended to ``calls`` so tests can check which
    steps ran.
    """

    def __init__(
        self,
        context: Optional[RequestContext] = None,
        markup: str = DEMO_MARKUP,
        image: Optional[bytes] = None,
        has_consent_banner: bool = False,
    ):
        super().__init__("static", context)
        self.markup = markup
        self.image = image
        self.has_consent_banner = has_consent_banner
        self.calls = []

    def open(self) -> None:
        self.calls.append("open")

    def navigate(self, query: SearchQuery, timeout_ms: Optional[int] = None) -> bool:
        self.calls.append("navigate")
        self.logger.info("Serving static page for %s", query.term)
        return True

    def dismiss_consent_banner(self, timeout_ms: Optional[int] = None) -> bool:
        self.calls.append("dismiss_consent_banner")
        return self.has_consent_banner

    def trigger_lazy_load(self) -> int:
        self.calls.append("trigger_lazy_load")
        return 0

    def wait_for_prices(self, timeout_ms: Optional[int] = None) -> bool:
        self.calls.append("wait_for_prices")
        return True

    def capture(self, need_image: bool = False) -> PageArtifact:
        self.calls.append("capture_image" if need_image else "capture")
        return PageArtifact(markup=self.markup, image=self.image if need_image else None)

    def _release(self) -> None:
        self.calls.append("close")
