from typing import Optional

from config.settings import Settings, get_settings
from core.context import RequestContext
from core.models import PageArtifact
from core.scrapers.page_session import PageSession, SessionConfig

# Phrases that show up when the site serves a bot check instead of results.
BLOCK_PAGE_MARKERS = ("captcha", "access denied", "are you a robot")


class TakealotSession(PageSession):
    """Page session for takealot.com search results.

    Prices on the results grid are rendered client-side as "R 1,299" style
    text inside elements whose class names contain "price" or "currency".
    """

    search_url_template = "https://www.takealot.com/all?qsearch={query}"
    consent_selector = 'button[class*="cookie"]'
    price_selector = '[class*="price"]'

    def __init__(
        self,
        context: Optional[RequestContext] = None,
        config: Optional[SessionConfig] = None,
        search_url_template: Optional[str] = None,
    ):
        super().__init__("takealot", context=context, config=config)
        if search_url_template:
            self.search_url_template = search_url_template

    @classmethod
    def from_settings(
        cls, context: Optional[RequestContext] = None, settings: Optional[Settings] = None
    ) -> "TakealotSession":
        settings = settings or get_settings()
        return cls(
            context=context,
            config=SessionConfig.from_settings(settings),
            search_url_template=settings.SEARCH_URL_TEMPLATE,
        )

    def capture(self, need_image: bool = False) -> PageArtifact:
        artifact = super().capture(need_image)

        # Check for CAPTCHA or robot detection
        lowered = artifact.markup.lower()
        if any(marker in lowered for marker in BLOCK_PAGE_MARKERS):
            self.logger.warning("Page looks like a bot check, prices may be missing")
        return artifact
