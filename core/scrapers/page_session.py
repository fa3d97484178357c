import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from playwright.sync_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)

from config.settings import Settings, get_settings
from core.context import RequestContext
from core.errors import (
    ContextAcquisitionFailure,
    ElementNotFound,
    NavigationFailure,
    NavigationTimeout,
)
from core.models import PageArtifact, SearchQuery
from core.scrapers.base import BaseSession

# Chromium flags for containers and other constrained headless environments.
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-infobars",
    "--disable-blink-features=AutomationControlled",
]

# Heavy resources that prices never depend on.
BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})

SCROLL_BY_JS = "(distance) => window.scrollBy(0, distance)"
PAGE_GEOMETRY_JS = (
    "() => [(document.body || document.documentElement).scrollHeight, window.innerHeight]"
)


@dataclass(frozen=True)
class SessionConfig:
    """Browser and interaction settings for one page session."""

    headless: bool = True
    block_resources: bool = True
    user_agent: Optional[str] = None
    viewport_width: int = 1920
    viewport_height: int = 1080
    wait_until: str = "domcontentloaded"
    navigation_timeout_ms: int = 60000
    consent_timeout_ms: int = 3000
    price_wait_timeout_ms: int = 10000
    scroll_step_px: int = 400
    scroll_interval_ms: int = 200
    max_scroll_steps: int = 250

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SessionConfig":
        settings = settings or get_settings()
        return cls(
            headless=settings.HEADLESS,
            block_resources=settings.BLOCK_RESOURCES,
            user_agent=settings.USER_AGENT,
            viewport_width=settings.VIEWPORT_WIDTH,
            viewport_height=settings.VIEWPORT_HEIGHT,
            wait_until=settings.WAIT_UNTIL,
            navigation_timeout_ms=settings.NAVIGATION_TIMEOUT_MS,
            consent_timeout_ms=settings.CONSENT_TIMEOUT_MS,
            price_wait_timeout_ms=settings.PRICE_WAIT_TIMEOUT_MS,
            scroll_step_px=settings.SCROLL_STEP_PX,
            scroll_interval_ms=settings.SCROLL_INTERVAL_MS,
            max_scroll_steps=settings.MAX_SCROLL_STEPS,
        )


class PageSession(BaseSession):
    """Page session backed by a headless Chromium driven through Playwright.

    Site subclasses provide the search URL template and the selectors for
    the consent banner and for price elements. Each session starts its own
    Playwright driver, so sessions on different threads never share state.
    """

    search_url_template: str = ""
    consent_selector: Optional[str] = None
    price_selector: Optional[str] = None

    def __init__(
        self,
        name: str,
        context: Optional[RequestContext] = None,
        config: Optional[SessionConfig] = None,
    ):
        super().__init__(name, context)
        self.config = config or SessionConfig()
        self._playwright = None
        self._browser = None
        self._browser_context = None
        self._page = None

    def build_url(self, query: SearchQuery) -> str:
        """Escape the query term into the site's search URL."""
        return self.search_url_template.format(query=quote(query.term, safe="-_.!~*'()"))

    def open(self) -> None:
        self.logger.info("Launching headless browser")
        try:
            # Each session gets its own driver so threads never share one
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.config.headless, args=LAUNCH_ARGS
            )
            self._browser_context = self._browser.new_context(
                user_agent=self.config.user_agent,
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
            )
            self._page = self._browser_context.new_page()
            # Images, fonts and media only slow the page down
            if self.config.block_resources:
                self._page.route("**/*", self._block_heavy_resources)
        except Exception as e:
            self.logger.error("Could not launch browser: %s", str(e))
            # Tear down whatever did start; a cleanup error must not hide the launch error
            try:
                self._release()
            except Exception as release_error:  # pylint: disable=broad-exception-caught
                self.logger.warning("Error while releasing partial launch: %s", str(release_error))
            raise ContextAcquisitionFailure(f"Could not launch browser: {e}") from e
        self.logger.info("Browser ready")

    @staticmethod
    def _block_heavy_resources(route):
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            route.abort()
        else:
            route.continue_()

    def navigate(self, query: SearchQuery, timeout_ms: Optional[int] = None) -> bool:
        timeout = timeout_ms or self.config.navigation_timeout_ms
        url = self.build_url(query)

        self.logger.info("Navigating to %s", url)
        try:
            self._page.goto(url, wait_until=self.config.wait_until, timeout=timeout)
        except PlaywrightTimeoutError:
            # A slow page still has usable markup, keep going with what loaded
            self._degrade(
                NavigationTimeout(f"Page did not settle within {timeout} ms, using partial markup")
            )
            return False
        except PlaywrightError as e:
            self.logger.error("Navigation to %s failed: %s", url, str(e))
            raise NavigationFailure(f"Could not load {url}: {e}") from e
        return True

    def _probe(self, selector: str, timeout_ms: int, state: str = "visible"):
        """Return a locator for the first match, or None if it cannot be found.

        A timeout means the element is simply not there. Any other Playwright
        error (the page re-navigating under us, a closed target) is treated the
        same way: probes never fail the request.
        """
        locator = self._page.locator(selector).first
        try:
            locator.wait_for(state=state, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return None
        except PlaywrightError as e:
            self.logger.warning("Probe for %s failed: %s", selector, str(e))
            return None
        return locator

    def dismiss_consent_banner(self, timeout_ms: Optional[int] = None) -> bool:
        if not self.consent_selector:
            return False

        timeout = timeout_ms or self.config.consent_timeout_ms
        button = self._probe(self.consent_selector, timeout)
        if button is None:
            self._degrade(ElementNotFound("No consent banner present"), level=logging.INFO)
            return False

        try:
            button.click(timeout=timeout)
        except PlaywrightError as e:
            # Overlay detached or re-rendered between probe and click
            self.logger.warning("Consent banner found but could not be clicked: %s", str(e))
            return False
        self.logger.info("Consent banner dismissed")
        return True

    def trigger_lazy_load(self) -> int:
        """Scroll down in fixed steps until the bottom of the document is reached.

        Geometry is re-measured after every step so content appended by lazy
        loading extends the walk. ``max_scroll_steps`` stops pages that keep
        growing forever.
        """
        step = self.config.scroll_step_px
        scrolled = 0
        steps = 0
        try:
            while steps < self.config.max_scroll_steps:
                self._page.evaluate(SCROLL_BY_JS, step)
                scrolled += step
                steps += 1

                scroll_height, viewport_height = self._page.evaluate(PAGE_GEOMETRY_JS)
                # Stop once the viewport bottom has reached the document bottom
                if scrolled >= scroll_height - viewport_height:
                    break
                self._page.wait_for_timeout(self.config.scroll_interval_ms)
            else:
                self.logger.warning("Stopped scrolling after %d steps, page still growing", steps)
        except PlaywrightError as e:
            # Whatever was loaded so far is still worth extracting
            self.logger.warning("Scrolling interrupted after %d steps: %s", steps, str(e))

        self.logger.info("Scrolled %d px in %d steps", scrolled, steps)
        return steps

    def wait_for_prices(self, timeout_ms: Optional[int] = None) -> bool:
        if not self.price_selector:
            return False

        timeout = timeout_ms or self.config.price_wait_timeout_ms
        if self._probe(self.price_selector, timeout, state="attached") is None:
            self._degrade(ElementNotFound(f"No price elements appeared within {timeout} ms"))
            return False
        return True

    def capture(self, need_image: bool = False) -> PageArtifact:
        try:
            markup = self._page.content()
        except PlaywrightError as e:
            raise NavigationFailure(f"Could not read page content: {e}") from e

        # Screenshots are expensive, only take one when OCR needs it
        image = None
        if need_image:
            self.logger.info("Taking full-page screenshot")
            image = self._page.screenshot(full_page=True, type="png")
        return PageArtifact(markup=markup, image=image)

    def _release(self) -> None:
        # Close innermost first; any of these may be missing after a partial open
        for resource in (self._page, self._browser_context, self._browser):
            if resource is None:
                continue
            try:
                resource.close()
            except PlaywrightError as e:
                self.logger.debug("Ignoring close error: %s", str(e))
        if self._playwright is not None:
            self._playwright.stop()

        self._page = None
        self._browser_context = None
        self._browser = None
        self._playwright = None
