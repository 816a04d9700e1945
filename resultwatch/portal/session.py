"""Portal session implementation using a headless Playwright browser."""

from datetime import datetime, timezone
from typing import Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..config import PortalSite, ReconcilerConfig
from ..errors import AcknowledgmentError, AuthError, FetchError
from ..logging_config import get_logger
from ..models import PortalCredentials
from .document import DocumentModel, parse_document

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

USERNAME_SELECTOR = 'input[name="Id"]'
PASSWORD_SELECTOR = 'input[name="password"]'
SUBMIT_SELECTOR = 'button[type="submit"]'


class IPortalSession(Protocol):
    """An authenticated session on the patient portal."""

    async def fetch_rendered_page(self, url: str) -> DocumentModel:
        """Navigate to url and return the rendered page. Raises FetchError."""
        ...

    async def visit(self, url: str) -> None:
        """Open url so the portal records it as seen. Raises AcknowledgmentError."""
        ...

    async def close(self) -> None:
        """Release the session's browser resources."""
        ...


class IPortalClient(Protocol):
    """Opens portal sessions."""

    async def authenticate(self, credentials: PortalCredentials) -> IPortalSession:
        """Log in and return a session. Raises AuthError."""
        ...

    async def close(self) -> None:
        """Shut the client down."""
        ...


class PlaywrightPortalSession:
    """A logged-in browser context. Each acknowledgement visit gets its own page."""

    def __init__(
        self,
        context: BrowserContext,
        page: Page,
        config: ReconcilerConfig,
    ):
        self._context = context
        self._page = page
        self._config = config

    async def fetch_rendered_page(self, url: str) -> DocumentModel:
        """Navigate to url and return the rendered page."""
        try:
            await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._config.step_timeout_seconds * 1000,
            )
            # The notification list is filled in by client-side scripts
            await self._page.wait_for_timeout(self._config.settle_delay_ms)
            html = await self._page.content()
        except PlaywrightTimeoutError as e:
            raise FetchError(f"Timed out loading {url}") from e
        except PlaywrightError as e:
            raise FetchError(f"Failed to load {url}: {e.message}") from e

        return parse_document(
            html,
            url=self._page.url,
            fetched_at=datetime.now(timezone.utc),
        )

    async def visit(self, url: str) -> None:
        """Open url in a fresh page of this session."""
        page = await self._context.new_page()
        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._config.acknowledge_timeout_seconds * 1000,
            )
            await page.wait_for_timeout(1000)
        except PlaywrightError as e:
            raise AcknowledgmentError(f"Failed to visit {url}: {e.message}") from e
        finally:
            await page.close()

    async def close(self) -> None:
        try:
            await self._context.close()
        except PlaywrightError as e:
            logger.warning("Failed to close portal session: %s", e.message)


class PlaywrightPortalClient:
    """Launches Chromium on first use and opens one context per account."""

    def __init__(
        self,
        site: PortalSite | None = None,
        config: ReconcilerConfig | None = None,
    ):
        self._site = site or PortalSite()
        self._config = config or ReconcilerConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def _get_browser(self) -> Browser:
        if self._browser is None or not self._browser.is_connected():
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.headless,
                args=BROWSER_ARGS,
            )
            logger.info("Browser launched")
        return self._browser

    async def authenticate(self, credentials: PortalCredentials) -> IPortalSession:
        """Log in through the portal's login form."""
        try:
            browser = await self._get_browser()
        except PlaywrightError as e:
            raise AuthError(f"Could not start browser: {e.message}") from e

        context: BrowserContext | None = None
        timeout_ms = self._config.login_timeout_seconds * 1000
        try:
            context = await browser.new_context(user_agent=USER_AGENT)
            page = await context.new_page()
            await page.goto(
                self._site.login_url,
                wait_until="domcontentloaded",
                timeout=timeout_ms,
            )
            await page.fill(USERNAME_SELECTOR, credentials.username)
            await page.fill(PASSWORD_SELECTOR, credentials.password)

            try:
                async with page.expect_navigation(
                    wait_until="domcontentloaded", timeout=timeout_ms
                ):
                    await page.click(SUBMIT_SELECTOR)
            except PlaywrightTimeoutError:
                # Some logins finish without a full navigation
                logger.warning(
                    "No navigation after login submit for %s, continuing",
                    credentials.username,
                )

            if self._site.login_path.lower() in page.url.lower():
                raise AuthError("Portal rejected login")
        except AuthError:
            await self._discard(context)
            raise
        except PlaywrightError as e:
            await self._discard(context)
            raise AuthError(f"Login failed: {e.message}") from e

        return PlaywrightPortalSession(context, page, self._config)

    async def _discard(self, context: BrowserContext | None) -> None:
        """Close a context left over from a failed login, if one was opened."""
        if context is None:
            return
        try:
            await context.close()
        except PlaywrightError as e:
            logger.warning("Failed to close login context: %s", e.message)

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
