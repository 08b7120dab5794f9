"""Web page text extraction through a headless browser.

Each call renders the page in its own Chromium instance and always closes
it again, whatever happens during navigation.
"""
import asyncio
import re
from typing import Awaitable, Callable, Optional, Protocol

import structlog
from playwright.async_api import async_playwright

from chatme import config
from chatme.errors import FetchError

logger = structlog.get_logger()

_TAG_RE = re.compile(r"<[^>]*>?")
_WHITESPACE_RE = re.compile(r"\s+")


class RenderSession(Protocol):
    """An isolated rendering session that can load one page."""

    async def load(self, url: str, timeout: float, wait_until: str) -> str:
        ...

    async def close(self) -> None:
        ...


class PlaywrightSession:
    """Headless Chromium session backed by Playwright."""

    def __init__(self):
        self._playwright = None
        self._browser = None

    async def start(self) -> "PlaywrightSession":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True)
        return self

    async def load(self, url: str, timeout: float, wait_until: str) -> str:
        context = await self._browser.new_context()
        page = await context.new_page()
        # Playwright takes milliseconds
        await page.goto(url, wait_until=wait_until, timeout=timeout * 1000)
        return await page.evaluate("() => document.body.innerText")

    async def close(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


async def launch_playwright_session() -> PlaywrightSession:
    """Start a fresh headless browser."""
    session = PlaywrightSession()
    try:
        return await session.start()
    except BaseException:
        await session.close()
        raise


def clean_page_text(raw: str) -> str:
    """Strip leftover markup and collapse whitespace to single spaces."""
    text = _TAG_RE.sub("", raw or "")
    return _WHITESPACE_RE.sub(" ", text).strip()


class ContentExtractor:
    """Fetch a URL in a headless browser and return its visible text."""

    def __init__(
        self,
        timeout: float = None,
        wait_until: str = "domcontentloaded",
        session_factory: Optional[Callable[[], Awaitable[RenderSession]]] = None,
    ):
        """Initialize the extractor.

        Args:
            timeout: Page load deadline in seconds (default from config)
            wait_until: Navigation wait condition; DOM parsed, not network idle
            session_factory: Coroutine function opening a rendering session
        """
        self.timeout = timeout or config.PAGE_LOAD_TIMEOUT
        self.wait_until = wait_until
        self._session_factory = session_factory or launch_playwright_session

    async def extract(self, url: str) -> str:
        """Load a page and return its visible text.

        Args:
            url: Page URL

        Returns:
            Whitespace-joined page text with tags removed

        Raises:
            FetchError: If the URL is empty, unreachable or too slow to load
        """
        if not url or not url.strip():
            raise FetchError("No URL provided", url=url)

        logger.info("page_extraction_started", url=url, timeout=self.timeout)

        try:
            session = await self._session_factory()
        except Exception as e:
            logger.error(
                "browser_launch_failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise FetchError(f"Failed to launch browser: {e}", url=url) from e

        try:
            raw = await asyncio.wait_for(
                session.load(url, timeout=self.timeout, wait_until=self.wait_until),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("page_load_timeout", url=url, timeout=self.timeout)
            raise FetchError(
                f"Timed out loading {url} after {self.timeout}s", url=url
            ) from e
        except Exception as e:
            logger.error(
                "page_load_failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise FetchError(f"Failed to load {url}: {e}", url=url) from e
        finally:
            await session.close()
            logger.debug("render_session_closed", url=url)

        text = clean_page_text(raw)

        logger.info("page_extracted", url=url, text_length=len(text))

        return text
