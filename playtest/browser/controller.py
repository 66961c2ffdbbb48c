"""
Browser Controller - Playwright-based browser session for game testing
"""
import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Locator, Page, async_playwright

from ..config import settings
from ..models.test_spec import TestSpec
from ..utils.errors import Issue, SessionInitializationError, SessionLoadError, classify_error, create_issue
from ..utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

CSS_PREFIXES = ("#", ".", "[", "//")

# Invalid selectors are skipped one by one
DOM_OPTIMIZATION_SCRIPT = """
({hide, remove}) => {
    const each = (selector, fn) => {
        try {
            document.querySelectorAll(selector).forEach(fn);
        } catch (e) {}
    };
    hide.forEach((s) => each(s, (el) => { el.style.display = 'none'; }));
    remove.forEach((s) => each(s, (el) => el.remove()));
}
"""


class BrowserController:
    """
    Playwright-based browser session.
    Handles launch, game loading, element lookup, input and log capture.
    """

    def __init__(self, headless: bool = None):
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.console_logs: List[Dict] = []
        self.issues: List[Issue] = []
        self.state = "idle"

    async def initialize(self):
        """
        Launch the browser. Safe to call more than once.

        Raises:
            SessionInitializationError: If the browser cannot be launched
        """
        if self.page is not None:
            return self.page

        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(
                headless=self.headless,
                args=['--disable-web-security', '--autoplay-policy=no-user-gesture-required']
            )
            self.context = await self.browser.new_context(
                viewport={'width': settings.VIEWPORT_WIDTH, 'height': settings.VIEWPORT_HEIGHT}
            )
            self.page = await self.context.new_page()
        except Exception as e:
            self.state = "error"
            await self.cleanup()
            raise SessionInitializationError(f"Failed to launch browser: {e}") from e

        self.page.on("console", self._handle_console)
        self.page.on("pageerror", self._handle_page_error)
        self.page.set_default_timeout(settings.BROWSER_TIMEOUT)
        logger.info(f"Browser session initialized (headless={self.headless})")
        return self.page

    async def load_game(self, url: str, spec: TestSpec) -> Page:
        """
        Navigate to the game, retrying transient failures.

        Args:
            url: Game URL
            spec: Test spec providing the load timeout and retry budget

        Raises:
            SessionLoadError: When the page never loads
        """
        await self.initialize()
        self.state = "loading"

        async def navigate():
            await self.page.goto(url, wait_until="load", timeout=spec.timeouts.load)

        try:
            await retry_with_backoff(
                navigate,
                max_attempts=spec.retries + 1,
                base_delay_ms=settings.ACTION_RETRY_BASE_DELAY_MS,
                max_delay_ms=settings.ACTION_RETRY_MAX_DELAY_MS,
            )
        except Exception as e:
            self.state = "error"
            self.issues.append(create_issue(classify_error(e, is_load=True), f"Failed to load {url}: {e}"))
            raise SessionLoadError(f"Failed to load game: {e}", url) from e

        self.state = "active"
        logger.info(f"Game loaded: {url}")
        await self.apply_dom_optimization(spec)
        return self.page

    async def apply_dom_optimization(self, spec: TestSpec):
        """Hide and remove the elements named by spec.dom_optimization."""
        options = spec.dom_optimization
        if options is None or not (options.hide_selectors or options.remove_selectors):
            return

        try:
            await self._require_page().evaluate(
                DOM_OPTIMIZATION_SCRIPT,
                {"hide": options.hide_selectors, "remove": options.remove_selectors},
            )
        except Exception as e:
            # Page is usable as loaded
            logger.warning(f"DOM optimization failed: {e}")
            return
        logger.debug(
            f"DOM optimization applied ({len(options.hide_selectors)} hide, "
            f"{len(options.remove_selectors)} remove)"
        )

    async def locate(self, label: str, timeout: int = None) -> List[Locator]:
        """
        Find visible elements matching a human description.

        Tries CSS when the label looks like a selector, then the
        button role, visible text, aria label and title.

        Args:
            label: Selector or description such as "start button"
            timeout: Time to wait for the first strategy to match, in ms

        Returns:
            Visible locators, best strategy first
        """
        page = self._require_page()
        if label.startswith(CSS_PREFIXES):
            strategies = [page.locator(label)]
        else:
            pattern = re.compile(re.escape(label), re.IGNORECASE)
            strategies = [
                page.get_by_role("button", name=pattern),
                page.get_by_role("link", name=pattern),
                page.get_by_text(pattern),
                page.get_by_label(pattern),
                page.get_by_title(pattern),
            ]

        if timeout:
            combined = strategies[0]
            for locator in strategies[1:]:
                combined = combined.or_(locator)
            try:
                await combined.first.wait_for(state="visible", timeout=timeout)
            except Exception:
                logger.debug(f"No element became visible for '{label}' within {timeout}ms")

        for locator in strategies:
            count = await locator.count()
            visible = []
            for i in range(count):
                candidate = locator.nth(i)
                if await candidate.is_visible():
                    visible.append(candidate)
            if visible:
                return visible
        return []

    async def click_locator(self, locator: Locator, timeout: int = None):
        await locator.click(timeout=timeout)

    async def click_text(self, text: str, timeout: int = None):
        """Click the first element whose text contains `text`."""
        page = self._require_page()
        await page.get_by_text(re.compile(re.escape(text), re.IGNORECASE)).first.click(timeout=timeout)

    async def click_at_position(self, x: int, y: int):
        """
        Click at specific coordinates.

        Args:
            x: X coordinate
            y: Y coordinate
        """
        await self._require_page().mouse.click(x, y)

    async def press_key(self, key: str):
        """
        Press a keyboard key.

        Args:
            key: Key to press (e.g., 'Enter', 'Escape', 'ArrowUp')
        """
        await self._require_page().keyboard.press(key)

    async def key_down(self, key: str):
        await self._require_page().keyboard.down(key)

    async def key_up(self, key: str):
        await self._require_page().keyboard.up(key)

    async def hold_keys(self, keys: List[str], duration_ms: int):
        """Hold one or more keys together for a duration."""
        for key in keys:
            await self.key_down(key)
        try:
            await asyncio.sleep(duration_ms / 1000)
        finally:
            for key in reversed(keys):
                await self.key_up(key)

    async def screenshot(self, path: str, full_page: bool = False) -> str:
        """
        Take a screenshot.

        Args:
            path: Path to save the screenshot
            full_page: Capture full page or just viewport

        Returns:
            Path to the saved screenshot
        """
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        await self._require_page().screenshot(path=path, full_page=full_page)
        return path

    async def screenshot_bytes(self) -> bytes:
        return await self._require_page().screenshot()

    def get_console_logs(self) -> List[str]:
        """Console output as "[type] text" lines."""
        return [f"[{log['type']}] {log['text']}" for log in self.console_logs]

    def get_issues(self) -> List[Issue]:
        return list(self.issues)

    def is_connected(self) -> bool:
        return bool(self.browser and self.browser.is_connected() and self.page and not self.page.is_closed())

    async def restart(self):
        """Drop the current browser and its collected logs; the next initialize() starts fresh."""
        await self.cleanup()
        self.console_logs.clear()
        self.issues.clear()
        self.state = "idle"

    async def cleanup(self):
        """Stop the browser and clean up resources."""
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self.playwright:
                await self.playwright.stop()
        finally:
            self.context = None
            self.browser = None
            self.playwright = None
            self.page = None
            self.state = "closed"

    def _require_page(self) -> Page:
        if self.page is None or self.page.is_closed():
            raise SessionInitializationError("Browser session is not active (connection closed)")
        return self.page

    def _handle_console(self, message):
        """Handle console messages."""
        self.console_logs.append({
            "timestamp": datetime.now().isoformat(),
            "type": message.type,
            "text": message.text,
        })

    def _handle_page_error(self, error):
        """Uncaught exceptions in the game page."""
        self.console_logs.append({
            "timestamp": datetime.now().isoformat(),
            "type": "error",
            "text": str(error),
        })
