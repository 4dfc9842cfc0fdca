"""PlaywrightCredentialAcquirer - logs in with headless Chromium and harvests cookies.

Login flow: email, continue, password, submit, optional one-time code, then a
success check on the final URL. Each step tries a list of selectors in order
because the login markup changes between rollouts.
"""

import asyncio
import os
import random
from typing import Any, Awaitable, Callable, Optional, Sequence
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from revtrail.core.config import settings
from revtrail.core.exceptions import (
    OtpCodeRequiredException,
    RevtrailException,
    SessionAcquisitionException,
)
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.schemas.credential_blob import AcquiredCredential

EMAIL_SELECTORS = (
    'input[type="email"]',
    'input[name="email"]',
    'input[placeholder*="email" i]',
    "#email",
)
CONTINUE_SELECTORS = (
    'button[type="submit"]',
    'button:has-text("Continue")',
    'button:has-text("Next")',
)
PASSWORD_SELECTORS = (
    'input[type="password"]',
    'input[name="password"]',
    'input[placeholder*="password" i]',
    "#password",
)
SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'button:has-text("Sign in")',
    'button:has-text("Log in")',
)
OTP_SELECTORS = (
    'input[name="code"]',
    'input[name="authCode"]',
    'input[placeholder*="code" i]',
    'input[placeholder*="verification" i]',
    'input[type="text"][maxlength="6"]',
)
OTP_SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'button:has-text("Verify")',
    'button:has-text("Continue")',
)
LOGIN_PATH_MARKERS = ("/login", "/signin", "/sign-in")

NAVIGATION_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-User": "?1",
    "Sec-Fetch-Dest": "document",
    "Upgrade-Insecure-Requests": "1",
}
HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', {get: () => false});"


def serialize_cookies(cookies: Sequence[dict]) -> str:
    """Join browser cookies into a ``name=value; ...`` header value."""
    return "; ".join(f"{c['name']}={c['value']}" for c in cookies)


class PlaywrightCredentialAcquirer:
    """Drives the platform's login form in Chromium.

    Nothing is stored here; the caller decides what to do with the cookies.
    The browser is always released unless ``debug`` is set, in which case it
    stays open (and visible) for inspection.
    """

    def __init__(
        self,
        playwright_factory: Callable[[], Any] = async_playwright,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the acquirer.

        Args:
            playwright_factory: Returns an object whose ``start()`` yields a Playwright
            sleep: Sleep used for human-like pauses
            logger: Contextual logger
        """
        self._playwright_factory = playwright_factory
        self._sleep = sleep
        self._logger = logger or default_logger.with_context(component="credential_acquirer")
        self._login_url = f"{settings.AIRTABLE_BASE_URL}/login"
        self._platform_host = urlparse(settings.AIRTABLE_BASE_URL).hostname or ""

    async def acquire_credential(
        self,
        email: str,
        password: str,
        otp_code: Optional[str] = None,
        debug: bool = False,
    ) -> AcquiredCredential:
        """Log in and return the session cookies.

        Raises:
            OtpCodeRequiredException: The login asked for a code and none was given
            SessionAcquisitionException: Any other failure
        """
        playwright = None
        browser = None
        page = None
        try:
            playwright = await self._playwright_factory().start()
            browser = await playwright.chromium.launch(
                headless=settings.BROWSER_HEADLESS and not debug,
                args=list(settings.BROWSER_ARGS),
            )
            context = await browser.new_context(
                user_agent=settings.USER_AGENT,
                viewport={"width": 1920, "height": 1080},
                extra_http_headers=NAVIGATION_HEADERS,
            )
            await context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
            page = await context.new_page()

            mfa_required = await self._run_login(page, email, password, otp_code, debug)

            await self._sleep(2.0)
            cookies = await context.cookies(page.url)
            if not cookies:
                raise SessionAcquisitionException("No cookies retrieved after login")

            names = [c["name"] for c in cookies]
            self._logger.info(f"[Acquirer] Login succeeded, {len(cookies)} cookies captured")
            return AcquiredCredential(
                cookies=serialize_cookies(cookies),
                mfa_required=mfa_required,
                cookie_names=names,
            )
        except RevtrailException:
            await self._screenshot(page, "error", debug)
            raise
        except Exception as e:
            await self._screenshot(page, "error", debug)
            raise SessionAcquisitionException(f"Browser automation failed: {e}") from e
        finally:
            if debug and browser is not None:
                self._logger.info("[Acquirer] Debug mode: leaving browser open")
            else:
                if browser is not None:
                    await browser.close()
                if playwright is not None:
                    await playwright.stop()

    async def _run_login(
        self,
        page: Any,
        email: str,
        password: str,
        otp_code: Optional[str],
        debug: bool,
    ) -> bool:
        """Walk the login form; returns whether a one-time code was needed."""
        await page.goto(
            self._login_url,
            wait_until="networkidle",
            timeout=settings.BROWSER_NAVIGATION_TIMEOUT_MS,
        )
        await self._sleep(random.uniform(2.0, 3.0))
        await self._screenshot(page, "step1-login-page", debug)

        if not await self._type_into_first(page, EMAIL_SELECTORS, email, timeout_ms=5000):
            raise SessionAcquisitionException("Could not find email input field")
        await self._sleep(1.0)
        await self._click_first(page, CONTINUE_SELECTORS)
        await self._sleep(random.uniform(2.0, 3.0))
        await self._screenshot(page, "step2-after-email", debug)

        if not await self._type_into_first(page, PASSWORD_SELECTORS, password, timeout_ms=10000):
            raise SessionAcquisitionException("Could not find password input field")
        await self._sleep(1.0)
        await self._click_first(page, SUBMIT_SELECTORS)
        await self._sleep(random.uniform(3.0, 4.0))
        await self._screenshot(page, "step3-after-password", debug)

        otp_selector = await self._find_present(page, OTP_SELECTORS)
        mfa_required = otp_selector is not None
        if mfa_required:
            if not otp_code:
                self._logger.warning("[Acquirer] One-time code requested but not provided")
                await self._screenshot(page, "step4-otp-required", debug)
                raise OtpCodeRequiredException()
            await self._type_human(page, otp_selector, otp_code)
            await self._sleep(1.0)
            await self._click_first(page, OTP_SUBMIT_SELECTORS)
            await self._sleep(3.0)
            await self._screenshot(page, "step5-after-otp", debug)

        self._check_logged_in(page.url)
        await self._screenshot(page, "step6-logged-in", debug)
        return mfa_required

    def _check_logged_in(self, current_url: str) -> None:
        parsed = urlparse(current_url)
        if any(marker in parsed.path for marker in LOGIN_PATH_MARKERS):
            raise SessionAcquisitionException(
                f"Login failed - still on login page. Current URL: {current_url}"
            )
        host = parsed.hostname or ""
        if not (host == self._platform_host or host.endswith(f".{self._platform_host}")):
            raise SessionAcquisitionException(
                f"Unexpected redirect - not on platform domain. Current URL: {current_url}"
            )

    async def _type_into_first(
        self, page: Any, selectors: Sequence[str], text: str, timeout_ms: int
    ) -> bool:
        for selector in selectors:
            try:
                await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
            except PlaywrightTimeoutError:
                self._logger.debug(f"[Acquirer] Selector not found: {selector}")
                continue
            await self._type_human(page, selector, text)
            return True
        return False

    async def _type_human(self, page: Any, selector: str, text: str) -> None:
        """Type with per-character jitter and a short pause before and after."""
        await page.click(selector)
        await self._sleep(random.uniform(0.5, 1.0))
        for char in text:
            await page.keyboard.type(char)
            await self._sleep(random.uniform(0.05, 0.15))
        await self._sleep(random.uniform(0.5, 1.0))

    async def _find_present(self, page: Any, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            if await page.query_selector(selector):
                self._logger.info(f"[Acquirer] One-time code input detected ({selector})")
                return selector
        return None

    async def _click_first(self, page: Any, selectors: Sequence[str]) -> bool:
        """Click the first present selector and wait for the page to settle."""
        for selector in selectors:
            element = await page.query_selector(selector)
            if not element:
                continue
            await element.click()
            try:
                await page.wait_for_load_state("networkidle", timeout=30000)
            except PlaywrightTimeoutError:
                self._logger.debug(f"[Acquirer] No navigation settled after clicking {selector}")
            return True
        return False

    async def _screenshot(self, page: Any, name: str, debug: bool) -> None:
        if not debug or page is None:
            return
        path = os.path.join(settings.BROWSER_SCREENSHOT_DIR, f"{name}.png")
        try:
            await page.screenshot(path=path)
        except PlaywrightError as e:
            self._logger.debug(f"[Acquirer] Screenshot {path} failed: {e}")
