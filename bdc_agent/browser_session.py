"""
VinSolutions Browser Session
============================
Chromium launch options and the login flow.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence

from playwright.sync_api import Browser, ElementHandle, Page, Playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import LoginError

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--no-first-run",
    "--disable-default-apps",
]

VIEWPORT = {"width": 1920, "height": 1080}
DEFAULT_TIMEOUT_MS = 60_000
LOGIN_FORM_TIMEOUT_MS = 20_000
SUBMIT_NAVIGATION_TIMEOUT_MS = 60_000
LOGIN_MARKER_TIMEOUT_MS = 15_000
TYPING_DELAY_MS = 50
POST_LOGIN_SETTLE_SECONDS = 3.0

# Priority order matters: first selector that matches wins.
USERNAME_SELECTORS = [
    'input[name="username"]',
    'input[type="email"]',
    'input[name="loginId"]',
    'input[id*="user"]',
    'input[placeholder*="mail"]',
    'input[placeholder*="sername"]',
]
PASSWORD_SELECTORS = [
    'input[name="password"]',
    'input[type="password"]',
    'input[placeholder*="assword"]',
]
SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Login")',
    'button:has-text("Sign In")',
]


def launch_browser(
    playwright: Playwright,
    headless: bool = True,
    executable_path: Optional[str] = None,
) -> Browser:
    logger.info("Launching Chromium (headless=%s)", headless)
    return playwright.chromium.launch(
        headless=headless,
        executable_path=executable_path or None,
        args=BROWSER_ARGS,
    )


def new_page(browser: Browser) -> Page:
    page = browser.new_page(viewport=VIEWPORT)
    page.set_default_timeout(DEFAULT_TIMEOUT_MS)
    return page


def first_match(page: Page, selectors: Sequence[str]) -> Optional[ElementHandle]:
    for selector in selectors:
        handle = page.query_selector(selector)
        if handle is not None:
            return handle
    return None


class VinSolutionsLogin:
    """
    Log a Playwright page into VinSolutions.

    Usage:
        login = VinSolutionsLogin(login_url, username, password)
        login.login(page)
    """

    def __init__(
        self,
        login_url: str,
        username: str,
        password: str,
        logged_in_selector: Optional[str] = None,
        settle_seconds: float = POST_LOGIN_SETTLE_SECONDS,
    ):
        self.login_url = login_url
        self.username = username
        self.password = password
        self.logged_in_selector = logged_in_selector
        self.settle_seconds = settle_seconds

    def login(self, page: Page) -> None:
        logger.info("Opening login page %s", self.login_url)
        try:
            page.goto(self.login_url, wait_until="networkidle", timeout=DEFAULT_TIMEOUT_MS)
        except PlaywrightError as e:
            raise LoginError(f"login page {self.login_url} did not load: {e}") from e

        self._enter_credentials(page)
        self._submit(page)
        self._verify(page)

        logger.info("Logged in successfully")
        if self.settle_seconds:
            time.sleep(self.settle_seconds)

    def _enter_credentials(self, page: Page) -> None:
        logger.info("Waiting for login form...")
        try:
            page.wait_for_selector(", ".join(USERNAME_SELECTORS), timeout=LOGIN_FORM_TIMEOUT_MS)
        except PlaywrightTimeoutError as e:
            raise LoginError(
                f"login fields not found on {self.login_url} within "
                f"{LOGIN_FORM_TIMEOUT_MS // 1000}s"
            ) from e

        username_field = first_match(page, USERNAME_SELECTORS)
        password_field = first_match(page, PASSWORD_SELECTORS)
        if username_field is None or password_field is None:
            missing: List[str] = []
            if username_field is None:
                missing.append("username")
            if password_field is None:
                missing.append("password")
            raise LoginError(f"login fields not found: {', '.join(missing)}")

        logger.info("Entering credentials")
        username_field.type(self.username, delay=TYPING_DELAY_MS)
        password_field.type(self.password, delay=TYPING_DELAY_MS)

    def _submit(self, page: Page) -> None:
        logger.info("Submitting login form (Enter)")
        try:
            with page.expect_navigation(
                wait_until="networkidle", timeout=SUBMIT_NAVIGATION_TIMEOUT_MS
            ):
                page.keyboard.press("Enter")
            return
        except PlaywrightTimeoutError:
            logger.warning("Navigation via Enter failed, trying submit button...")

        button = first_match(page, SUBMIT_SELECTORS)
        if button is None:
            raise LoginError("login form not submittable: no submit control found")
        try:
            with page.expect_navigation(
                wait_until="networkidle", timeout=SUBMIT_NAVIGATION_TIMEOUT_MS
            ):
                button.click()
        except PlaywrightTimeoutError as e:
            raise LoginError(
                "login form not submittable: no navigation after clicking submit"
            ) from e

    def _verify(self, page: Page) -> None:
        """
        A navigation alone does not mean we are in: a rejected password
        reloads the same form.
        """
        password_field = first_match(page, PASSWORD_SELECTORS)
        if password_field is not None and password_field.is_visible():
            raise LoginError("login not verified: password field still visible after submit")

        if self.logged_in_selector:
            try:
                page.wait_for_selector(self.logged_in_selector, timeout=LOGIN_MARKER_TIMEOUT_MS)
            except PlaywrightTimeoutError as e:
                raise LoginError(
                    f"login not verified: marker {self.logged_in_selector!r} did not appear"
                ) from e
