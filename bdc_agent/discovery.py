"""
discovery.py

Find the inventory grid after login.

VinConnect is a multi-frame legacy app behind a client-side router: the grid
may render in the top-level document in one session and inside a nested
iframe in the next, and nothing signals when it is done rendering. So instead
of a single wait_for_selector we:

  1. nudge the app toward the inventory view (nav click, else deep link),
  2. poll the frame tree, scoring every frame by how many table cells it has,
  3. take the first frame whose score clears MIN_TABLE_CELLS.

Scoring and selection are plain functions so they can be tested without a
browser or the polling harness.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Frame, Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import InventoryTableNotFound

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 15
ATTEMPT_DELAY_SECONDS = 2.0
IFRAME_WAIT_MS = 3_000
NAV_CONTROL_TIMEOUT_MS = 5_000
NAVIGATION_TIMEOUT_MS = 60_000

# A real inventory page has dozens of rows x 8+ columns. Loading placeholders
# and widgets only ever have a handful of cells.
MIN_TABLE_CELLS = 50

# Frames served from the identity provider are login/session widgets,
# never the inventory.
IDENTITY_PROVIDER_DOMAINS = (
    "signin.coxautoinc.com",
    "auth.coxautoinc.com",
    "login.microsoftonline.com",
    "okta.com",
)

INVENTORY_NAV_TEXT = re.compile(r"^\s*inventory\s*$", re.IGNORECASE)
BROWSE_INVENTORY_TEXT = "Browse Inventory"


# ---------------------- SCORING ----------------------


def count_table_cells(html: str) -> int:
    """Number of ``td`` cells in the document, or 0 when it has no table at all."""
    soup = BeautifulSoup(html, "html.parser")
    if soup.find("table") is None:
        return 0
    return len(soup.find_all("td"))


def is_identity_provider(url: str, domains: Iterable[str] = IDENTITY_PROVIDER_DOMAINS) -> bool:
    host = (urlparse(url or "").hostname or "").lower()
    if not host:
        return False
    return any(host == d or host.endswith("." + d) for d in domains)


def candidate_frames(
    frames: Sequence[Frame], excluded_domains: Iterable[str] = IDENTITY_PROVIDER_DOMAINS
) -> List[Frame]:
    excluded = tuple(excluded_domains)
    return [f for f in frames if not is_identity_provider(f.url, excluded)]


def score_frame(frame: Frame) -> int:
    try:
        html = frame.content()
    except PlaywrightError as e:
        # Frames get detached while the router swaps views.
        logger.debug("Could not read frame %s: %s", frame.url, e)
        return 0
    return count_table_cells(html)


def select_inventory_frame(
    frames: Sequence[Frame],
    min_cells: int = MIN_TABLE_CELLS,
    scorer: Callable[[Frame], int] = score_frame,
) -> Optional[Frame]:
    """First frame (in enumeration order) whose cell count exceeds ``min_cells``."""
    for frame in frames:
        cells = scorer(frame)
        if cells > min_cells:
            logger.info("Inventory table found in frame %s (%d cells)", frame.url, cells)
            return frame
        if cells:
            logger.debug("Frame %s has only %d cells, skipping", frame.url, cells)
    return None


# ---------------------- NAVIGATION ----------------------


def _click_if_visible(page: Page, locator_factory: Callable[[], object], label: str) -> bool:
    locator = locator_factory().first
    try:
        locator.wait_for(state="visible", timeout=NAV_CONTROL_TIMEOUT_MS)
    except PlaywrightTimeoutError:
        logger.debug("No '%s' control on the page", label)
        return False
    logger.info("Clicking '%s' navigation control", label)
    locator.click()
    return True


def open_inventory(page: Page, inventory_url: str) -> str:
    """
    Best-effort move toward the inventory view. Returns how it got there:
    "nav", "browse_link" or "deep_link".
    """
    if _click_if_visible(page, lambda: page.get_by_text(INVENTORY_NAV_TEXT), "Inventory"):
        return "nav"
    if _click_if_visible(
        page, lambda: page.get_by_text(BROWSE_INVENTORY_TEXT), BROWSE_INVENTORY_TEXT
    ):
        return "browse_link"

    logger.info("Navigating to inventory deep link: %s", inventory_url)
    try:
        page.goto(inventory_url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
    except PlaywrightTimeoutError as e:
        # The app keeps polling in the background, so networkidle may never come.
        logger.warning("Deep link did not settle (%s), polling for the table anyway", e)
    return "deep_link"


# ---------------------- POLLING ----------------------


def find_inventory_frame(
    page: Page,
    max_attempts: int = MAX_ATTEMPTS,
    delay_seconds: float = ATTEMPT_DELAY_SECONDS,
    min_cells: int = MIN_TABLE_CELLS,
    excluded_domains: Iterable[str] = IDENTITY_PROVIDER_DOMAINS,
    sleep: Callable[[float], None] = time.sleep,
) -> Frame:
    """
    Poll the frame tree until a frame with a dense enough table shows up.

    Raises InventoryTableNotFound once ``max_attempts`` attempts are used up.
    """
    excluded = tuple(excluded_domains)
    for attempt in range(1, max_attempts + 1):
        logger.info("Looking for inventory table (attempt %d/%d)", attempt, max_attempts)
        try:
            page.wait_for_selector("iframe", timeout=IFRAME_WAIT_MS, state="attached")
        except PlaywrightTimeoutError:
            logger.info("  -> no iframe yet")
        else:
            frames = candidate_frames(page.frames, excluded)
            frame = select_inventory_frame(frames, min_cells=min_cells)
            if frame is not None:
                return frame
            logger.info("  -> %d frames checked, no inventory table yet", len(frames))

        if attempt < max_attempts:
            sleep(delay_seconds)

    raise InventoryTableNotFound(
        f"inventory table not found after {max_attempts} attempts "
        f"({int(max_attempts * delay_seconds)}s)"
    )
