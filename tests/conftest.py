"""Shared test fixtures: settings on a temp database, fake Playwright pages/frames, fake LLM."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from bdc_agent import db
from bdc_agent.config import Settings


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        vin_username="rep@example.com",
        vin_password="hunter2",
        vin_login_url="https://www.vinsolutions.com/",
        vin_inventory_url="https://vinsolutions.app.coxautoinc.com/vinconnect/#/inventory",
        vin_logged_in_selector=None,
        openai_api_key="sk-test",
        openai_model="gpt-4o-mini",
        openai_timeout=12.0,
        agent_bearer="secret-token",
        db_path=tmp_path / "inventory.db",
        port=3000,
        chromium_executable_path=None,
        headless=True,
        allowed_origins=["*"],
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def conn(settings: Settings):
    """A fresh inventory database for each test."""
    db.init_db(settings.db_path)
    connection = db.get_connection(settings.db_path)
    yield connection
    connection.close()


def inventory_html(rows: int = 10, cols: int = 8) -> str:
    """A header row plus ``rows`` data rows of ``cols`` cells each."""
    header = "<tr>" + "".join(f"<th>h{i}</th>" for i in range(cols)) + "</tr>"
    body = "".join(
        "<tr>" + "".join(f"<td>r{r}c{c}</td>" for c in range(cols)) + "</tr>" for r in range(rows)
    )
    return f"<html><body><table>{header}{body}</table></body></html>"


# ---------------------- FAKE PLAYWRIGHT ----------------------


class FakeFrame:
    def __init__(self, url: str, html: str = "<html><body></body></html>"):
        self.url = url
        self.html = html

    def content(self) -> str:
        return self.html


class FakeDiscoveryPage:
    """
    ``frames_for(attempt)`` returns the frame list visible on that attempt,
    or None when no iframe exists yet.
    """

    def __init__(self, frames_for: Callable[[int], Optional[List[FakeFrame]]]):
        self.frames_for = frames_for
        self.attempts = 0
        self._frames: List[FakeFrame] = []

    def wait_for_selector(self, selector, timeout=None, state=None):
        self.attempts += 1
        frames = self.frames_for(self.attempts)
        if frames is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        self._frames = frames

    @property
    def frames(self) -> List[FakeFrame]:
        return self._frames


class FakeElement:
    def __init__(self, visible: bool = True):
        self.typed: List[str] = []
        self.clicks = 0
        self.visible = visible

    def type(self, text: str, delay: int = 0) -> None:
        self.typed.append(text)

    def click(self) -> None:
        self.clicks += 1

    def is_visible(self) -> bool:
        return self.visible


class FakeKeyboard:
    def __init__(self):
        self.pressed: List[str] = []

    def press(self, key: str) -> None:
        self.pressed.append(key)


class FakeLoginPage:
    """
    ``elements`` maps selectors to FakeElements. ``navigations`` lists the
    outcome of each expect_navigation block in order: "ok" or "timeout".
    """

    def __init__(
        self,
        elements: Dict[str, FakeElement],
        navigations: Optional[List[str]] = None,
        form_appears: bool = True,
        goto_error: Optional[Exception] = None,
    ):
        self.elements = elements
        self.goto_error = goto_error
        self.navigations = list(navigations or ["ok"])
        self.form_appears = form_appears
        self.keyboard = FakeKeyboard()
        self.visited: List[str] = []
        self.waited_for: List[str] = []

    def goto(self, url: str, **kwargs) -> None:
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error

    def wait_for_selector(self, selector: str, timeout=None, state=None):
        self.waited_for.append(selector)
        if not self.form_appears:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        if "," not in selector and selector not in self.elements:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    def query_selector(self, selector: str) -> Optional[FakeElement]:
        return self.elements.get(selector)

    @contextmanager
    def expect_navigation(self, **kwargs):
        yield
        outcome = self.navigations.pop(0) if self.navigations else "timeout"
        if outcome == "timeout":
            raise PlaywrightTimeoutError("Timeout 60000ms exceeded.")
        # A successful navigation leaves the login form behind.
        for element in self.elements.values():
            element.visible = False


class FakeLocator:
    def __init__(self, visible: bool):
        self.visible = visible
        self.clicks = 0

    @property
    def first(self) -> "FakeLocator":
        return self

    def wait_for(self, state=None, timeout=None) -> None:
        if not self.visible:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    def click(self) -> None:
        self.clicks += 1


class FakeNavPage:
    def __init__(self, visible_texts: Dict[str, bool], goto_error: Optional[Exception] = None):
        self.locators = {key: FakeLocator(visible) for key, visible in visible_texts.items()}
        self.visited: List[str] = []
        self.goto_error = goto_error

    def get_by_text(self, text) -> FakeLocator:
        key = text if isinstance(text, str) else "Inventory"
        return self.locators.setdefault(key, FakeLocator(False))

    def goto(self, url: str, **kwargs) -> None:
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error


# ---------------------- FAKE LLM ----------------------


class FakeLLM:
    def __init__(self, response: str = '{"suggestions": ["Sure, I can help!"]}', error: Exception = None):
        self.response = response
        self.error = error
        self.calls: List[List[Dict[str, str]]] = []

    def chat(self, messages, json_mode: bool = True) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def fake_llm() -> FakeLLM:
    return FakeLLM()
