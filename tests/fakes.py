"""Fake page, browser and driver objects shared by the tests."""
from selenium.common.exceptions import WebDriverException

from maps_business_finder.models import InitResult, NavigationResult
from maps_business_finder.scraping.data_extractor import EXTRACT_CANDIDATES_SCRIPT
from maps_business_finder.scraping.scroll_controller import (
    END_CSS_SCRIPT, END_TEXT_SCRIPT, END_XPATH_SCRIPT, FIND_CONTAINER_SCRIPT,
    FORCE_SCROLL_SCRIPT, SCROLL_HEIGHT_SCRIPT
)

END_TEXT = "You've reached the end of the list."


class FakeElement:
    def __init__(self, name):
        self.name = name


class FakePage:
    """
    Answers the scripts the scroll controller and extractor send.

    ``heights[i]`` is the list height after ``i`` wheel ticks; the end
    message becomes visible after ``end_after`` ticks, and only the
    detection methods listed in ``reachable`` can see it.
    """

    def __init__(self, rows=None, heights=(1000,), end_after=None, end_text=END_TEXT,
                 reachable=("xpath", "css", "text"), container_selector='div[role="feed"]',
                 page_source="", wheel_errors=0):
        self.rows = list(rows or [])
        self.heights = list(heights)
        self.end_after = end_after
        self.end_text = end_text
        self.reachable = set(reachable)
        self.container_selector = container_selector
        self.container = FakeElement("feed")
        self.page_source = page_source
        self.wheel_errors = wheel_errors
        self.wheel_ticks = 0
        self.force_scrolls = 0
        self.scripts = []

    def _end_visible(self):
        return self.end_after is not None and self.wheel_ticks >= self.end_after

    def _matches(self, phrases):
        return any(p.lower() in self.end_text.lower() for p in phrases)

    def _height(self):
        return self.heights[min(self.wheel_ticks, len(self.heights) - 1)]

    def _probe(self, method, phrases=None):
        hit = method in self.reachable and self._end_visible()
        if hit and phrases is not None:
            hit = self._matches(phrases)
        return {"detected": hit, "message": self.end_text if hit else ""}

    def evaluate(self, script, *args):
        self.scripts.append(script)
        if script == FIND_CONTAINER_SCRIPT:
            return self.container if args[0] == self.container_selector else None
        if script == SCROLL_HEIGHT_SCRIPT:
            return self._height()
        if script == FORCE_SCROLL_SCRIPT:
            self.force_scrolls += 1
            return self._height()
        if script == END_XPATH_SCRIPT:
            return self._probe("xpath")
        if script == END_CSS_SCRIPT:
            return self._probe("css", args[1])
        if script == END_TEXT_SCRIPT:
            return self._probe("text", args[0])
        if script == EXTRACT_CANDIDATES_SCRIPT:
            return [dict(r) for r in self.rows]
        raise AssertionError(f"unexpected script: {script[:60]!r}")

    def mouse_wheel(self, element, delta_y, pause=0):
        assert element is self.container
        if self.wheel_errors:
            self.wheel_errors -= 1
            raise WebDriverException("move target out of bounds")
        self.wheel_ticks += 1


class FakeBrowser:
    """Stands in for BrowserManager in orchestrator tests."""

    def __init__(self, page, init_success=True, failing_navigations=(), title="Pizzaria - Google Maps"):
        self.page = page
        self.init_success = init_success
        self.failing_navigations = set(failing_navigations)
        self.title = title
        self.navigations = []
        self.initialized_with = []
        self.geolocations = []
        self.screenshots = []
        self.cleanups = 0
        self.ready = False
        self.cancel_token = None

    def set_cancel_token(self, token):
        self.cancel_token = token

    def _check(self):
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def initialize(self, coordinates=None):
        self.initialized_with.append(coordinates)
        if not self.init_success:
            return InitResult(False, error="Browser initialization failed: chrome not found")
        self.ready = True
        return InitResult(True, stealth={"passed": True, "issues": []})

    def navigate_to_url(self, url):
        self._check()
        self.navigations.append(url)
        if len(self.navigations) in self.failing_navigations:
            return NavigationResult(False, url=url, error="net::ERR_CONNECTION_RESET")
        self.page.wheel_ticks = 0
        return NavigationResult(True, title=self.title, url=url)

    def update_geolocation(self, coordinates):
        self.geolocations.append(coordinates)
        return True

    def evaluate(self, script, *args):
        self._check()
        return self.page.evaluate(script, *args)

    def mouse_wheel(self, element, delta_y, pause=0):
        self._check()
        self.page.mouse_wheel(element, delta_y, pause)

    @property
    def page_source(self):
        return self.page.page_source

    def take_screenshot(self, name):
        self.screenshots.append(name)
        return f"screenshots/{name}"

    def is_ready(self):
        return self.ready

    def cleanup(self):
        self.cleanups += 1
        self.ready = False


class FakeDriver:
    """Minimal Selenium driver double for BrowserManager tests."""

    def __init__(self, title="Pizzaria - Google Maps", stealth=None, fail_get=False, fail_close=False):
        self.title = title
        self.stealth = stealth if stealth is not None else {
            "webdriverType": "undefined",
            "webdriver": None,
            "plugins": 5,
            "chrome": True,
            "userAgent": "Mozilla/5.0 Chrome/122.0.0.0",
            "languages": ["pt-BR", "pt"],
            "platform": "Linux x86_64",
        }
        self.fail_get = fail_get
        self.fail_close = fail_close
        self.cdp = []
        self.gets = []
        self.scripts = []
        self.session_id = "session-1"
        self.current_url = "about:blank"
        self.closed = False
        self.quit_called = False

    def set_page_load_timeout(self, seconds):
        pass

    def set_script_timeout(self, seconds):
        pass

    def execute_cdp_cmd(self, cmd, params):
        self.cdp.append((cmd, params))
        if cmd == "Page.addScriptToEvaluateOnNewDocument":
            return {"identifier": str(len(self.cdp))}
        return {}

    def get(self, url):
        if self.fail_get:
            raise WebDriverException("net::ERR_NAME_NOT_RESOLVED")
        self.gets.append(url)
        self.current_url = url

    def execute_script(self, script, *args):
        self.scripts.append((script, args))
        return self.stealth

    def save_screenshot(self, path):
        with open(path, "wb") as f:
            f.write(b"\x89PNG")
        return True

    def close(self):
        if self.fail_close:
            raise WebDriverException("no such window")
        self.closed = True

    def quit(self):
        self.quit_called = True
        self.session_id = None
