"""
browser_manager.py - Browser management
-------------------------------------
Owns the Selenium Chrome session used for one scrape: launch with
anti-detection measures and geolocation spoofing, navigation with a title
check, screenshots, restart and cleanup.

The rest of the scraper only talks to the page through ``evaluate``,
``mouse_wheel`` and ``page_source``.
"""
import json
import logging
import os
import random
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from selenium import webdriver
from selenium.common.exceptions import InvalidSessionIdException, WebDriverException
from selenium.webdriver import ActionChains
from selenium.webdriver.common.actions.wheel_input import ScrollOrigin

from maps_business_finder.models import Coordinate, InitResult, NavigationResult
from maps_business_finder.utils.cancellation import CancellationToken
from maps_business_finder.utils.config import (
    ACCEPT_LANGUAGE, CHROME_ARGS, EXPECTED_TITLE_MARKER, HEADLESS,
    NAVIGATION_STABILITY_DELAY, PAGE_LOAD_TIMEOUT, POINTER_PAUSE, PROFILE_DIR,
    SCREENSHOT_DIR, SCRIPT_TIMEOUT, UA_POOL, WINDOW_SIZE
)
from maps_business_finder.utils.logging_config import ARROW, get_logger

STEALTH_CHECK_URL = "data:text/html,<html><head><title>stealth-check</title></head><body></body></html>"

_STEALTH_TEMPLATE = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['pt-BR', 'pt', 'en-US', 'en'] });
window.chrome = window.chrome || {};
window.chrome.runtime = window.chrome.runtime || {};

if (window.navigator.permissions && window.navigator.permissions.query) {
    const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
    window.navigator.permissions.query = (parameters) => (
        parameters && parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery(parameters)
    );
}

(function () {
    const mock = __MOCK_POSITION__;
    const geo = navigator.geolocation;

    if (geo) {
        if (mock) {
            const position = {
                coords: {
                    latitude: mock.latitude,
                    longitude: mock.longitude,
                    accuracy: 10,
                    altitude: null,
                    altitudeAccuracy: null,
                    heading: null,
                    speed: null
                },
                timestamp: Date.now()
            };
            geo.getCurrentPosition = function (success) {
                setTimeout(function () { success(position); }, 0);
            };
            geo.watchPosition = function (success) {
                setTimeout(function () { success(position); }, 0);
                return 1;
            };
        } else {
            const denied = { code: 1, message: 'Permission denied', PERMISSION_DENIED: 1 };
            geo.getCurrentPosition = function (success, error) {
                if (error) { setTimeout(function () { error(denied); }, 0); }
            };
            geo.watchPosition = function (success, error) {
                if (error) { setTimeout(function () { error(denied); }, 0); }
                return 1;
            };
        }
        geo.clearWatch = function () {};
    }

    const isBlocked = function (url) {
        let target;
        try {
            target = new URL(String(url), window.location.href);
        } catch (e) {
            return false;
        }
        const path = target.pathname.toLowerCase();
        if (path.indexOf('geolocation') === -1 && path.indexOf('location') === -1) {
            return false;
        }
        const full = target.href;
        if (mock && full.indexOf(String(mock.latitude)) !== -1 && full.indexOf(String(mock.longitude)) !== -1) {
            return false;
        }
        return true;
    };

    if (window.fetch) {
        const originalFetch = window.fetch;
        window.fetch = function (input, init) {
            const url = typeof input === 'string' ? input : (input && input.url);
            if (isBlocked(url)) {
                return Promise.reject(new TypeError('Location request blocked'));
            }
            return originalFetch.call(this, input, init);
        };
    }

    if (window.XMLHttpRequest) {
        const originalOpen = XMLHttpRequest.prototype.open;
        const originalSend = XMLHttpRequest.prototype.send;
        XMLHttpRequest.prototype.open = function (method, url) {
            this.__locationBlocked = isBlocked(url);
            return originalOpen.apply(this, arguments);
        };
        XMLHttpRequest.prototype.send = function () {
            if (this.__locationBlocked) {
                this.dispatchEvent(new Event('error'));
                return;
            }
            return originalSend.apply(this, arguments);
        };
    }
})();
"""

STEALTH_CHECK_SCRIPT = """
return {
    webdriverType: typeof navigator.webdriver,
    webdriver: navigator.webdriver,
    plugins: navigator.plugins ? navigator.plugins.length : 0,
    chrome: !!(window.chrome && window.chrome.runtime),
    userAgent: navigator.userAgent,
    languages: navigator.languages,
    platform: navigator.platform
};
"""


def build_stealth_script(coordinates: Optional[Coordinate] = None) -> str:
    """
    Build the script injected into every new document.

    Args:
        coordinates: Position reported by the geolocation API; when None,
            geolocation requests fail with a permission error

    Returns:
        JavaScript source
    """
    mock = "null"
    if coordinates is not None:
        mock = json.dumps({"latitude": coordinates.lat, "longitude": coordinates.lon})
    return _STEALTH_TEMPLATE.replace("__MOCK_POSITION__", mock)


def evaluate_stealth_report(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Turn raw navigator readings into a pass/fail report with the list of leaks found."""
    details = details or {}
    issues = []
    if details.get("webdriverType") not in ("undefined", None) and details.get("webdriver") not in (None, False):
        issues.append("navigator.webdriver is exposed")
    if not details.get("plugins"):
        issues.append("no browser plugins reported")
    if not details.get("chrome"):
        issues.append("window.chrome.runtime is missing")
    if "HeadlessChrome" in (details.get("userAgent") or ""):
        issues.append("user agent reveals headless mode")
    return {"passed": not issues, "issues": issues, "details": details}


def make_driver(headless: bool, profile_dir: Optional[str] = None) -> webdriver.Chrome:
    """
    Create a Selenium WebDriver with anti-detection measures.

    Args:
        headless: Whether to run Chrome in headless mode
        profile_dir: Optional persistent user-data directory

    Returns:
        Selenium WebDriver
    """
    ua = random.choice(UA_POOL)
    opts = webdriver.ChromeOptions()
    opts.add_argument(f"--user-agent={ua}")
    opts.add_argument(f"--window-size={WINDOW_SIZE[0]},{WINDOW_SIZE[1]}")
    opts.add_argument(f"--lang={ACCEPT_LANGUAGE.split(',')[0]}")
    for arg in CHROME_ARGS:
        opts.add_argument(arg)
    opts.add_experimental_option("excludeSwitches", ["enable-automation", "enable-logging"])
    opts.add_experimental_option("useAutomationExtension", False)

    if profile_dir:
        opts.add_argument(f"--user-data-dir={os.path.abspath(profile_dir)}")

    if headless:
        opts.add_argument("--headless=new")

    # Only wait for the DOM; the result list loads asynchronously anyway
    opts.page_load_strategy = 'eager'

    return webdriver.Chrome(options=opts)


def is_driver_alive(driver) -> bool:
    """True if the driver still has a live session and window."""
    if driver is None:
        return False
    try:
        _ = driver.current_url
        return driver.session_id is not None
    except (InvalidSessionIdException, WebDriverException):
        return False


class BrowserManager:
    """
    Browser session controller for one scrape.

    Args:
        headless: Run Chrome headless
        driver_factory: ``(headless, profile_dir) -> driver``; defaults to ``make_driver``
        logger: Logger to use
        stability_delay: Seconds to wait after each navigation
        screenshot_dir: Where diagnostic screenshots go
        profile_dir: Optional persistent Chrome profile
    """

    def __init__(self, headless: bool = HEADLESS,
                 driver_factory: Optional[Callable[..., Any]] = None,
                 logger: Optional[logging.Logger] = None,
                 stability_delay: float = NAVIGATION_STABILITY_DELAY,
                 screenshot_dir: str = SCREENSHOT_DIR,
                 profile_dir: Optional[str] = PROFILE_DIR):
        self.headless = headless
        self.driver_factory = driver_factory or make_driver
        self.log = get_logger(logger)
        self.stability_delay = stability_delay
        self.screenshot_dir = screenshot_dir
        self.profile_dir = profile_dir
        self.driver = None
        self.coordinates: Optional[Coordinate] = None
        self.stealth_report: Dict[str, Any] = {}
        self._stealth_script_id: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.cancel_token: Optional[CancellationToken] = None

    # ───────────── lifecycle ─────────────

    def set_cancel_token(self, token: Optional[CancellationToken]):
        self.cancel_token = token

    def _sleep(self, seconds: float):
        if self.cancel_token is not None:
            self.cancel_token.sleep(seconds)
        elif seconds > 0:
            time.sleep(seconds)

    def _check_cancelled(self):
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def initialize(self, coordinates: Optional[Coordinate] = None) -> InitResult:
        """
        Launch Chrome and apply the stealth and geolocation overrides.

        Args:
            coordinates: Position to report to the page, or None to deny geolocation

        Returns:
            InitResult with the stealth self-check report
        """
        self._check_cancelled()
        if self.driver is not None:
            self.cleanup()

        self.coordinates = coordinates
        self.log.info("Initializing browser (headless=%s, geolocation=%s)",
                      self.headless, f"{coordinates.lat},{coordinates.lon}" if coordinates else "denied")
        try:
            self.driver = self.driver_factory(self.headless, self.profile_dir)
            self.driver.set_page_load_timeout(PAGE_LOAD_TIMEOUT)
            self.driver.set_script_timeout(SCRIPT_TIMEOUT)
            self._inject_stealth(coordinates)
        except WebDriverException as e:
            self.log.error("Failed to create WebDriver: %s", e)
            self.cleanup()
            return InitResult(False, error=f"Browser initialization failed: {e.msg or e}")

        self._apply_devtools_overrides(coordinates)
        self.started_at = datetime.now()
        self.stealth_report = self.verify_stealth()
        if self.stealth_report.get("passed"):
            self.log.info("Stealth check passed")
        else:
            self.log.warning("Stealth check issues: %s", ", ".join(self.stealth_report.get("issues", [])))
        return InitResult(True, stealth=self.stealth_report)

    def _inject_stealth(self, coordinates: Optional[Coordinate]):
        result = self.driver.execute_cdp_cmd("Page.addScriptToEvaluateOnNewDocument",
                                             {"source": build_stealth_script(coordinates)})
        self._stealth_script_id = (result or {}).get("identifier")

    def update_geolocation(self, coordinates: Optional[Coordinate]) -> bool:
        """
        Report a different position from the next navigation on.

        Returns:
            True if the overrides were replaced
        """
        self._check_cancelled()
        if not self.is_ready():
            return False
        try:
            if self._stealth_script_id:
                self.driver.execute_cdp_cmd("Page.removeScriptToEvaluateOnNewDocument",
                                            {"identifier": self._stealth_script_id})
            self._inject_stealth(coordinates)
            if coordinates is not None:
                self.driver.execute_cdp_cmd("Emulation.setGeolocationOverride", {
                    "latitude": coordinates.lat,
                    "longitude": coordinates.lon,
                    "accuracy": 10,
                })
            else:
                self.driver.execute_cdp_cmd("Emulation.clearGeolocationOverride", {})
        except WebDriverException as e:
            self.log.warning("Could not update geolocation: %s", e)
            return False
        self.coordinates = coordinates
        return True

    def _apply_devtools_overrides(self, coordinates: Optional[Coordinate]):
        try:
            self.driver.execute_cdp_cmd("Network.enable", {})
            self.driver.execute_cdp_cmd("Network.setExtraHTTPHeaders",
                                        {"headers": {"Accept-Language": ACCEPT_LANGUAGE}})
        except WebDriverException as e:
            self.log.debug("Could not set extra HTTP headers: %s", e)

        if coordinates is None:
            return
        try:
            self.driver.execute_cdp_cmd("Emulation.setGeolocationOverride", {
                "latitude": coordinates.lat,
                "longitude": coordinates.lon,
                "accuracy": 10,
            })
        except WebDriverException as e:
            self.log.warning("Geolocation override failed: %s", e)

    def verify_stealth(self) -> Dict[str, Any]:
        try:
            self.driver.get(STEALTH_CHECK_URL)
            details = self.driver.execute_script(STEALTH_CHECK_SCRIPT)
        except WebDriverException as e:
            self.log.warning("Stealth check could not run: %s", e)
            return {"passed": False, "issues": [f"check failed: {e.msg or e}"], "details": {}}
        return evaluate_stealth_report(details)

    def navigate_to_url(self, url: str) -> NavigationResult:
        """
        Load ``url`` and confirm the Maps UI came up.

        Returns:
            NavigationResult; ``success`` is False on driver errors or when
            the title lacks the expected marker
        """
        self._check_cancelled()
        if not self.is_ready():
            return NavigationResult(False, url=url, error="Browser not initialized")

        self.log.info("Navigating %s %s", ARROW, url)
        try:
            self.driver.get(url)
        except WebDriverException as e:
            self.log.warning("Navigation failed for %s: %s", url, e)
            return NavigationResult(False, url=url, error=str(e.msg or e))

        self._sleep(self.stability_delay)

        try:
            title = self.driver.title or ""
            final_url = self.driver.current_url
        except WebDriverException as e:
            return NavigationResult(False, url=url, error=str(e.msg or e))

        if EXPECTED_TITLE_MARKER not in title:
            self.log.warning("Unexpected page title after navigation: %r", title)
            return NavigationResult(False, title=title, url=final_url,
                                    error=f"Page title does not contain '{EXPECTED_TITLE_MARKER}'")
        return NavigationResult(True, title=title, url=final_url)

    def take_screenshot(self, name: str) -> Optional[str]:
        """Best-effort screenshot; returns the path or None."""
        if self.driver is None:
            return None
        try:
            os.makedirs(self.screenshot_dir, exist_ok=True)
            path = os.path.join(self.screenshot_dir, name if name.endswith(".png") else f"{name}.png")
            if self.driver.save_screenshot(path):
                self.log.info("Screenshot saved: %s", path)
                return path
        except (WebDriverException, OSError) as e:
            self.log.debug("Screenshot failed: %s", e)
        return None

    def restart(self, coordinates: Optional[Coordinate] = None) -> InitResult:
        self.log.info("Restarting browser")
        self.cleanup()
        return self.initialize(coordinates if coordinates is not None else self.coordinates)

    def cleanup(self):
        """Close the page and the session. Safe to call more than once."""
        driver, self.driver = self.driver, None
        if driver is None:
            return
        try:
            driver.close()
        except Exception as e:
            self.log.debug("Error closing page: %s", e)
        try:
            driver.quit()
            self.log.info("Chrome driver closed")
        except Exception as e:
            self.log.debug("Error quitting driver: %s", e)

    def is_ready(self) -> bool:
        return is_driver_alive(self.driver)

    def get_session_info(self) -> Dict[str, Any]:
        info = {
            "ready": self.is_ready(),
            "headless": self.headless,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "stealth": self.stealth_report,
        }
        if info["ready"]:
            info["url"] = self.current_url
            info["title"] = self.title
        return info

    # ───────────── page capabilities ─────────────

    def evaluate(self, script: str, *args):
        """Run ``script`` in the page; ``args`` are exposed as ``arguments[i]``."""
        self._check_cancelled()
        return self.driver.execute_script(script, *args)

    def mouse_wheel(self, element, delta_y: int, pause: float = POINTER_PAUSE):
        """Hover ``element`` then dispatch a real wheel event over it."""
        self._check_cancelled()
        (ActionChains(self.driver)
            .move_to_element(element)
            .pause(pause)
            .scroll_from_origin(ScrollOrigin.from_element(element), 0, delta_y)
            .perform())

    @property
    def page_source(self) -> str:
        self._check_cancelled()
        return self.driver.page_source

    @property
    def title(self) -> str:
        return self.driver.title

    @property
    def current_url(self) -> str:
        return self.driver.current_url
