"""
scroll_controller.py - Result list pagination
--------------------------------------------
Scrolls the result list with real wheel input until the list says it has
ended, stops growing, or the attempt budget runs out.

End of results is detected three ways, tried in order:
1. an XPath query for the end-of-list message node
2. known end phrases inside a short list of candidate containers
3. a text scan over every span, p and div on the page
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from selenium.common.exceptions import WebDriverException

from maps_business_finder.models import ScrollOutcome, ScrollResult
from maps_business_finder.utils.cancellation import CancellationToken
from maps_business_finder.utils.config import (
    AGGRESSIVE_DELAY_MULTIPLIER, AGGRESSIVE_SCROLL_THRESHOLD, END_MESSAGE_CSS_SELECTORS,
    END_MESSAGE_XPATH, END_PHRASES, MAX_SCROLL_ATTEMPTS, POINTER_PAUSE, SCROLL_AMOUNT,
    SCROLL_CONTAINER_FALLBACKS, SCROLL_CONTAINER_PRIMARY, SCROLL_DELAY
)
from maps_business_finder.utils.logging_config import ARROW, get_logger

FIND_CONTAINER_SCRIPT = """
const el = document.querySelector(arguments[0]);
if (el && el.scrollHeight > el.clientHeight) {
    return el;
}
return null;
"""

SCROLL_HEIGHT_SCRIPT = "return arguments[0].scrollHeight;"

FORCE_SCROLL_SCRIPT = """
arguments[0].scrollTop = arguments[0].scrollHeight;
return arguments[0].scrollHeight;
"""

END_XPATH_SCRIPT = """
const node = document.evaluate(arguments[0], document, null,
    XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue;
if (node) {
    return {detected: true, message: (node.textContent || '').trim()};
}
return {detected: false, message: ''};
"""

END_CSS_SCRIPT = """
const phrases = arguments[1].map(function (p) { return p.toLowerCase(); });
const elements = document.querySelectorAll(arguments[0]);
for (const el of elements) {
    const text = (el.textContent || '').trim();
    const lower = text.toLowerCase();
    for (const phrase of phrases) {
        if (lower.indexOf(phrase) !== -1) {
            return {detected: true, message: text};
        }
    }
}
return {detected: false, message: ''};
"""

END_TEXT_SCRIPT = """
const phrases = arguments[0].map(function (p) { return p.toLowerCase(); });
const elements = document.querySelectorAll('span, p, div');
for (const el of elements) {
    const text = (el.textContent || '').trim();
    const lower = text.toLowerCase();
    for (const phrase of phrases) {
        if (lower.indexOf(phrase) !== -1) {
            return {detected: true, message: text};
        }
    }
}
return {detected: false, message: ''};
"""

ProgressSink = Callable[[Dict[str, Any]], None]


class ScrollController:
    """
    Scroll/termination controller.

    Args:
        max_attempts: Safety bound on wheel ticks per cycle
        scroll_amount: Wheel delta in pixels
        scroll_delay: Seconds to let content load after each tick
        pointer_pause: Hover time before each wheel event
        aggressive_threshold: Consecutive no-growth ticks before force-scrolling
        aggressive_multiplier: Settle delay multiplier after a force-scroll
        container_selectors: Candidate scroll containers, primary first
        logger: Logger to use
    """

    def __init__(self, max_attempts: int = MAX_SCROLL_ATTEMPTS, scroll_amount: int = SCROLL_AMOUNT,
                 scroll_delay: float = SCROLL_DELAY, pointer_pause: float = POINTER_PAUSE,
                 aggressive_threshold: int = AGGRESSIVE_SCROLL_THRESHOLD,
                 aggressive_multiplier: float = AGGRESSIVE_DELAY_MULTIPLIER,
                 container_selectors: Optional[List[str]] = None,
                 end_xpath: str = END_MESSAGE_XPATH,
                 end_css_selectors: Optional[List[str]] = None,
                 end_phrases: Optional[List[str]] = None,
                 logger: Optional[logging.Logger] = None):
        self.max_attempts = max_attempts
        self.scroll_amount = scroll_amount
        self.scroll_delay = scroll_delay
        self.pointer_pause = pointer_pause
        self.aggressive_threshold = aggressive_threshold
        self.aggressive_multiplier = aggressive_multiplier
        self.container_selectors = container_selectors or [SCROLL_CONTAINER_PRIMARY] + SCROLL_CONTAINER_FALLBACKS
        self.end_xpath = end_xpath
        self.end_css_selectors = end_css_selectors or list(END_MESSAGE_CSS_SELECTORS)
        self.end_phrases = end_phrases or list(END_PHRASES)
        self.log = get_logger(logger)
        self.stats = self._empty_stats()
        self.cycles = 0

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "total_scrolls": 0,
            "successful_scrolls": 0,
            "height_changes": 0,
            "end_detections": 0,
            "fallbacks_used": 0,
        }

    # ───────────── page probes ─────────────

    def find_scroll_container(self, page):
        for selector in self.container_selectors:
            try:
                element = page.evaluate(FIND_CONTAINER_SCRIPT, selector)
            except WebDriverException as e:
                self.log.debug("Container selector failed: %s (%s)", selector, e)
                continue
            if element is not None:
                self.log.debug("Found scrollable container: %s", selector)
                return element
        return None

    def _height(self, page, container) -> Optional[int]:
        try:
            return page.evaluate(SCROLL_HEIGHT_SCRIPT, container)
        except WebDriverException as e:
            self.log.debug("Failed to read scroll height: %s", e)
            return None

    def _probe(self, page, script, *args) -> Tuple[bool, str]:
        try:
            result = page.evaluate(script, *args) or {}
        except WebDriverException as e:
            self.log.debug("End detection probe failed: %s", e)
            return False, ""
        return bool(result.get("detected")), result.get("message") or ""

    def detect_end_of_results(self, page) -> Tuple[bool, str, Optional[str]]:
        """
        Run the three end-of-list checks in order.

        Returns:
            Tuple of (detected, matched text, method name)
        """
        detected, message = self._probe(page, END_XPATH_SCRIPT, self.end_xpath)
        if detected:
            return True, message, "xpath"

        for selector in self.end_css_selectors:
            detected, message = self._probe(page, END_CSS_SCRIPT, selector, self.end_phrases)
            if detected:
                return True, message, "css"

        detected, message = self._probe(page, END_TEXT_SCRIPT, self.end_phrases)
        if detected:
            return True, message, "text"
        return False, "", None

    # ───────────── main loop ─────────────

    def smart_scroll(self, page, progress_callback: Optional[ProgressSink] = None,
                     cancel_token: Optional[CancellationToken] = None) -> ScrollResult:
        """
        Scroll the result list until it ends.

        Args:
            page: Object exposing ``evaluate`` and ``mouse_wheel``
            progress_callback: Called once per attempt with attempt details
            cancel_token: Checked before every tick and during every wait

        Returns:
            ScrollResult describing how the cycle terminated
        """
        def sleep(seconds):
            if cancel_token is not None:
                cancel_token.sleep(seconds)
            elif seconds > 0:
                time.sleep(seconds)

        self.cycles += 1
        cycle = self._empty_stats()

        container = self.find_scroll_container(page)
        if container is None:
            self.log.error("No scrollable result container found")
            return ScrollResult(ScrollOutcome.CONTAINER_NOT_FOUND, max_attempts=self.max_attempts, stats=cycle)

        previous_height = self._height(page, container) or 0
        no_change = 0
        attempt = 0
        outcome = ScrollOutcome.MAX_ATTEMPTS_REACHED
        end_message = ""

        while attempt < self.max_attempts:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            attempt += 1
            cycle["total_scrolls"] += 1

            try:
                page.mouse_wheel(container, self.scroll_amount, self.pointer_pause)
                cycle["successful_scrolls"] += 1
            except WebDriverException as e:
                self.log.debug("Scroll attempt %d failed: %s", attempt, e)

            sleep(self.scroll_delay)

            detected, end_message, method = self.detect_end_of_results(page)
            if detected:
                cycle["end_detections"] += 1
                outcome = ScrollOutcome.END_DETECTED
                self.log.info("End of results detected via %s %s %r", method, ARROW, end_message)
                self._report(progress_callback, attempt, True, False)
                break

            height = self._height(page, container)
            height_changed = height is not None and height > previous_height
            if height_changed:
                cycle["height_changes"] += 1
                previous_height = height
                no_change = 0
            else:
                no_change += 1
            self._report(progress_callback, attempt, False, height_changed)

            if no_change >= self.aggressive_threshold:
                detected, end_message, previous_height, grew = self._aggressive_fallback(
                    page, container, previous_height, sleep, cycle)
                if detected:
                    outcome = ScrollOutcome.END_DETECTED
                    break
                if grew:
                    no_change = 0
                elif no_change >= self.aggressive_threshold + 2:
                    outcome = ScrollOutcome.EXHAUSTED_WITHOUT_SIGNAL
                    self.log.info("List stopped growing after %d attempts without an end message", attempt)
                    break

        if outcome is ScrollOutcome.MAX_ATTEMPTS_REACHED:
            self.log.warning("Maximum scroll attempts (%d) reached without end detection", self.max_attempts)

        for key, value in cycle.items():
            self.stats[key] += value

        return ScrollResult(outcome, attempts=attempt, max_attempts=self.max_attempts,
                            end_message=end_message, stats=cycle)

    def _aggressive_fallback(self, page, container, previous_height, sleep, cycle):
        self.log.debug("No growth for %d attempts, force-scrolling", self.aggressive_threshold)
        cycle["fallbacks_used"] += 1
        try:
            page.evaluate(FORCE_SCROLL_SCRIPT, container)
        except WebDriverException as e:
            self.log.debug("Force scroll failed: %s", e)
        sleep(self.scroll_delay * self.aggressive_multiplier)

        detected, message, method = self.detect_end_of_results(page)
        if detected:
            cycle["end_detections"] += 1
            self.log.info("End of results detected via %s after force-scroll %s %r", method, ARROW, message)
            return True, message, previous_height, False

        height = self._height(page, container)
        if height is not None and height > previous_height:
            cycle["height_changes"] += 1
            return False, "", height, True
        return False, "", previous_height, False

    def _report(self, callback: Optional[ProgressSink], attempt: int, end_detected: bool, height_changed: bool):
        if callback is None:
            return
        try:
            callback({
                "attempt": attempt,
                "max_attempts": self.max_attempts,
                "progress": min(attempt / self.max_attempts * 100, 95),
                "end_detected": end_detected,
                "height_changed": height_changed,
            })
        except Exception as e:
            self.log.warning("Scroll progress callback failed: %s", e)

    def get_stats(self) -> Dict[str, Any]:
        total = self.stats["total_scrolls"]
        return dict(
            self.stats,
            cycles=self.cycles,
            success_rate=round(self.stats["successful_scrolls"] / total * 100, 2) if total else 0,
            avg_height_changes=round(self.stats["height_changes"] / self.cycles, 2) if self.cycles else 0,
        )

    def reset_stats(self):
        self.stats = self._empty_stats()
        self.cycles = 0
