"""
scraper_engine.py - Scrape orchestration
---------------------------------------
Walks the (location x zoom) matrix for one search, relays progress to an
observer, isolates failures to the cell they happen in, and hands the
combined results to the ranking engine and the exporter.
"""
import dataclasses
import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from maps_business_finder.data_processing.data_cleaning import deduplicate, name_address_key
from maps_business_finder.data_processing.data_validation import validate_search_term
from maps_business_finder.data_processing.result_processor import ResultProcessor
from maps_business_finder.models import (
    BusinessRecord, ProgressEvent, ScrapeOptions, ScrollOutcome, ScrollResult,
    SearchLocation, Session, Stage
)
from maps_business_finder.output.exporters import Exporter
from maps_business_finder.scraping.browser_manager import BrowserManager
from maps_business_finder.scraping.data_extractor import DataExtractor
from maps_business_finder.scraping.scroll_controller import ScrollController
from maps_business_finder.scraping.url_builder import (
    build_search_url, get_zoom_levels_for_radius, resolve_search_locations
)
from maps_business_finder.utils.cancellation import CancellationToken, ScrapeCancelled
from maps_business_finder.utils.config import (
    CELL_PAUSE, HEADLESS, LOCATION_PAUSE, SEARCH_SETTLE_DELAY
)
from maps_business_finder.utils.logging_config import ARROW, get_logger

# Share of the progress bar used by the location x zoom matrix
MATRIX_START, MATRIX_END = 15, 85


class ScrapeError(Exception):
    """Base class for errors that end a scrape."""


class InvalidSearchTermError(ScrapeError):
    pass


class BrowserInitError(ScrapeError):
    pass


class NoResultsError(ScrapeError):
    pass


def format_duration(seconds: float) -> str:
    """``125`` -> ``"2m 5s"``; ``42`` -> ``"42s"``."""
    seconds = int(seconds)
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}m {rest}s" if minutes else f"{rest}s"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ScraperEngine:
    """
    Orchestrates one scrape at a time over its own browser session.

    Every collaborator can be injected; missing ones are built with the
    package defaults.

    Args:
        browser_manager: Browser session controller
        data_extractor: Extraction engine
        scroll_controller: Scroll/termination controller
        result_processor: Ranking engine
        exporter: Export delegate
        logger: Logger shared with the default collaborators
        cell_pause: Seconds between zoom levels of one location
        location_pause: Seconds between locations
        search_settle_delay: Extra wait after a successful navigation
        headless: Used when building the default browser manager
    """

    def __init__(self, browser_manager: Optional[BrowserManager] = None,
                 data_extractor: Optional[DataExtractor] = None,
                 scroll_controller: Optional[ScrollController] = None,
                 result_processor: Optional[ResultProcessor] = None,
                 exporter: Optional[Exporter] = None,
                 logger: Optional[logging.Logger] = None,
                 cell_pause: float = CELL_PAUSE,
                 location_pause: float = LOCATION_PAUSE,
                 search_settle_delay: float = SEARCH_SETTLE_DELAY,
                 headless: bool = HEADLESS):
        self.log = get_logger(logger)
        self.browser_manager = browser_manager or BrowserManager(headless=headless, logger=self.log)
        self.data_extractor = data_extractor or DataExtractor(logger=self.log)
        self.scroll_controller = scroll_controller or ScrollController(logger=self.log)
        self.result_processor = result_processor or ResultProcessor(logger=self.log)
        self.exporter = exporter or Exporter(logger=self.log)
        self.cell_pause = cell_pause
        self.location_pause = location_pause
        self.search_settle_delay = search_settle_delay

        self.progress_callback: Optional[Callable[[ProgressEvent], None]] = None
        self.current_session: Optional[Session] = None
        self.last_session: Optional[Session] = None
        self.cancel_token: Optional[CancellationToken] = None

    def set_progress_callback(self, callback: Optional[Callable[[ProgressEvent], None]]):
        self.progress_callback = callback

    # ───────────── public operations ─────────────

    def scrape_businesses(self, search_term: str, options=None, session_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Run a complete scrape.

        Args:
            search_term: What to search for
            options: ScrapeOptions or a dict accepted by ``ScrapeOptions.from_dict``
            session_id: Identifier to use instead of a generated one

        Returns:
            Result payload; ``success`` tells whether the run completed. A
            failed run carries ``error`` and an empty business list.
        """
        token = CancellationToken()
        self.cancel_token = token
        self.browser_manager.set_cancel_token(token)
        self.data_extractor.reset_stats()
        self.scroll_controller.reset_stats()
        self.result_processor.reset_stats()

        session = Session(
            id=session_id or uuid.uuid4().hex,
            search_term=search_term if isinstance(search_term, str) else "",
            options=ScrapeOptions(),
        )
        self.current_session = self.last_session = session
        self.log.info("=" * 60)
        self.log.info("Starting session %s %s %r", session.id, ARROW, search_term)

        try:
            if isinstance(options, ScrapeOptions):
                session.options = options.validate()
            else:
                session.options = ScrapeOptions.from_dict(options)
            self._report(Stage.SESSION_STARTED, 0, {"search_term": session.search_term,
                                                   "options": session.options.to_dict()})
            return self._run(session, token)
        except ScrapeCancelled as e:
            self.log.warning("Session %s stopped by user", session.id)
            return self._handle_error(session, e, cancelled=True)
        except Exception as e:
            self.log.error("Scraping failed: %s", e)
            self.log.debug("Traceback: %s", traceback.format_exc())
            return self._handle_error(session, e)
        finally:
            self._cleanup(session)

    def stop_scraping(self, session_id: Optional[str] = None) -> bool:
        """
        Request the running scrape to stop.

        The run notices at its next wait or browser call, fails with
        "Session stopped by user" and closes the browser on its way out.

        Returns:
            True if a matching running session was signalled
        """
        session = self.current_session
        if session is None or not session.running:
            return False
        if session_id is not None and session_id != session.id:
            return False
        self.log.info("Stop requested for session %s", session.id)
        session.warnings.append("Session stopped by user")
        if self.cancel_token is not None:
            self.cancel_token.cancel()
        return True

    def get_session_status(self) -> Dict[str, Any]:
        session = self.current_session or self.last_session
        if session is None:
            return {"active": False}
        return {
            "active": session is self.current_session and session.running,
            "session_id": session.id,
            "search_term": session.search_term,
            "running": session.running,
            "start_time": _iso(session.start_time),
            "end_time": _iso(session.end_time),
            "duration": round(session.duration, 2),
            "errors": list(session.errors),
            "warnings": list(session.warnings),
        }

    def get_scraper_stats(self) -> Dict[str, Any]:
        return {
            "extraction": self.data_extractor.get_stats(),
            "scrolling": self.scroll_controller.get_stats(),
            "processing": self.result_processor.get_stats(),
            "session": self.get_session_status(),
        }

    # ───────────── run ─────────────

    def _run(self, session: Session, token: CancellationToken) -> Dict[str, Any]:
        options = session.options
        valid, errors, term = validate_search_term(session.search_term, logger=self.log)
        if not valid:
            raise InvalidSearchTermError(f"Invalid search term: {', '.join(errors)}")
        session.search_term = term
        self.result_processor.set_scoring_strategy(options.scoring_strategy)

        locations = resolve_search_locations(options.coordinates)
        zoom_levels = get_zoom_levels_for_radius(options.search_radius)
        self.log.info("%d location(s) x %d zoom level(s) %s %s", len(locations), len(zoom_levels),
                      ARROW, zoom_levels)

        self._report(Stage.INITIALIZING_BROWSER, 5, {"locations": len(locations), "zoom_levels": zoom_levels})
        init = self.browser_manager.initialize(locations[0].coordinates)
        if not init.success:
            raise BrowserInitError(init.error or "Browser initialization failed")

        scroll_results: List[ScrollResult] = []
        collected = self._walk_matrix(session, token, locations, zoom_levels, scroll_results)
        if not collected:
            raise NoResultsError("No businesses found across all locations and zoom levels")

        token.raise_if_cancelled()
        unique = deduplicate(collected, key=name_address_key)
        self.log.info("Combined %d results, %d after name+address dedup", len(collected), len(unique))
        self._report(Stage.PROCESSING_RESULTS, MATRIX_END, {"raw_count": len(collected), "unique_count": len(unique)})
        results = self.result_processor.process_results(
            unique,
            min_rating=options.min_rating,
            min_reviews=options.min_reviews,
            min_tier=options.min_tier,
            limit=options.limit,
            remove_duplicates=options.remove_duplicates,
        )

        token.raise_if_cancelled()
        self._report(Stage.EXPORTING_RESULTS, 95, {"count": len(results), "formats": options.export_formats})
        export_result = self._export(session, results)

        result = self._complete_session(session, results, scroll_results, export_result)
        self._report(Stage.COMPLETED, 100, {"total": len(results),
                                            "duration": result["performance"]["duration_formatted"]})
        return result

    def _walk_matrix(self, session: Session, token: CancellationToken, locations: List[SearchLocation],
                     zoom_levels: List[int], scroll_results: List[ScrollResult]) -> List[BusinessRecord]:
        collected: List[BusinessRecord] = []
        location_span = (MATRIX_END - MATRIX_START) / len(locations)
        cell_span = location_span / len(zoom_levels)

        for loc_index, location in enumerate(locations):
            if loc_index > 0:
                token.sleep(self.location_pause)
                self.browser_manager.update_geolocation(location.coordinates)
            self.log.info("Location %d/%d %s %s", loc_index + 1, len(locations), ARROW, location.name)

            for zoom_index, zoom in enumerate(zoom_levels):
                if zoom_index > 0:
                    token.sleep(self.cell_pause)
                start = MATRIX_START + loc_index * location_span + zoom_index * cell_span
                context = {
                    "location": location.name,
                    "location_index": loc_index + 1,
                    "total_locations": len(locations),
                    "zoom": zoom,
                }
                try:
                    records, scroll = self._scrape_cell(session, token, location, zoom, start, cell_span, context)
                except ScrapeCancelled:
                    raise
                except Exception as e:
                    message = f"Cell {location.name} @ zoom {zoom} failed: {e}"
                    self.log.warning(message)
                    session.warnings.append(message)
                    continue
                if scroll is not None:
                    scroll_results.append(scroll)
                collected.extend(records)
                self.log.info("%s z%d %s %d businesses (total %d)", location.name, zoom, ARROW,
                              len(records), len(collected))
        return collected

    def _scrape_cell(self, session: Session, token: CancellationToken, location: SearchLocation, zoom: int,
                     start: float, span: float, context: Dict[str, Any]) -> Tuple[List[BusinessRecord], Optional[ScrollResult]]:
        page = self.browser_manager
        url = build_search_url(session.search_term, location.coordinates, zoom)
        self._report(Stage.NAVIGATING, start, dict(context, url=url))

        nav = page.navigate_to_url(url)
        if not nav.success:
            message = f"Navigation failed for {location.name} at zoom {zoom}: {nav.error}"
            self.log.warning(message)
            session.warnings.append(message)
            return [], None
        token.sleep(self.search_settle_delay)

        self._report(Stage.EXTRACTING_INITIAL_DATA, start + span * 0.1, context)
        initial = self.data_extractor.extract_business_data(page)
        self.log.debug("%s z%d initial snapshot: %d businesses", location.name, zoom, len(initial))

        scroll_start, scroll_span = start + span * 0.15, span * 0.7

        def relay(info: Dict[str, Any]):
            pct = scroll_start + scroll_span * info["progress"] / 100
            self._report(Stage.SMART_SCROLLING, pct, dict(context, **info))

        self._report(Stage.SMART_SCROLLING, scroll_start, dict(context, attempt=0))
        scroll = self.scroll_controller.smart_scroll(page, progress_callback=relay, cancel_token=token)
        if scroll.outcome is ScrollOutcome.CONTAINER_NOT_FOUND:
            session.errors.append(f"Scrolling error: no scrollable container for {location.name} at zoom {zoom}")
        elif scroll.outcome is ScrollOutcome.MAX_ATTEMPTS_REACHED:
            session.warnings.append("Maximum scroll attempts reached without end detection")

        self._report(Stage.EXTRACTING_FINAL_DATA, start + span * 0.9, dict(context, scroll_outcome=scroll.outcome.value))
        final = self.data_extractor.extract_business_data(page)
        tagged = [
            dataclasses.replace(r, search_location=location.name, location_coordinates=location.coordinates)
            for r in final
        ]
        return tagged, scroll

    def _export(self, session: Session, results: List[BusinessRecord]) -> Dict[str, Any]:
        formats = session.options.export_formats
        if not formats:
            return {"success": True, "skipped": True, "files": {}}
        try:
            export = self.exporter.export_results(results, session.search_term, formats, metadata={
                "session_id": session.id,
                "scoring_strategy": self.result_processor.strategy.name,
                "options": session.options.to_dict(),
            })
            export["session_summary"] = self.exporter.export_session_summary({
                "session_id": session.id,
                "search_term": session.search_term,
                "duration": round(session.duration, 2),
                "total_results": len(results),
                "summary": self.result_processor.generate_summary(results),
                "errors": session.errors,
                "warnings": session.warnings,
            }, session.search_term)
        except Exception as e:
            self.log.error("Export failed: %s", e)
            session.errors.append(f"Export error: {e}")
            return {"success": False, "error": str(e)}
        for error in export.get("errors", []):
            session.errors.append(f"Export error: {error}")
        return export

    # ───────────── results ─────────────

    def _performance(self, session: Session) -> Dict[str, Any]:
        return {
            "duration": round(session.duration, 2),
            "duration_formatted": format_duration(session.duration),
            "extraction_stats": self.data_extractor.get_stats(),
            "scroll_stats": self.scroll_controller.get_stats(),
            "processing_stats": self.result_processor.get_stats(),
        }

    def _complete_session(self, session: Session, results: List[BusinessRecord],
                          scroll_results: List[ScrollResult], export_result: Dict[str, Any]) -> Dict[str, Any]:
        session.end_time = datetime.now(timezone.utc)
        summary = self.result_processor.generate_summary(results)
        self.log.info("Session %s completed in %s %s %d businesses", session.id,
                      format_duration(session.duration), ARROW, len(results))
        return {
            "success": True,
            "session_id": session.id,
            "search_term": session.search_term,
            "results": {
                "businesses": [r.to_dict() for r in results],
                "summary": summary,
                "total": len(results),
            },
            "scrolling": {
                "attempts": sum(s.attempts for s in scroll_results),
                "end_detected": any(s.end_detected for s in scroll_results),
                "success": any(s.success for s in scroll_results),
                "outcomes": [s.outcome.value for s in scroll_results],
            },
            "export": export_result,
            "performance": self._performance(session),
            "session": {
                "start_time": _iso(session.start_time),
                "end_time": _iso(session.end_time),
                "errors": list(session.errors),
                "warnings": list(session.warnings),
            },
        }

    def _handle_error(self, session: Session, error: Exception, cancelled: bool = False) -> Dict[str, Any]:
        session.end_time = datetime.now(timezone.utc)
        message = str(error) or error.__class__.__name__
        session.errors.append(message)

        if not cancelled and self.browser_manager.is_ready():
            self.browser_manager.take_screenshot(f"error_{session.id}.png")

        result = {
            "success": False,
            "error": message,
            "session_id": session.id,
            "search_term": session.search_term,
            "results": {"businesses": [], "summary": {}, "total": 0},
            "performance": self._performance(session),
            "session": {
                "start_time": _iso(session.start_time),
                "end_time": _iso(session.end_time),
                "errors": list(session.errors),
                "warnings": list(session.warnings),
            },
        }
        self._report(Stage.ERROR, None, {"error": message, "cancelled": cancelled})
        return result

    def _cleanup(self, session: Session):
        session.running = False
        if session.end_time is None:
            session.end_time = datetime.now(timezone.utc)
        self.browser_manager.cleanup()
        self.browser_manager.set_cancel_token(None)
        self.current_session = None
        self.log.info("Cleanup completed for session %s", session.id)

    def _report(self, stage: Stage, progress: Optional[float], data: Optional[Dict[str, Any]] = None):
        session = self.current_session
        event = ProgressEvent(
            stage=stage,
            progress=round(progress, 1) if progress is not None else None,
            data=data,
            session_id=session.id if session else None,
        )
        if progress is not None:
            self.log.info("Scraping progress: %s (%s%%)", stage.value, event.progress)
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(event)
        except Exception as e:
            self.log.warning("Progress callback failed: %s", e)
