"""
flask_app.py - Flask integration
------------------------------
HTTP front end for the scraper: start a scrape in a background thread,
poll its progress events and result, stop it, list and download exports,
and look up coordinates for an address.
"""
import argparse
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from flask import Flask, abort, jsonify, request, send_from_directory
from flask_cors import CORS

from maps_business_finder.models import ScrapeOptions
from maps_business_finder.output.exporters import Exporter
from maps_business_finder.scraping.coordinate_lookup import CoordinateLookup
from maps_business_finder.scraping.scraper_engine import ScraperEngine
from maps_business_finder.utils.config import HEADLESS, OUTPUT_DIR
from maps_business_finder.utils.logging_config import setup_logging

# Keys of the POST body that are not run options
_REQUEST_KEYS = {"search_term", "searchTerm", "options"}


def default_engine_factory(output_dir: str = OUTPUT_DIR, headless: bool = HEADLESS) -> Callable[[], ScraperEngine]:
    def factory():
        return ScraperEngine(exporter=Exporter(output_dir=output_dir), headless=headless)
    return factory


def create_app(engine_factory: Optional[Callable[[], Any]] = None,
               coordinate_lookup: Optional[CoordinateLookup] = None,
               output_dir: str = OUTPUT_DIR) -> Flask:
    """
    Build the Flask application.

    Args:
        engine_factory: Returns a fresh ScraperEngine for each session
        coordinate_lookup: Geocoder used by ``/api/geocode``
        output_dir: Directory holding exported files

    Returns:
        Flask app; running sessions are kept in ``app.config["SESSIONS"]``
    """
    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    engine_factory = engine_factory or default_engine_factory(output_dir)
    lookup = coordinate_lookup or CoordinateLookup()
    exporter = Exporter(output_dir=output_dir)

    sessions: Dict[str, Dict[str, Any]] = {}
    lock = threading.Lock()
    app.config["SESSIONS"] = sessions

    def _summary(task: Dict[str, Any]) -> Dict[str, Any]:
        events = task["events"]
        return {
            "session_id": task["session_id"],
            "search_term": task["search_term"],
            "status": task["status"],
            "started_at": task["started_at"],
            "finished_at": task["finished_at"],
            "last_event": events[-1] if events else None,
            "event_count": len(events),
        }

    @app.route('/api/scrape', methods=['POST'])
    def start_scrape():
        """Start a scrape; returns 202 with the session id."""
        body = request.get_json(silent=True) or {}
        search_term = body.get("search_term") or body.get("searchTerm")
        if not isinstance(search_term, str) or not search_term.strip():
            return jsonify({'error': 'Missing required parameter: search_term'}), 400

        raw_options = body.get("options")
        if raw_options is None:
            raw_options = {k: v for k, v in body.items() if k not in _REQUEST_KEYS}
        try:
            options = ScrapeOptions.from_dict(raw_options)
        except (TypeError, ValueError) as e:
            return jsonify({'error': f'Invalid options: {e}'}), 400

        session_id = uuid.uuid4().hex
        engine = engine_factory()
        task = {
            "session_id": session_id,
            "search_term": search_term.strip(),
            "status": "running",
            "started_at": datetime.now(timezone.utc).isoformat(),
            "finished_at": None,
            "events": [],
            "result": None,
            "engine": engine,
            "thread": None,
        }

        def on_progress(event):
            with lock:
                task["events"].append(event.to_dict())

        def run():
            result = engine.scrape_businesses(task["search_term"], options, session_id=session_id)
            with lock:
                task["result"] = result
                task["finished_at"] = datetime.now(timezone.utc).isoformat()
                if result.get("success"):
                    task["status"] = "completed"
                elif task["status"] == "stopping":
                    task["status"] = "stopped"
                else:
                    task["status"] = "failed"
            app.logger.info("Session %s finished: %s", session_id, task["status"])

        engine.set_progress_callback(on_progress)
        thread = threading.Thread(target=run, name=f"scrape-{session_id[:8]}", daemon=True)
        task["thread"] = thread
        with lock:
            sessions[session_id] = task
        thread.start()

        return jsonify({'session_id': session_id, 'status': 'running'}), 202

    @app.route('/api/sessions', methods=['GET'])
    def list_sessions():
        with lock:
            return jsonify({'sessions': [_summary(t) for t in sessions.values()]})

    @app.route('/api/sessions/<session_id>', methods=['GET'])
    def get_session(session_id):
        with lock:
            task = sessions.get(session_id)
            if task is None:
                return jsonify({'error': 'Session not found'}), 404
            payload = _summary(task)
            payload["result"] = task["result"]
        return jsonify(payload)

    @app.route('/api/sessions/<session_id>/events', methods=['GET'])
    def get_events(session_id):
        since = request.args.get('since', 0, type=int)
        with lock:
            task = sessions.get(session_id)
            if task is None:
                return jsonify({'error': 'Session not found'}), 404
            events = task["events"][since:]
            return jsonify({'session_id': session_id, 'status': task["status"],
                            'events': events, 'next': since + len(events)})

    @app.route('/api/sessions/<session_id>', methods=['DELETE'])
    def stop_session(session_id):
        with lock:
            task = sessions.get(session_id)
            if task is None:
                return jsonify({'error': 'Session not found'}), 404
            if task["status"] != "running":
                return jsonify({'session_id': session_id, 'status': task["status"], 'stopped': False}), 409
            task["status"] = "stopping"
        stopped = task["engine"].stop_scraping(session_id)
        if not stopped:
            # Nothing was signalled; the run keeps going and reports its own outcome
            with lock:
                if task["status"] == "stopping":
                    task["status"] = "running"
                status = task["status"]
            return jsonify({'session_id': session_id, 'status': status, 'stopped': False}), 409
        return jsonify({'session_id': session_id, 'status': 'stopping', 'stopped': True})

    @app.route('/api/exports', methods=['GET'])
    def list_exports():
        return jsonify({'files': exporter.list_exports()})

    @app.route('/api/exports/<path:filename>', methods=['GET'])
    def download_export(filename):
        if not filename.endswith((".json", ".csv")):
            abort(404)
        return send_from_directory(os.path.abspath(output_dir), filename, as_attachment=True)

    @app.route('/api/geocode', methods=['GET'])
    def geocode():
        query = request.args.get('q', '')
        limit = request.args.get('limit', 5, type=int)
        return jsonify({'query': query, 'results': lookup.search(query, limit=limit)})

    @app.route('/api/health', methods=['GET'])
    def health():
        with lock:
            running = sum(1 for t in sessions.values() if t["status"] in ("running", "stopping"))
        return jsonify({'status': 'ok', 'running_sessions': running,
                        'timestamp': datetime.now(timezone.utc).isoformat()})

    return app


def main():
    p = argparse.ArgumentParser("Maps business finder web API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=5000)
    p.add_argument("--headless", action="store_true", help="Run Chrome headless")
    p.add_argument("--output-dir", default=OUTPUT_DIR)
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = p.parse_args()

    setup_logging(debug=args.debug)
    app = create_app(engine_factory=default_engine_factory(args.output_dir, args.headless or HEADLESS),
                     output_dir=args.output_dir)
    app.run(host=args.host, port=args.port, threaded=True)


if __name__ == "__main__":
    main()
