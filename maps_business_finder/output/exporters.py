"""
exporters.py - File output
-------------------------
Write ranked results to JSON and CSV files and the session summary to JSON.

Records are written as they come from the result processor. Scores are never
recomputed here; the strategy that produced them is recorded in the metadata.
"""
import csv
import json
import logging
import os
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from maps_business_finder.models import BusinessRecord
from maps_business_finder.utils.config import OUTPUT_DIR
from maps_business_finder.utils.logging_config import ARROW, get_logger

EXPORT_VERSION = "1.0.0"

CSV_COLUMNS = [
    "rank", "name", "rating", "review_count", "reviews_text", "composite_score",
    "tier", "quality_indicators", "address", "link", "lat", "lng",
    "search_location", "distance_km", "extracted_at",
]


class JSONEncoder(json.JSONEncoder):
    """Encoder that handles datetimes and dataclass records."""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, BusinessRecord):
            return obj.to_dict()
        return super().default(obj)


def sanitize_filename_part(text: str, max_length: int = 50) -> str:
    text = re.sub(r"[^a-zA-Z0-9\s]", "", text or "")
    text = re.sub(r"\s+", "_", text.strip()).lower()
    return text[:max_length] or "search"


class Exporter:
    """
    Export delegate used by the orchestrator.

    Args:
        output_dir: Directory receiving the files
        logger: Logger to use
    """

    def __init__(self, output_dir: str = OUTPUT_DIR, logger: Optional[logging.Logger] = None):
        self.output_dir = output_dir
        self.log = get_logger(logger)

    def generate_filename(self, search_term: str, ext: str, timestamp: Optional[datetime] = None) -> str:
        stamp = (timestamp or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
        return f"{sanitize_filename_part(search_term)}_{stamp}.{ext}"

    def _path(self, filename: str) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, filename)

    def export_json(self, results: List[BusinessRecord], search_term: str,
                    metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Save records to a JSON file with proper encoding for non-English characters.

        Args:
            results: Ranked records
            search_term: Search phrase, used in the filename
            metadata: Extra metadata merged into the header

        Returns:
            Dict with ``success`` plus ``filepath``/``filename``/``count`` or ``error``
        """
        try:
            filename = self.generate_filename(search_term, "json")
            filepath = self._path(filename)
            payload = {
                "metadata": {
                    "search_term": search_term,
                    "exported_at": datetime.now().isoformat(),
                    "total_results": len(results),
                    "format": "json",
                    "version": EXPORT_VERSION,
                    **(metadata or {}),
                },
                "businesses": [{"id": i, **r.to_dict()} for i, r in enumerate(results, start=1)],
            }
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2, cls=JSONEncoder)
        except (OSError, TypeError, ValueError) as e:
            self.log.error("Error saving JSON: %s", e)
            return {"success": False, "format": "json", "error": str(e)}

        self.log.info("Saved %d records %s %s", len(results), ARROW, filepath)
        return {"success": True, "format": "json", "filepath": filepath, "filename": filename,
                "count": len(results)}

    def export_csv(self, results: List[BusinessRecord], search_term: str) -> Dict[str, Any]:
        """Save records to a CSV file with a fixed column set."""
        try:
            filename = self.generate_filename(search_term, "csv")
            filepath = self._path(filename)
            with open(filepath, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, extrasaction="ignore")
                writer.writeheader()
                for record in results:
                    row = record.to_dict()
                    row["quality_indicators"] = "; ".join(record.quality_indicators)
                    row["tier"] = record.tier.value
                    writer.writerow(row)
        except OSError as e:
            self.log.error("Error saving CSV: %s", e)
            return {"success": False, "format": "csv", "error": str(e)}

        self.log.info("Saved %d records %s %s", len(results), ARROW, filepath)
        return {"success": True, "format": "csv", "filepath": filepath, "filename": filename,
                "count": len(results)}

    def export_results(self, results: List[BusinessRecord], search_term: str,
                       formats: Iterable[str] = ("json", "csv"),
                       metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Export to every requested format.

        Returns:
            ``{"success", "files": {format: result}, "errors": [...]}``; success
            is True only if every format was written
        """
        files, errors = {}, []
        for fmt in formats:
            fmt = fmt.lower().strip()
            if fmt == "json":
                result = self.export_json(results, search_term, metadata)
            elif fmt == "csv":
                result = self.export_csv(results, search_term)
            else:
                result = {"success": False, "format": fmt, "error": f"Unsupported export format: {fmt}"}
            files[fmt] = result
            if not result["success"]:
                errors.append(result["error"])
        return {"success": not errors, "files": files, "errors": errors}

    def export_session_summary(self, summary: Dict[str, Any], search_term: str) -> Dict[str, Any]:
        try:
            filename = self.generate_filename(f"{search_term} session", "json")
            filepath = self._path(filename)
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(summary, f, ensure_ascii=False, indent=2, cls=JSONEncoder)
        except (OSError, TypeError, ValueError) as e:
            self.log.error("Error saving session summary: %s", e)
            return {"success": False, "error": str(e)}
        return {"success": True, "filepath": filepath, "filename": filename}

    def list_exports(self) -> List[Dict[str, Any]]:
        if not os.path.isdir(self.output_dir):
            return []
        files = []
        for name in sorted(os.listdir(self.output_dir)):
            path = os.path.join(self.output_dir, name)
            if os.path.isfile(path) and name.endswith((".json", ".csv")):
                stat = os.stat(path)
                files.append({
                    "filename": name,
                    "size": stat.st_size,
                    "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
                })
        return files
