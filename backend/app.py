"""
=============================================================================
ELECTRICITY BALANCE TRACKER - MAIN FLASK APPLICATION
=============================================================================
This is the backend server for the prepaid electricity balance tracker.
It provides REST API endpoints for:
- Reading the configured room and its display name
- Listing the rooms that have stored readings
- Raw balance readings of the last 30 days
- Consumption analytics (3h/24h/7d usage, daily extremes, last recharge,
  days until the balance runs out)
- Chart points for the 1/3/7/30 day views
- Triggering a scrape on demand and importing historical readings from CSV

A background scheduler scrapes the balance page every hour.

How to run:
    python -m backend.app

Then visit: http://127.0.0.1:8080/api/analytics
=============================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging
from datetime import datetime, timedelta, timezone

# Flask - A lightweight web framework for Python
# - request: Access data sent by the client (query string, files)
# - jsonify: Convert Python dictionaries to JSON responses
from flask import Flask, jsonify, request

from backend.lib.balance_core.io import parse_csv_string, reading_to_record
from backend.lib.balance_core.processor import (
    CHART_RANGES_DAYS,
    BalanceAnalyzer,
    compute_analytics,
)
from backend.lib.scheduler import ScrapeScheduler
from backend.lib.scraper import BalanceScraper
from backend.lib.settings import VERSION, Settings
from backend.lib.store import StoreError, create_store

logger = logging.getLogger(__name__)

PLACEHOLDER_PAGE = "<h1>Nakiri Electricity</h1><p>Frontend building...</p>"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _positive_int_arg(name: str, default: int) -> int:
    """Read an integer query parameter; raises ValueError when invalid."""
    value = int(request.args.get(name, default))
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return value


# =============================================================================
# FLASK APPLICATION FACTORY
# =============================================================================

def create_app(settings: Settings = None, store=None, scraper=None, clock=None) -> Flask:
    """
    Build the Flask application.

    Everything the routes need is passed in (or built from the environment):
        settings: Settings, read from environment variables by default
        store: reading store, DynamoDB or local file depending on settings
        scraper: BalanceScraper used by POST /api/scrape
        clock: callable returning the current UTC time
    """
    settings = settings or Settings.from_env()
    store = store if store is not None else create_store(settings)
    scraper = scraper or BalanceScraper(settings, store)
    clock = clock or _utcnow
    analytics_config = settings.analytics_config()

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.config["STORE"] = store
    app.config["SCRAPER"] = scraper

    # -------------------------------------------------------------------------
    # ERROR HANDLING
    # -------------------------------------------------------------------------

    @app.errorhandler(StoreError)
    def store_error(e):
        """Storage failures are reported as 500 so the client can show a degraded state."""
        logger.error("Database error: %s", e)
        return jsonify({"error": str(e)}), 500

    # -------------------------------------------------------------------------
    # API ROUTES
    # -------------------------------------------------------------------------

    @app.route("/")
    def home():
        return PLACEHOLDER_PAGE, 200, {"Content-Type": "text/html; charset=utf-8"}

    @app.route("/api/config", methods=["GET"])
    def config():
        """
        Current configuration.

        Example Response:
            {
                "roomId": "507",
                "displayName": "徐汇-18号楼-507",
                "version": "Docker-v1.1",
                "referenceTimezone": "Asia/Shanghai",
                "lookbackDays": 30
            }
        """
        return jsonify({
            "roomId": settings.room_id,
            "displayName": settings.display_name(),
            "version": VERSION,
            "referenceTimezone": settings.reference_tz,
            "lookbackDays": settings.lookback_days,
        })

    @app.route("/api/rooms", methods=["GET"])
    def rooms():
        """
        Rooms that have stored readings, e.g. after a CSV import of other rooms.

        Example Response:
            {"rooms": ["507", "508"]}
        """
        return jsonify({"rooms": store.list_rooms()})

    @app.route("/api/data", methods=["GET"])
    def data():
        """
        Raw readings, oldest first.

        Query Parameters:
            days (optional): how far back to go (default: LOOKBACK_DAYS)

        Only the configured room is returned when ROOM_ID is set.

        Example Response:
            [{"timestamp": "2025-11-01T00:00:00.000+00:00", "room_id": "507", "kWh": 42.5}]
        """
        try:
            days = _positive_int_arg("days", settings.lookback_days)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        since = clock() - timedelta(days=days)
        readings = store.query_range(settings.room_id, since)
        readings.sort(key=lambda r: r.timestamp)
        return jsonify([reading_to_record(r) for r in readings])

    @app.route("/api/analytics", methods=["GET"])
    def analytics():
        """
        Consumption analytics for a room.

        Query Parameters:
            room_id (optional): defaults to ROOM_ID
            lookback_days (optional): defaults to LOOKBACK_DAYS

        Metrics without data are null, never 0.
        """
        room_id = request.args.get("room_id") or settings.room_id
        if not room_id:
            return jsonify({"error": "room_id required"}), 400
        try:
            lookback_days = _positive_int_arg("lookback_days", settings.lookback_days)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        result = compute_analytics(store, room_id, clock(), lookback_days, analytics_config)
        return jsonify(result.to_dict())

    @app.route("/api/chart", methods=["GET"])
    def chart():
        """
        Points for the balance chart.

        Query Parameters:
            days (optional): 1, 3, 7 or 30 (default: 7)
            room_id (optional): defaults to ROOM_ID
        """
        room_id = request.args.get("room_id") or settings.room_id
        if not room_id:
            return jsonify({"error": "room_id required"}), 400
        try:
            days = int(request.args.get("days", 7))
        except ValueError:
            return jsonify({"error": "days must be a number"}), 400
        if days not in CHART_RANGES_DAYS:
            return jsonify({"error": f"days must be one of {list(CHART_RANGES_DAYS)}"}), 400

        now = clock()
        readings = store.query_range(room_id, now - timedelta(days=days))
        analyzer = BalanceAnalyzer([r for r in readings if r.room_id == room_id], analytics_config)
        points = analyzer.chart_points(now, days)
        return jsonify({
            "roomId": room_id,
            "days": days,
            "points": [reading_to_record(r) for r in points],
        })

    @app.route("/api/scrape", methods=["POST"])
    def scrape():
        """
        Scrape the balance page now instead of waiting for the next hour.

        Returns 200 with the stored reading, or 502 when the page could not
        be fetched or parsed.
        """
        result = scraper.scrape()
        return jsonify(result.to_dict()), (200 if result.success else 502)

    @app.route("/upload", methods=["POST"])
    @app.route("/api/upload", methods=["POST"])
    def upload():
        """
        Import historical readings from a CSV file.

        Expected CSV format:
            room_id,timestamp,kwh
            507,2025-11-01T00:00:00Z,42.5
            507,2025-11-01T01:00:00Z,42.1

        Readings that are already stored (same room and timestamp) are skipped.

        HTTP Status Codes:
            202: Accepted - Upload processed
            400: Bad Request - No file provided or invalid CSV
            500: Storage failed part way; inserted_count says how far it got
        """
        if "file" not in request.files:
            return jsonify({"error": "No file uploaded"}), 400

        file = request.files["file"]
        try:
            content = file.read().decode("utf-8")
            readings = parse_csv_string(content)
        except (UnicodeDecodeError, ValueError) as e:
            return jsonify({"error": f"Invalid CSV: {e}"}), 400

        inserted = 0
        for r in readings:
            try:
                if store.insert_if_absent(r.room_id, r.timestamp, r.kwh):
                    inserted += 1
            except StoreError as e:
                logger.error("Import of %s stopped after %d readings: %s", file.filename, inserted, e)
                return jsonify({
                    "error": str(e),
                    "upload_id": file.filename,
                    "processed_count": len(readings),
                    "inserted_count": inserted,
                }), 500
        logger.info("Imported %d of %d readings from %s", inserted, len(readings), file.filename)

        return jsonify({
            "upload_id": file.filename,
            "processed_count": len(readings),
            "inserted_count": inserted,
        }), 202

    return app


# =============================================================================
# RUN THE SERVER
# =============================================================================

def start_scheduler(app: Flask) -> ScrapeScheduler:
    """Start hourly scraping for an application built by create_app."""
    settings = app.config["SETTINGS"]
    scheduler = ScrapeScheduler(
        app.config["SCRAPER"],
        interval_minutes=settings.scrape_interval_minutes,
        run_on_start=settings.scrape_on_startup and bool(settings.room_id),
    )
    scheduler.start()
    app.config["SCHEDULER"] = scheduler
    return scheduler


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    settings = Settings.from_env()
    if not settings.room_id:
        logger.warning("ROOM_ID is not set! System may not work.")
    if not settings.room_url:
        logger.info("ROOM_URL is not set. Using default fallback URL logic.")

    app = create_app(settings)
    start_scheduler(app)

    logger.info("Nakiri Electricity is running on port %d, room %s (%s)",
                settings.port, settings.display_name(),
                "Custom URL Configured" if settings.room_url else "Default URL")
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
