#!/usr/bin/env python3
"""
Application startup script.

Runs the API server, or a single reminder job when ``--run-reminders`` is given.
"""

import argparse
import json
import sys

from heritage_lanka.config.settings import get_settings


def main():
    """Main startup function"""
    parser = argparse.ArgumentParser(description="Heritage Lanka Booking API")
    parser.add_argument("--host", default=None, help="Host to bind to (overrides config)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (overrides config)")
    parser.add_argument("--workers", type=int, default=None, help="Number of worker processes (overrides config)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (overrides config)")
    parser.add_argument(
        "--run-reminders",
        choices=["trip-start", "itinerary"],
        default=None,
        help="Run one reminder job now and exit",
    )

    args = parser.parse_args()
    settings = get_settings()

    if args.run_reminders:
        from heritage_lanka.core.logging import configure_logging
        from heritage_lanka.services.reminder_job import ReminderScheduler

        configure_logging(settings.log_level.value)
        scheduler = ReminderScheduler()
        if args.run_reminders == "trip-start":
            result = scheduler.run_trip_start_reminders()
        else:
            result = scheduler.run_daily_itinerary_reminders()
        print(json.dumps(result, default=str))
        sys.exit(0 if result.get("status") == "success" else 1)

    host = args.host or settings.host
    port = args.port or settings.port
    reload = args.reload or settings.reload
    workers = args.workers or settings.workers

    print(f"Starting {settings.app_name} v{settings.app_version}")
    print(f"   Environment: {settings.environment.value}")
    print(f"   Host: {host}")
    print(f"   Port: {port}")
    print(f"   Workers: {workers}")
    print(f"   Reminders: {'on' if settings.reminders.enabled else 'off'}")

    # Start the server
    import uvicorn

    uvicorn.run(
        "heritage_lanka.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers if not reload else 1,
        log_level=settings.log_level.value.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
