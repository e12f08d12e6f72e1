"""
TripWatch CLI entry point.

Polls a GPS telemetry provider, segments the samples into trips and keeps a
durable cache for when the network or the provider comes up empty.

Usage:
    python -m tripwatch                 # Headless polling, results logged
    python -m tripwatch --once          # Run one Fetch Cycle and print JSON
    python -m tripwatch --web           # Start the status API
    python -m tripwatch --mobile        # Start the Kivy app
    python -m tripwatch --help          # Show help
"""

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path

from .core.config import Config
from .core.engine import TelemetryEngine
from .core.models import FetchResult
from .telemetry.session import StoredSession
from .telemetry.storage import open_store


def setup_logging(config: Config) -> None:
    """Configure logging based on config."""
    log_config = config["logging"]
    level = getattr(logging, log_config.get("level", "INFO"))

    # Create logs directory
    log_file = log_config.get("file", "logs/tripwatch.log")
    log_dir = Path(log_file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=log_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file),
        ],
    )


def _sign_in_from_args(engine: TelemetryEngine, args: argparse.Namespace) -> None:
    if args.token and args.device:
        engine.session.sign_in(args.token, args.device)
    elif args.token or args.device:
        logging.getLogger(__name__).warning("--token and --device must be given together, ignoring")


def run_once(config: Config, args: argparse.Namespace) -> int:
    """Run a single Fetch Cycle and print the result as JSON."""
    logger = logging.getLogger(__name__)
    # Signed in before the engine attaches its listeners, so no polling starts
    session = StoredSession(open_store(config.get("session.path", "~/.tripwatch/session.json")))
    if args.token and args.device:
        session.sign_in(args.token, args.device)

    engine = TelemetryEngine(config, session=session)
    if not (session.is_authenticated or session.restore()):
        logger.error("Not signed in. Pass --token and --device.")
        engine.client.close()
        return 2

    try:
        result = engine.fetch_cycle.run(engine.session.credential, engine.session.device_id)
    finally:
        engine.client.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 1 if result.sign_out_required else 0


def run_headless(config: Config, args: argparse.Namespace) -> None:
    """Poll in the foreground until interrupted, logging each result."""
    logger = logging.getLogger(__name__)
    logger.info("Starting headless polling...")

    engine = TelemetryEngine(config)

    def on_result(result: FetchResult) -> None:
        latest = result.latest_point
        if latest is None:
            logger.info(f"[{result.status_label}] no points ({result.error_kind})")
            return
        logger.info(
            f"[{result.status_label}] {len(result.points)} points, latest "
            f"{latest.latitude:.5f},{latest.longitude:.5f} at {latest.timestamp.isoformat()}"
        )

    engine.add_listener(on_result)
    engine.start(foregrounded=True)
    _sign_in_from_args(engine, args)

    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        engine.stop()
        logger.info("TripWatch stopped")


def run_web_server(config: Config, args: argparse.Namespace) -> None:
    """Start the Flask status API with a running engine behind it."""
    logger = logging.getLogger(__name__)
    logger.info("Starting web server...")

    from .web.app import create_app

    engine = TelemetryEngine(config)
    engine.start(foregrounded=True)
    _sign_in_from_args(engine, args)

    app = create_app(config, engine)

    web_config = config["web"]
    host = web_config.get("host", "127.0.0.1")
    port = web_config.get("port", 5000)

    logger.info(f"Web server starting at http://{host}:{port}")

    try:
        # The reloader would start a second engine
        app.run(host=host, port=port, debug=False, threaded=True, use_reloader=False)
    finally:
        engine.stop()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="TripWatch - GPS telemetry acquisition and trip segmentation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m tripwatch --token JWT --device IMEI   Sign in and poll
    python -m tripwatch --once                      One fetch, JSON to stdout
    python -m tripwatch --web                       Status API on port 5000
    python -m tripwatch --mobile                    Kivy app
        """,
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run one Fetch Cycle and exit")
    mode.add_argument("--web", action="store_true", help="Start the status web server")
    mode.add_argument("--mobile", action="store_true", help="Start the Kivy application")

    parser.add_argument("--config", type=str, help="Path to configuration directory")
    parser.add_argument("--token", type=str, help="Bearer credential to sign in with")
    parser.add_argument("--device", type=str, help="Device identifier (IMEI)")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    if args.debug:
        os.environ["TRIPWATCH_ENV"] = "development"

    config_dir = Path(args.config) if args.config else None
    config = Config(config_dir)

    setup_logging(config)

    logger = logging.getLogger(__name__)
    logger.info("TripWatch starting...")
    logger.info(f"Environment: {config.env}")

    if args.once:
        sys.exit(run_once(config, args))
    elif args.web:
        run_web_server(config, args)
    elif args.mobile:
        from .mobile.app import run_mobile_app

        run_mobile_app(config)
    else:
        run_headless(config, args)


if __name__ == "__main__":
    main()
