"""
KNN Classification Server Entry Point

Loads configuration, builds the classification service and serves the
FastAPI application with uvicorn.
"""

import argparse
import sys

import uvicorn

from knn_service.state import CONFIG_PATH, load_config, reset_service, DEFAULT_CONFIG
from knn_service.server import app
from knn_service.utils import setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Serve the KNN classification service over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve with the packaged configuration
  knn-service

  # Serve on another port with a custom config
  knn-service --config my_config.json --port 9000
        """
    )
    parser.add_argument('--config', type=str, default=CONFIG_PATH, help='Path to config.json')
    parser.add_argument('--host', type=str, default=None, help='Host address to bind')
    parser.add_argument('--port', type=int, default=None, help='Port to bind')
    parser.add_argument('--log-level', type=str, default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level')
    return parser.parse_args(argv)


def main(argv=None):
    """
    Main entry point for the classification server.

    This function:
    1. Loads configuration (falling back to defaults if the file is missing)
    2. Builds the classification service from it
    3. Runs the FastAPI app with uvicorn until interrupted
    """
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        config = dict(DEFAULT_CONFIG)
    except ValueError as e:
        setup_logging("INFO").error(f"Could not load config {args.config}: {e}")
        sys.exit(1)

    if args.host:
        config["host"] = args.host
    if args.port:
        config["port"] = args.port
    if args.log_level:
        config["log_level"] = args.log_level

    logger = setup_logging(config["log_level"])

    try:
        service = reset_service(config)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("KNN Classification Service")
    logger.info(f"  k={service.k}, tie policy={service.tie_policy}")
    logger.info(f"  datasets: {', '.join(service.registry.names())}")
    logger.info(f"  API: http://{config['host']}:{config['port']}")
    logger.info(f"  API Documentation: http://{config['host']}:{config['port']}/docs")
    logger.info("=" * 60)

    try:
        uvicorn.run(app, host=config["host"], port=int(config["port"]),
                    log_level=config["log_level"].lower())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")


if __name__ == "__main__":
    main()
