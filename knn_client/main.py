"""
KNN Classification Client - Command Line Interface

Classify test points, reconfigure k, inspect status and evaluate datasets,
either against a running classification server or in process (--local).
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

import requests

from knn_client.state import load_config, save_config, CONFIG_PATH, DEFAULT_CONFIG
from knn_client.sync import (
    ServerError,
    check_server_status,
    configure_remote_k,
    evaluate_remote_dataset,
    run_remote_analysis
)
from knn_service.errors import KNNServiceError
from knn_service.service import ClassificationService, DEFAULT_K


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Client for the KNN classification service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Classify a point on the running server
  knn-client classify --dataset cancer --point 13.9 1.9

  # Classify in process with k=3 and show the neighbours
  knn-client classify --dataset cancer --point 13.9 1.9 --k 3 --local --explain

  # Change k on the server
  knn-client configure --k 3

  # Remember a different server for later runs
  knn-client --server http://10.0.0.5:8000 --save-config status
        """
    )
    parser.add_argument('--server', type=str, default=None, help='Server URL (default: from config)')
    parser.add_argument('--config', type=str, default=None, help='Path to client config.json')
    parser.add_argument('--save-config', action='store_true',
                        help='Write the effective settings (including --server) back to the config file')

    subparsers = parser.add_subparsers(dest='command', required=True)

    classify = subparsers.add_parser('classify', help='Classify a test point')
    classify.add_argument('--dataset', type=str, required=True, help='Dataset name (e.g. cancer, customer)')
    classify.add_argument('--point', type=float, nargs='+', required=True, help='Test point coordinates')
    classify.add_argument('--k', type=int, default=None, help='Number of neighbours (--local only)')
    classify.add_argument('--explain', action='store_true', help='Show neighbours and votes')
    classify.add_argument('--local', action='store_true', help='Classify in process instead of on the server')

    configure = subparsers.add_parser('configure', help='Set k on the server')
    configure.add_argument('--k', type=int, required=True, help='Number of neighbours')

    subparsers.add_parser('status', help='Show server status')

    evaluate = subparsers.add_parser('evaluate', help='Classify every point of a dataset against itself')
    evaluate.add_argument('--dataset', type=str, required=True, help='Dataset name')
    evaluate.add_argument('--k', type=int, default=None, help='Number of neighbours (--local only)')
    evaluate.add_argument('--local', action='store_true', help='Evaluate in process instead of on the server')

    return parser


def _load_client_config(config_path: Optional[str]) -> Dict:
    try:
        if config_path:
            return load_config(config_path)
        return load_config()
    except FileNotFoundError as e:
        logger.warning(f"Could not load config, using defaults: {e}")
        return dict(DEFAULT_CONFIG)


def _classify_local(dataset: str, point: List[float], k: Optional[int], explain: bool) -> Dict:
    service = ClassificationService(k=k if k is not None else DEFAULT_K)
    if explain:
        return service.explain_analysis(dataset, point).to_dict()
    return {
        "data_set": dataset,
        "test_point": point,
        "k": service.k,
        "class": service.run_analysis(dataset, point)
    }


def _evaluate_local(dataset: str, k: Optional[int]) -> Dict:
    service = ClassificationService(k=k if k is not None else DEFAULT_K)
    return service.evaluate(dataset)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the client.

    Returns:
        int: Exit code, 0 on success and 1 on any failure
    """
    args = build_parser().parse_args(argv)
    config = _load_client_config(args.config)
    server_url = args.server or config["server_url"]

    if args.save_config:
        config["server_url"] = server_url
        try:
            save_config(config, args.config or CONFIG_PATH)
        except (OSError, ValueError) as e:
            logger.error(f"Could not save config: {e}")
            return 1
        logger.info(f"Saved client config to {args.config or CONFIG_PATH}")

    retry_opts = {"max_retries": config["max_retries"], "timeout": config["timeout"]}

    try:
        if args.command == 'classify':
            if args.local:
                result = _classify_local(args.dataset, args.point, args.k, args.explain)
            else:
                if args.k is not None:
                    logger.warning("--k is ignored for remote classification; use 'configure' instead")
                result = run_remote_analysis(server_url, args.dataset, args.point,
                                             explain=args.explain, **retry_opts)

        elif args.command == 'configure':
            result = configure_remote_k(server_url, args.k, **retry_opts)

        elif args.command == 'status':
            result = check_server_status(server_url, timeout=config["timeout"])

        else:
            if args.local:
                result = _evaluate_local(args.dataset, args.k)
            else:
                result = evaluate_remote_dataset(server_url, args.dataset, **retry_opts)

    except (KNNServiceError, ServerError, ValueError) as e:
        logger.error(str(e))
        return 1
    except requests.exceptions.RequestException as e:
        logger.error(f"Could not reach server at {server_url}: {e}")
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
