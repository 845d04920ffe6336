"""
Client Communication Module

This module handles communication with the classification server including:
- Checking server status
- Reconfiguring k
- Requesting classifications and dataset evaluations
- Retry logic with exponential backoff for transport failures
"""

import requests
import time
import logging
from typing import Dict, List


logger = logging.getLogger(__name__)


class ServerError(Exception):
    """The server answered with an error status."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Server returned {status_code}: {detail}")


def _raise_for_error(response: requests.Response) -> None:
    if response.status_code < 400:
        return
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    raise ServerError(response.status_code, str(detail))


def _request_with_retry(
    method: str,
    url: str,
    max_retries: int = 3,
    timeout: int = 10,
    **kwargs
) -> Dict:
    """
    Send a request, retrying on timeouts and connection errors.

    Error responses from the server are not retried: they reflect the request
    itself and would fail again.

    Raises:
        ServerError: If the server rejects the request
        requests.exceptions.RequestException: If all attempts fail to reach the server
    """
    for attempt in range(max_retries):
        try:
            response = requests.request(method, url, timeout=timeout, **kwargs)
            _raise_for_error(response)
            return response.json()

        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            logger.warning(f"Request to {url} failed (attempt {attempt + 1}/{max_retries}): {e}")
            if attempt < max_retries - 1:
                wait_time = 2 ** attempt
                logger.info(f"Retrying in {wait_time} seconds...")
                time.sleep(wait_time)
            else:
                logger.error(f"Request to {url} failed: Maximum retries exceeded")
                raise


def check_server_status(server_url: str, timeout: int = 5) -> Dict:
    """
    Query server health and status.

    Args:
        server_url: Base URL of the server (e.g., "http://localhost:8000")
        timeout: Request timeout in seconds

    Returns:
        Dictionary containing server status information

    Raises:
        requests.exceptions.RequestException: If connection fails
    """
    try:
        server_url = server_url.rstrip('/')
        response = requests.get(
            f"{server_url}/status",
            timeout=timeout
        )
        response.raise_for_status()

        status_data = response.json()
        logger.info(f"Server status retrieved: {status_data.get('server_status', 'unknown')}")

        return status_data

    except requests.exceptions.Timeout:
        logger.error(f"Server status check timed out after {timeout}s")
        raise
    except requests.exceptions.ConnectionError as e:
        logger.error(f"Failed to connect to server at {server_url}: {e}")
        raise
    except requests.exceptions.RequestException as e:
        logger.error(f"Error checking server status: {e}")
        raise


def configure_remote_k(
    server_url: str,
    k: int,
    max_retries: int = 3,
    timeout: int = 10
) -> Dict:
    """
    Replace k on the server.

    Args:
        server_url: Base URL of the server
        k: New number of nearest neighbours
        max_retries: Maximum number of attempts
        timeout: Request timeout in seconds

    Returns:
        Server response with previous and new k

    Raises:
        ValueError: If k is not a positive integer
        ServerError: If the server rejects the value
    """
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise ValueError("k must be a positive integer")

    server_url = server_url.rstrip('/')
    result = _request_with_retry(
        "POST",
        f"{server_url}/configure",
        max_retries=max_retries,
        timeout=timeout,
        json={"k": k}
    )
    logger.info(f"Server k updated: {result.get('previous_k')} -> {result.get('k')}")
    return result


def run_remote_analysis(
    server_url: str,
    data_set: str,
    test_point: List[float],
    explain: bool = False,
    max_retries: int = 3,
    timeout: int = 10
) -> Dict:
    """
    Classify a test point on the server.

    Args:
        server_url: Base URL of the server
        data_set: Registered dataset name
        test_point: Coordinates of the point to classify
        explain: Also return neighbours and votes
        max_retries: Maximum number of attempts
        timeout: Request timeout in seconds

    Returns:
        Server response; the predicted class is under "class"

    Raises:
        ValueError: If data_set or test_point is empty
        ServerError: If the server rejects the request (unknown dataset, bad arity, bad k)
    """
    if not data_set or len(data_set.strip()) == 0:
        raise ValueError("data_set cannot be empty")

    if not test_point:
        raise ValueError("test_point cannot be empty")

    server_url = server_url.rstrip('/')
    endpoint = "explain" if explain else "run_analysis"

    result = _request_with_retry(
        "POST",
        f"{server_url}/{endpoint}",
        max_retries=max_retries,
        timeout=timeout,
        json={"data_set": data_set, "test_point": list(test_point)}
    )
    logger.info(f"Server classified point on '{data_set}': class {result.get('class')}")
    return result


def evaluate_remote_dataset(
    server_url: str,
    data_set: str,
    max_retries: int = 3,
    timeout: int = 10
) -> Dict:
    """
    Ask the server to classify every point of a dataset against itself.

    Returns:
        Server response with predictions, accuracy and confusion matrix
    """
    server_url = server_url.rstrip('/')
    return _request_with_retry(
        "GET",
        f"{server_url}/evaluate/{data_set}",
        max_retries=max_retries,
        timeout=timeout
    )
