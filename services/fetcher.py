# --- START OF FILE fetcher.py ---

import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests

import config
from errors import (
    FetchError,
    NetworkError,
    capture_exception
)
from services.file_management import validate_url, safe_delete_file, format_size

logger = logging.getLogger(__name__)


def is_retriable_status(status_code: Optional[int]) -> bool:
    """404 and 5xx are treated as "not there yet" (CDN propagation, origin hiccups)."""
    if status_code is None:
        return False
    return status_code == 404 or status_code >= 500


@dataclass
class RetryState:
    """Bookkeeping for one fetch: attempts made so far and the last failure seen."""
    max_attempts: int
    initial_delay_ms: int
    attempt: int = 0
    last_error: Optional[Exception] = None
    last_status: Optional[int] = None

    def record_failure(self, error: Exception, status_code: Optional[int] = None) -> None:
        self.attempt += 1
        self.last_error = error
        self.last_status = status_code

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_delay_ms(self) -> int:
        """Delay before the next attempt, doubling after every failure."""
        return self.initial_delay_ms * 2 ** (max(self.attempt, 1) - 1)


def _status_of(exc: requests.HTTPError) -> Optional[int]:
    response = getattr(exc, 'response', None)
    return getattr(response, 'status_code', None)


def _stream_to_file(response, destination: str, chunk_size: int) -> int:
    written = 0
    with open(destination, 'wb') as f:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:
                f.write(chunk)
                written += len(chunk)
    return written


def fetch(url: str, destination: str,
          max_attempts: Optional[int] = None,
          initial_delay_ms: Optional[int] = None,
          timeout: Optional[float] = None,
          sleep: Callable[[float], None] = time.sleep,
          http_get: Callable[..., requests.Response] = requests.get) -> str:
    """
    Download `url` to `destination`, retrying while the file is not yet available.

    Only HTTP 404 and 5xx responses are retried, with exponential backoff.
    Any other failure is fatal on the spot. The destination is removed after
    every failed attempt, so a failed fetch never leaves a partial file.

    Args:
        url (str): Source URL (http/https, public hosts only)
        destination (str): Local path to write the body to
        max_attempts (int, optional): Total attempts; defaults to DOWNLOAD_MAX_ATTEMPTS
        initial_delay_ms (int, optional): Delay before the second attempt; defaults to DOWNLOAD_INITIAL_DELAY_MS
        timeout (float, optional): Per-attempt timeout; defaults to DOWNLOAD_TIMEOUT
        sleep: Sleep function, replaced in tests
        http_get: requests.get compatible callable, replaced in tests

    Returns:
        str: destination

    Raises:
        ValidationError: If the URL is rejected by the SSRF guard.
        FetchError: If the download fails, the retries run out or the body
            cannot be written locally.
    """
    validated_url = validate_url(url)

    state = RetryState(
        max_attempts=max_attempts if max_attempts is not None else config.DOWNLOAD_MAX_ATTEMPTS,
        initial_delay_ms=initial_delay_ms if initial_delay_ms is not None else config.DOWNLOAD_INITIAL_DELAY_MS,
    )
    timeout = timeout if timeout is not None else config.DOWNLOAD_TIMEOUT

    while True:
        start_time = time.time()
        try:
            with http_get(validated_url, stream=True, timeout=timeout) as response:
                response.raise_for_status()
                written = _stream_to_file(response, destination, config.DOWNLOAD_CHUNK_SIZE)

            elapsed = time.time() - start_time
            logger.info(f"Downloaded {validated_url} -> {destination} ({format_size(written)} in {elapsed:.2f}s, attempt {state.attempt + 1})")
            return destination

        except requests.HTTPError as e:
            safe_delete_file(destination)
            status = _status_of(e)
            state.record_failure(e, status)
            if not is_retriable_status(status):
                error_id = capture_exception(e, {"url": validated_url, "status": status})
                raise FetchError(
                    message=f"Download of {validated_url} failed with HTTP {status}",
                    error_code="download_http_error",
                    details={"url": validated_url, "status": status, "attempts": state.attempt, "error_id": error_id}
                )
            if state.exhausted:
                error_id = capture_exception(e, {"url": validated_url, "status": status, "attempts": state.attempt})
                logger.error(f"Giving up on {validated_url} after {state.attempt} attempts (last status {status})")
                raise FetchError(
                    message=f"Download of {validated_url} failed after {state.attempt} attempts: HTTP {status}",
                    error_code="download_max_retries_reached",
                    details={"url": validated_url, "status": status, "attempts": state.attempt,
                             "original_error": str(state.last_error), "error_id": error_id}
                )
            delay_ms = state.next_delay_ms()
            logger.warning(f"Download attempt {state.attempt}/{state.max_attempts} for {validated_url} returned {status}, retrying in {delay_ms}ms")
            sleep(delay_ms / 1000.0)

        except requests.RequestException as e:
            safe_delete_file(destination)
            state.record_failure(e)
            error_id = capture_exception(e, {"url": validated_url, "attempt": state.attempt})
            network_error = NetworkError.from_request_exception(e)
            raise FetchError(
                message=network_error.message,
                error_code=network_error.error_code,
                details={"url": validated_url, "attempts": state.attempt, "original_error": str(e), "error_id": error_id}
            )

        except (IOError, OSError) as e:
            safe_delete_file(destination)
            error_id = capture_exception(e, {"url": validated_url, "destination": destination})
            raise FetchError(
                message=f"I/O error while writing download to {destination}: {str(e)}",
                error_code="download_io_error",
                details={"url": validated_url, "destination": destination, "original_error": str(e), "error_id": error_id}
            )

# --- END OF FILE fetcher.py ---
