# --- START OF FILE file_management.py ---

import os
import uuid
import logging
import socket
import ipaddress
import time
from fnmatch import fnmatch
from urllib.parse import urlparse, unquote
from typing import Optional, Tuple, Iterable, List
import config

from errors import (
    StorageError,
    ValidationError,
    capture_exception
)

logger = logging.getLogger(__name__)

# Scratch files created by banner jobs
SCRATCH_PATTERNS = ['input-*', 'output-*']

BLOCKED_HOSTNAMES = {'localhost', 'localhost.localdomain', '0.0.0.0'}
SUSPICIOUS_URL_CHARS = ('@', '\\', '\r', '\n', '\t', '\0')


def _is_internal(ip) -> bool:
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_multicast or ip.is_reserved


def _rejected(url: str, message: str, error_code: str, **details) -> ValidationError:
    return ValidationError(message=message, error_code=error_code, details={"url": url, **details})


def _resolved_addresses(hostname: str) -> List[str]:
    try:
        return [sockaddr[0] for _, _, _, _, sockaddr in socket.getaddrinfo(hostname, None)]
    except socket.gaierror:
        # Unresolvable here; the download reports it as a connection error
        logger.warning(f"Could not resolve hostname: {hostname}")
        return []


def validate_url(url: str) -> str:
    """
    Reject source URLs that could make the service fetch from itself or its network

    Only http(s) URLs to public hosts pass. Literal IPs are checked directly,
    hostnames after DNS resolution.

    Args:
        url (str): Source URL from the request

    Returns:
        str: The URL, unchanged

    Raises:
        ValidationError: If the URL is malformed or points at a private address
    """
    if not isinstance(url, str) or not url:
        raise _rejected(url, "URL must be a non-empty string", "invalid_url_empty")

    decoded_url = unquote(url)
    if any(char in decoded_url for char in SUSPICIOUS_URL_CHARS):
        raise _rejected(url, f"URL contains suspicious characters: {decoded_url!r}", "suspicious_characters_in_url")

    try:
        parsed_url = urlparse(decoded_url)
        hostname = parsed_url.hostname
    except ValueError as e:
        raise _rejected(url, f"Malformed URL: {e}", "invalid_url_malformed")

    if parsed_url.scheme not in ('http', 'https'):
        raise _rejected(url, f"URL scheme not allowed: {parsed_url.scheme or 'none'}. Only http and https are accepted.",
                        "invalid_url_scheme", scheme=parsed_url.scheme)
    if not hostname:
        raise _rejected(url, "Invalid URL: missing hostname", "invalid_url_no_hostname")
    if hostname.lower() in BLOCKED_HOSTNAMES:
        raise _rejected(url, f"Hostname not allowed: {hostname}", "disallowed_hostname", hostname=hostname)

    try:
        literal_ip = ipaddress.ip_address(hostname)
    except ValueError:
        literal_ip = None

    if literal_ip is not None:
        if _is_internal(literal_ip):
            raise _rejected(url, f"Access to private/internal networks is not allowed: {hostname}",
                            "private_ip_access", hostname=hostname)
        return url

    for address in _resolved_addresses(hostname):
        resolved = ipaddress.ip_address(address.split('%', 1)[0])
        if _is_internal(resolved):
            raise _rejected(url, f"Hostname {hostname} resolves to a private/internal IP: {resolved}",
                            "private_resolved_ip", hostname=hostname, resolved_ip=str(resolved))
    return url

def generate_temp_filename(prefix: str = "", suffix: str = "", unique_id: Optional[str] = None) -> str:
    """
    Build a unique scratch path inside TEMP_DIR

    Args:
        prefix (str): Filename prefix
        suffix (str): Suffix/extension
        unique_id (str, optional): Identifier to embed; a random UUID when omitted

    Returns:
        str: Absolute path of the scratch file
    """
    unique_id = unique_id or str(uuid.uuid4())
    filename = f"{prefix}{unique_id}{suffix}"
    return os.path.join(config.TEMP_DIR, filename)

def ensure_directory(directory: str) -> None:
    """
    Make sure a directory exists, creating it when needed

    Raises:
        StorageError: If the directory cannot be created.
    """
    try:
        os.makedirs(directory, exist_ok=True)
        logger.debug(f"Directory ensured: {directory}")
    except OSError as e:
        error_id = capture_exception(e, {"directory": directory})
        raise StorageError(
            message=f"Could not create directory {directory}: {str(e)}",
            error_code="directory_creation_failed",
            details={"directory": directory, "original_error": str(e), "error_id": error_id}
        )

def safe_delete_file(file_path: str) -> bool:
    """
    Delete a file if it exists, logging instead of raising

    Returns:
        bool: True if the file was removed or did not exist, False if removal failed.
    """
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.debug(f"File removed: {file_path}")
        return True
    except OSError as e:
        error_id = capture_exception(e, {"file_path": file_path})
        logger.error(f"Error removing file {file_path}: {str(e)} (ID: {error_id})")
        return False


class ScratchFile:
    """
    A job-local scratch path that is released when the owning scope exits.

    The file is not created here; stages that write it do so themselves.
    Release checks for existence first, since a stage may fail before the
    file is written, and only ever runs once.
    """

    def __init__(self, prefix: str, unique_id: str, suffix: str = ".mp4"):
        ensure_directory(config.TEMP_DIR)
        self.path = generate_temp_filename(prefix=prefix, suffix=suffix, unique_id=unique_id)
        self.released = False

    def release(self) -> bool:
        if self.released:
            return True
        self.released = True
        return safe_delete_file(self.path)

    def __enter__(self) -> 'ScratchFile':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ScratchFile({self.path!r}, released={self.released})"


def format_size(size_bytes: int) -> str:
    if size_bytes < 0: return "0 B"
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0 or unit == 'TB':
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"

def cleanup_temp_files(max_age_hours: float = 24, directory: Optional[str] = None,
                       patterns: Iterable[str] = SCRATCH_PATTERNS) -> Tuple[int, int]:
    """
    Remove scratch files older than max_age_hours

    Only names matching `patterns` are touched, so a shared TEMP_DIR such as
    /tmp is safe to sweep.

    Returns:
        tuple: (files removed, bytes freed)
    """
    if directory is None:
        directory = config.TEMP_DIR

    if not os.path.isdir(directory):
        logger.warning(f"Cleanup directory does not exist or is not a directory: {directory}")
        return 0, 0

    max_age_seconds = max_age_hours * 3600
    current_time = time.time()
    files_removed = 0
    bytes_freed = 0

    for filename in os.listdir(directory):
        if not any(fnmatch(filename, pattern) for pattern in patterns):
            continue
        file_path = os.path.join(directory, filename)
        try:
            if not os.path.isfile(file_path) or os.path.islink(file_path):
                continue
            if current_time - os.path.getmtime(file_path) > max_age_seconds:
                file_size = os.path.getsize(file_path)
                if safe_delete_file(file_path):
                    files_removed += 1
                    bytes_freed += file_size
        except FileNotFoundError:
            logger.debug(f"File {file_path} vanished during cleanup, probably removed by its job.")
            continue

    if files_removed > 0:
        logger.info(f"Cleanup ({directory}): removed {files_removed} files ({format_size(bytes_freed)})")
    return files_removed, bytes_freed

# --- END OF FILE file_management.py ---
