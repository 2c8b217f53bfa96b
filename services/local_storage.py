# --- START OF FILE local_storage.py ---

import os
import logging
import uuid
import shutil
from datetime import datetime, timedelta
from typing import Tuple
import config

from errors import (
    StorageError,
    PublishError,
    ValidationError,
    capture_exception
)

logger = logging.getLogger(__name__)

def ensure_storage_dir():
    """
    Make sure the storage directory exists.
    Raises:
        StorageError: If the directory cannot be created.
    """
    try:
        os.makedirs(config.STORAGE_PATH, exist_ok=True)
        logger.debug(f"Storage directory ensured: {config.STORAGE_PATH}")
    except OSError as e:
        error_id = capture_exception(e, {"directory": config.STORAGE_PATH})
        raise StorageError(
            message=f"Could not create storage directory '{config.STORAGE_PATH}': {str(e)}",
            error_code="storage_dir_creation_failed",
            details={"directory": config.STORAGE_PATH, "original_error": str(e), "error_id": error_id}
        )

def _check_filename(filename: str) -> None:
    if not filename or '..' in filename or filename.startswith(('/', '\\')) or os.sep in filename:
        raise ValidationError(
            message=f"Invalid storage filename: '{filename}'",
            error_code="invalid_storage_filename",
            details={"filename": filename}
        )

def get_file_path(filename: str) -> str:
    """
    Full path of a stored file.
    Raises:
        ValidationError: If the filename would escape the storage directory.
    """
    _check_filename(filename)
    return os.path.join(config.STORAGE_PATH, filename)

def get_file_url(filename: str) -> str:
    """Public URL of a stored file, under BASE_URL."""
    _check_filename(filename)
    base_url = config.BASE_URL.rstrip('/')
    return f"{base_url}/{filename}"


def store_file(file_path: str) -> str:
    """
    Publish a rendered file and return its public URL

    The file is copied into STORAGE_PATH next to a `.meta` file holding the
    publish time, which drives expiry.

    Args:
        file_path (str): File to publish

    Returns:
        str: Public URL of the stored file

    Raises:
        PublishError: If the source is missing or the copy fails.
    """
    try:
        ensure_storage_dir()
    except StorageError as e:
        raise PublishError(message=e.message, error_code=e.error_code, details=e.details)

    if not os.path.isfile(file_path):
        raise PublishError(
            message=f"Source file not found for publishing: {file_path}",
            error_code="source_file_not_found_for_storage",
            details={"source_path": file_path}
        )

    file_ext = os.path.splitext(file_path)[1]
    target_filename = f"{uuid.uuid4()}{file_ext}"

    target_storage_path = get_file_path(target_filename)
    meta_path = f"{target_storage_path}.meta"

    try:
        shutil.copy2(file_path, target_storage_path)
        with open(meta_path, "w", encoding='utf-8') as f:
            f.write(datetime.now().isoformat())

        logger.info(f"File stored locally: {target_storage_path}")
        return get_file_url(target_filename)
    except (IOError, OSError, shutil.Error) as e:
        error_id = capture_exception(e, {"source_path": file_path, "target_path": target_storage_path})
        for leftover in (target_storage_path, meta_path):
            if os.path.exists(leftover):
                try: os.remove(leftover)
                except OSError: logger.warning(f"Could not remove partially stored file {leftover}")
        raise PublishError(
            message=f"Error storing file '{os.path.basename(file_path)}': {str(e)}",
            error_code="file_storage_failed",
            details={"source_path": file_path, "target_path": target_storage_path, "original_error": str(e), "error_id": error_id}
        )

def _created_at(file_path: str, meta_path: str) -> datetime:
    if os.path.exists(meta_path):
        with open(meta_path, "r", encoding='utf-8') as f:
            return datetime.fromisoformat(f.read().strip())
    return datetime.fromtimestamp(os.path.getmtime(file_path))

def cleanup_old_files() -> Tuple[int, int]:
    """
    Remove stored files older than MAX_FILE_AGE_HOURS

    Age comes from the `.meta` timestamp, or the file mtime when there is none.

    Returns:
        tuple: (files removed, bytes freed)
    Raises:
        StorageError: If the storage directory cannot be listed.
    """
    ensure_storage_dir()

    max_age_hours = config.MAX_FILE_AGE_HOURS
    if max_age_hours <= 0:
        logger.info("Stored file cleanup is disabled (MAX_FILE_AGE_HOURS <= 0).")
        return 0, 0
    cutoff = datetime.now() - timedelta(hours=max_age_hours)

    file_count = 0
    size_freed = 0

    try:
        filenames = os.listdir(config.STORAGE_PATH)
    except OSError as e:
        error_id = capture_exception(e, {"storage_path": config.STORAGE_PATH})
        raise StorageError(
            message=f"Error listing storage directory '{config.STORAGE_PATH}' for cleanup: {str(e)}",
            error_code="storage_listdir_failed_cleanup",
            details={"storage_path": config.STORAGE_PATH, "error_id": error_id}
        )

    for filename in filenames:
        if filename.startswith('.') or filename.endswith('.meta'):
            continue

        file_path = os.path.join(config.STORAGE_PATH, filename)
        if not os.path.isfile(file_path):
            continue

        meta_path = f"{file_path}.meta"
        try:
            if _created_at(file_path, meta_path) < cutoff:
                size = os.path.getsize(file_path)
                os.remove(file_path)
                if os.path.exists(meta_path):
                    os.remove(meta_path)
                file_count += 1
                size_freed += size
                logger.debug(f"Removed expired file: {file_path}")
        except FileNotFoundError:
            logger.debug(f"File {file_path} not found during cleanup, possibly already deleted.")
        except (ValueError, IOError, OSError) as e:
            error_id = capture_exception(e, {"context": "cleanup_old_files_item", "file_path": file_path, "meta_path": meta_path})
            logger.error(f"Error cleaning up '{file_path}': {str(e)} (ID: {error_id})")

    if file_count > 0:
        logger.info(f"Cleanup: removed {file_count} files ({size_freed/1024/1024:.2f} MB)")
    return file_count, size_freed


def file_exists(filename: str) -> bool:
    """True if `filename` is a stored file; invalid names never exist."""
    try:
        return os.path.isfile(get_file_path(filename))
    except ValidationError:
        return False

# --- END OF FILE local_storage.py ---
