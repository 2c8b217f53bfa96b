import threading
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from services.local_storage import cleanup_old_files
from services.file_management import cleanup_temp_files, format_size
import config

logger = logging.getLogger(__name__)

class CleanupResult:
    """Outcome of one cleanup pass"""
    def __init__(self,
                 files_removed: int = 0,
                 bytes_freed: int = 0,
                 categories: Optional[Dict[str, int]] = None,
                 errors: Optional[List[str]] = None):
        self.files_removed = files_removed
        self.bytes_freed = bytes_freed
        self.categories = categories or {}
        self.errors = errors or []
        self.timestamp = datetime.now()

    def __str__(self) -> str:
        return (f"CleanupResult: {self.files_removed} files removed, "
                f"{format_size(self.bytes_freed)} freed")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'files_removed': self.files_removed,
            'bytes_freed': self.bytes_freed,
            'bytes_freed_formatted': format_size(self.bytes_freed),
            'categories': self.categories,
            'errors': self.errors,
            'timestamp': self.timestamp.isoformat()
        }

class CleanupService:
    """
    Periodic removal of expired published files and of scratch files
    orphaned by a process that died mid-job.
    """
    def __init__(self, interval_minutes: Optional[int] = None, max_file_age_hours: Optional[float] = None):
        self.interval = (interval_minutes or config.CLEANUP_INTERVAL_MINUTES) * 60
        self.max_file_age = max_file_age_hours or config.MAX_FILE_AGE_HOURS

        self.shutdown_flag = threading.Event()
        self.manual_trigger = threading.Event()
        self.thread = None

        self.last_run_time = None
        self.last_result = None
        self.run_count = 0
        self.total_files_cleaned = 0
        self.total_bytes_freed = 0

    def start(self):
        """Start the service in a daemon thread"""
        if self.thread is not None:
            logger.warning("Cleanup service already running")
            return

        self.thread = threading.Thread(target=self._run, daemon=True, name="cleanup-service")
        self.thread.start()
        logger.info(f"Cleanup service started (interval: {self.interval/60} minutes)")

    def stop(self, timeout: float = 60):
        """Stop the service and wait for the current pass to finish"""
        if self.thread is None:
            logger.warning("Cleanup service is not running")
            return

        logger.info("Stopping cleanup service...")
        self.shutdown_flag.set()
        self.manual_trigger.set()
        self.thread.join(timeout=timeout)

        if self.thread.is_alive():
            logger.warning("Cleanup service did not stop cleanly")
        else:
            logger.info("Cleanup service stopped")
            self.thread = None
            self.shutdown_flag.clear()
            self.manual_trigger.clear()

    def _run(self):
        while not self.shutdown_flag.is_set():
            try:
                self.run_now()
            except Exception as e:
                logger.error(f"Error in cleanup cycle: {e}", exc_info=True)

            self.manual_trigger.wait(timeout=self.interval)
            self.manual_trigger.clear()

    def run_now(self) -> CleanupResult:
        """
        Run one cleanup pass immediately

        Returns:
            CleanupResult: What was removed, with per-area counts
        """
        logger.debug(f"Running cleanup (max age: {self.max_file_age} hours)")
        result = CleanupResult()

        for category, sweep in (('storage', cleanup_old_files),
                                ('scratch', lambda: cleanup_temp_files(max_age_hours=self.max_file_age))):
            try:
                files, freed = sweep()
                result.files_removed += files
                result.bytes_freed += freed
                result.categories[category] = files
            except Exception as e:
                error_msg = f"Error cleaning {category} files: {e}"
                logger.error(error_msg)
                result.errors.append(error_msg)

        self.last_run_time = datetime.now()
        self.last_result = result
        self.run_count += 1
        self.total_files_cleaned += result.files_removed
        self.total_bytes_freed += result.bytes_freed

        if result.files_removed > 0:
            logger.info(str(result))
        return result

    def get_status(self) -> Dict[str, Any]:
        return {
            'active': self.thread is not None and self.thread.is_alive(),
            'last_run': self.last_run_time.isoformat() if self.last_run_time else None,
            'run_count': self.run_count,
            'total_files_cleaned': self.total_files_cleaned,
            'total_space_freed': format_size(self.total_bytes_freed),
            'interval_minutes': self.interval / 60,
            'max_file_age_hours': self.max_file_age,
            'last_result': self.last_result.to_dict() if self.last_result else None,
            'next_scheduled_run': (self.last_run_time + timedelta(seconds=self.interval)).isoformat() if self.last_run_time else None
        }
