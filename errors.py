"""
errors.py - Centralized error handling for the banner API

This module defines custom exceptions, error handlers, and utilities
for consistent error management across the application.
"""

import logging
import time
from typing import Dict, Any, Optional, List

import requests
import sentry_sdk
from flask import jsonify, Response, request, has_request_context

logger = logging.getLogger(__name__)

# Base exception classes
class VideoAPIError(Exception):
    """Base exception for all banner API errors"""
    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str = None, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None,
                 error_code: Optional[str] = None):
        self.message = message or "An unexpected error occurred"
        self.status_code = status_code or self.__class__.status_code
        self.details = details or {}
        self.error_code = error_code or self.__class__.error_code
        self.timestamp = time.time()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response"""
        error_dict = {
            "status": "error",
            "error": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
        }

        if self.details:
            error_dict["details"] = self.details

        if has_request_context() and hasattr(request, 'id'):
            error_dict["request_id"] = request.id

        return error_dict

    def get_response(self) -> Response:
        """Convert exception to Flask response"""
        return jsonify(self.to_dict()), self.status_code

# HTTP error classes
class BadRequestError(VideoAPIError):
    """Exception for invalid request data"""
    status_code = 400
    error_code = "bad_request"

class NotFoundError(VideoAPIError):
    """Exception for resource not found"""
    status_code = 404
    error_code = "not_found"

# Validation errors
class ValidationError(BadRequestError):
    """Exception for data validation failures"""
    error_code = "validation_error"

class GeometryError(VideoAPIError):
    """Banner configuration that cannot be turned into overlay geometry"""
    status_code = 422
    error_code = "geometry_error"

# Processing errors
class ProcessingError(VideoAPIError):
    """Base exception for media processing errors"""
    status_code = 500
    error_code = "processing_error"

class ProbeError(ProcessingError):
    """Unreadable media or media without a video stream"""
    error_code = "probe_error"

class FFmpegError(ProcessingError):
    """Exception for FFmpeg failures"""
    error_code = "ffmpeg_error"

    @classmethod
    def from_ffmpeg_error(cls, stderr: str, cmd: List[str] = None, **kwargs) -> 'FFmpegError':
        """Create from FFmpeg error output"""
        message = "FFmpeg command failed"
        stderr = stderr or ""

        patterns = [
            "No such file or directory",
            "Invalid data found when processing input",
            "Conversion failed",
            "Error while decoding",
            "Cannot find a matching stream",
            "Unknown encoder",
            "not found"
        ]

        for pattern in patterns:
            if pattern in stderr:
                message = f"FFmpeg error: {pattern}"
                break

        details = {"ffmpeg_error": stderr[-500:]}
        if cmd:
            details["command"] = " ".join(cmd)

        return cls(message=message, details=details, **kwargs)

class RenderError(FFmpegError):
    """The overlay render did not produce a usable output"""
    error_code = "render_error"

class StorageError(VideoAPIError):
    """Exception for storage-related errors"""
    error_code = "storage_error"

class PublishError(StorageError):
    """A rendered file could not be published"""
    error_code = "publish_error"

class NetworkError(VideoAPIError):
    """Exception for network-related errors"""
    error_code = "network_error"

    @classmethod
    def from_request_exception(cls, exception: requests.RequestException, **kwargs) -> 'NetworkError':
        """Create from requests exception"""
        url = getattr(exception.request, 'url', None)
        if isinstance(exception, requests.Timeout):
            return cls(
                message=f"Network timeout occurred: {exception}",
                details={"url": url},
                error_code="network_timeout",
                **kwargs
            )
        elif isinstance(exception, requests.ConnectionError):
            return cls(
                message=f"Connection error occurred: {exception}",
                details={"url": url},
                error_code="connection_error",
                **kwargs
            )
        else:
            return cls(
                message=f"Network error occurred: {exception}",
                details={"url": url},
                error_code="general_network_error",
                **kwargs
            )

class FetchError(NetworkError):
    """The source media could not be downloaded"""
    error_code = "fetch_error"

# Registration with Flask
def register_error_handlers(app):
    """Register error handlers with Flask app"""

    @app.errorhandler(VideoAPIError)
    def handle_api_error(error):
        """Handle all banner API errors"""
        return error.get_response()

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle 404 errors"""
        return NotFoundError("Resource not found").get_response()

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        """Handle 405 errors"""
        return BadRequestError(
            message=f"Method {request.method} not allowed for this endpoint",
            error_code="method_not_allowed"
        ).get_response()

    @app.errorhandler(500)
    def handle_internal_error(error):
        """Handle 500 errors"""
        logger.exception("Unhandled exception occurred")
        return VideoAPIError("An unexpected error occurred").get_response()

# Utility functions
def log_exception(exc: Exception, context: Optional[Dict[str, Any]] = None):
    """Log an exception with additional context"""
    error_id = f"err_{int(time.time())}_{id(exc):x}"

    log_context = {
        "error_id": error_id,
        "error_type": exc.__class__.__name__,
        "error_message": str(exc)
    }

    if context:
        log_context.update(context)

    logger.error(
        f"Exception {error_id}: {exc.__class__.__name__}: {str(exc)}",
        extra={"context": log_context},
        exc_info=exc
    )

    return error_id

def capture_exception(exc: Exception, context: Optional[Dict[str, Any]] = None) -> str:
    """
    Capture and log an exception, and forward it to Sentry when configured

    Args:
        exc: Exception to capture
        context: Additional context to include

    Returns:
        str: Error ID for reference
    """
    error_id = log_exception(exc, context)

    if sentry_sdk.get_client().is_active():
        with sentry_sdk.new_scope() as scope:
            if context:
                for key, value in context.items():
                    scope.set_extra(key, value)
            scope.set_tag("error_id", error_id)
            sentry_sdk.capture_exception(exc)

    return error_id
