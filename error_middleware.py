"""
error_middleware.py - Request ids, request logging and the last-resort JSON 500

Every request gets an X-Request-ID (the caller's, or a fresh uuid) which is
logged, returned in the response header and tagged on Sentry events, so a
failed banner job can be traced from the client back to the error log.
"""

import json
import uuid
import time
import logging
from flask import request, g
import sentry_sdk

logger = logging.getLogger(__name__)

REQUEST_ID_ENVIRON_KEY = 'HTTP_X_REQUEST_ID'

# Polled by monitors and CDNs; logging them would drown the job logs
QUIET_PATH_PREFIXES = ('/health', '/storage/')


def _is_quiet(path: str) -> bool:
    return path.startswith(QUIET_PATH_PREFIXES)


def _internal_error_body(request_id: str) -> bytes:
    return json.dumps({
        'success': False,
        'status': 'error',
        'error': 'internal_error',
        'message': 'An unexpected error occurred',
        'request_id': request_id
    }).encode('utf-8')


class ErrorHandlingMiddleware:
    """
    Wraps the WSGI app so the request id exists before Flask sees the request
    and nothing escapes as an HTML error page.
    """

    def __init__(self, app):
        self.wsgi_app = app.wsgi_app
        app.wsgi_app = self

        from errors import register_error_handlers
        register_error_handlers(app)

    def __call__(self, environ, start_response):
        request_id = environ.get(REQUEST_ID_ENVIRON_KEY) or str(uuid.uuid4())
        environ[REQUEST_ID_ENVIRON_KEY] = request_id

        try:
            return self.wsgi_app(environ, start_response)
        except Exception:
            logger.exception(f"Request {request_id} crashed outside the Flask error handlers")
            start_response('500 Internal Server Error', [
                ('Content-Type', 'application/json'),
                ('X-Request-ID', request_id),
            ])
            return [_internal_error_body(request_id)]


def setup_request_handlers(app):
    """Attach the request id to each request and log its outcome"""

    @app.before_request
    def tag_request():
        g.start_time = time.time()
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.id = g.request_id
        sentry_sdk.set_tag('request_id', g.request_id)

        if not _is_quiet(request.path):
            logger.info(f"Request {g.request_id}: {request.method} {request.path} from {request.remote_addr}")

    @app.after_request
    def stamp_response(response):
        request_id = g.get('request_id', 'unknown')
        response.headers['X-Request-ID'] = request_id

        if not _is_quiet(request.path):
            duration = time.time() - g.get('start_time', time.time())
            logger.info(f"Request {request_id}: {response.status_code} in {duration:.3f}s")
        return response


def init_app(app):
    """Install the middleware and request hooks on `app`"""
    ErrorHandlingMiddleware(app)
    setup_request_handlers(app)
