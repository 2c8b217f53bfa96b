import functools
import logging
from flask import request, jsonify
from jsonschema import validate, ValidationError, FormatChecker

logger = logging.getLogger(__name__)

def validate_payload(schema):
    """
    Decorator validating the JSON body against a JSON schema.

    Args:
        schema (dict): JSON schema for the request body.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                payload = request.get_json(silent=True)
                if not payload:
                    return jsonify({"success": False, "status": "error", "error": "No JSON payload provided"}), 400

                validate(instance=payload, schema=schema, format_checker=FormatChecker())

                for key, value in payload.items():
                    if isinstance(value, str) and key.endswith('_url') and not is_valid_url(value):
                        return jsonify({
                            "success": False,
                            "status": "error",
                            "error": f"Invalid URL: {key}",
                            "detail": "The URL must start with http:// or https://"
                        }), 400

            except ValidationError as e:
                path = ".".join(str(p) for p in e.path) if e.path else "payload"
                return jsonify({
                    "success": False,
                    "status": "error",
                    "error": f"Validation error in {path}",
                    "detail": e.message
                }), 400

            return f(*args, **kwargs)
        return decorated_function
    return decorator

def is_valid_url(url):
    """
    Basic URL check; the SSRF guard runs again before downloading.

    Args:
        url (str): URL to check

    Returns:
        bool: True if the URL is http(s)
    """
    if not isinstance(url, str):
        return False
    return url.startswith(('http://', 'https://'))
