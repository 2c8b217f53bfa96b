"""
Version information for the banner API.
"""

VERSION = "1.0.0"
API_VERSION = "v1"
BUILD_DATE = "2026-10-18"

def get_version_info():
    """Version information as a dictionary."""
    return {
        "version": VERSION,
        "api_version": API_VERSION,
        "build_date": BUILD_DATE
    }

def get_version_string():
    """Formatted version string for startup logs."""
    return f"BannerAPI v{VERSION} (API {API_VERSION}) - Build {BUILD_DATE}"
