# --- START OF FILE config.py ---

import os
import tempfile
from dotenv import load_dotenv

# Load environment variables from a .env file when present
load_dotenv()

# --------------------------------------------------------------------------
# --- Storage Configuration ---
# --------------------------------------------------------------------------
# Directory where published banner videos are stored
STORAGE_PATH = os.environ.get('STORAGE_PATH', '/var/lib/banner-api/storage')
# Public base URL under which stored files are reachable
BASE_URL = os.environ.get('BASE_URL', 'http://localhost:3000/storage')
# Hours a published file is kept before the cleanup service removes it
MAX_FILE_AGE_HOURS = int(os.environ.get('MAX_FILE_AGE_HOURS', 6))
# Scratch directory for downloaded inputs and rendered outputs. The cleanup
# sweep deletes stale input-*/output-* files here, so keep it private to the service
TEMP_DIR = os.environ.get('TEMP_DIR', os.path.join(tempfile.gettempdir(), 'banner-api'))
# Minutes between cleanup cycles
CLEANUP_INTERVAL_MINUTES = int(os.environ.get('CLEANUP_INTERVAL_MINUTES', 30))

# --------------------------------------------------------------------------
# --- Publishing Configuration ---
# --------------------------------------------------------------------------
# Where rendered videos are published: 'local' (STORAGE_PATH + BASE_URL) or 'cloudinary'
PUBLISHER = os.environ.get('PUBLISHER', 'local').lower()
# Cloudinary credentials, used only when PUBLISHER=cloudinary
CLOUDINARY_CLOUD_NAME = os.environ.get('CLOUDINARY_CLOUD_NAME', '')
CLOUDINARY_API_KEY = os.environ.get('CLOUDINARY_API_KEY', '')
CLOUDINARY_API_SECRET = os.environ.get('CLOUDINARY_API_SECRET', '')
# Cloudinary folder the videos are uploaded into
CLOUDINARY_FOLDER = os.environ.get('CLOUDINARY_FOLDER', 'ad-pilot-banners')

# --------------------------------------------------------------------------
# --- Download Configuration ---
# --------------------------------------------------------------------------
# Per-attempt timeout for the source download (seconds)
DOWNLOAD_TIMEOUT = int(os.environ.get('DOWNLOAD_TIMEOUT', 60))
# Attempts before a 404/5xx download is given up
DOWNLOAD_MAX_ATTEMPTS = int(os.environ.get('DOWNLOAD_MAX_ATTEMPTS', 5))
# Delay before the second attempt; doubles after every failed attempt
DOWNLOAD_INITIAL_DELAY_MS = int(os.environ.get('DOWNLOAD_INITIAL_DELAY_MS', 2000))
DOWNLOAD_CHUNK_SIZE = int(os.environ.get('DOWNLOAD_CHUNK_SIZE', 64 * 1024))

# --------------------------------------------------------------------------
# --- Processing Configuration ---
# --------------------------------------------------------------------------
# Maximum threads FFmpeg may use per render (0 = auto)
FFMPEG_THREADS = int(os.environ.get('FFMPEG_THREADS', 4))
# Timeout for one banner render (seconds)
FFMPEG_TIMEOUT = int(os.environ.get('FFMPEG_TIMEOUT', 1800))
# Timeout for ffprobe metadata extraction (seconds)
FFPROBE_TIMEOUT = int(os.environ.get('FFPROBE_TIMEOUT', 120))

# --------------------------------------------------------------------------
# --- Banner Configuration ---
# --------------------------------------------------------------------------
# Font used by the drawtext filter
BANNER_FONT_FILE = os.environ.get('BANNER_FONT_FILE', '/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf')
# Number of full passes the banner makes across the clip
BANNER_TRAVERSALS = int(os.environ.get('BANNER_TRAVERSALS', 3))
# Shift the banner down by 0.3 * font size to match layouts that position the text box, not the glyphs
BANNER_GLYPH_CORRECTION = os.environ.get('BANNER_GLYPH_CORRECTION', 'false').lower() == 'true'

# --------------------------------------------------------------------------
# --- Logging and Monitoring Configuration ---
# --------------------------------------------------------------------------
# Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
# Directory for the rotated application and error logs
LOG_DIR = os.environ.get('LOG_DIR', 'logs')
# Days of rotated error logs to keep
ERROR_RETENTION_DAYS = int(os.environ.get('ERROR_RETENTION_DAYS', 30))
# Sentry DSN for error monitoring (optional)
SENTRY_DSN = os.environ.get('SENTRY_DSN', '')
# Environment name reported to monitoring (production, staging, development)
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'production')

# --------------------------------------------------------------------------
# --- Server Configuration ---
# --------------------------------------------------------------------------
PORT = int(os.environ.get('PORT', 3000))

valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
if LOG_LEVEL not in valid_log_levels:
    print(f"WARNING: Invalid LOG_LEVEL '{LOG_LEVEL}' provided. Defaulting to INFO. Valid levels: {valid_log_levels}")
    LOG_LEVEL = 'INFO'

valid_publishers = ['local', 'cloudinary']
if PUBLISHER not in valid_publishers:
    print(f"WARNING: Invalid PUBLISHER '{PUBLISHER}' provided. Defaulting to local. Valid publishers: {valid_publishers}")
    PUBLISHER = 'local'

STORAGE_PATH = os.path.abspath(STORAGE_PATH)
TEMP_DIR = os.path.abspath(TEMP_DIR)

# --- END OF FILE config.py ---
