"""
app.py - Main entry point for the Banner Overlay API

Flask REST API that burns a scrolling promotional banner into videos,
one platform at a time or as a batch over a single download.
"""

from flask import Flask, jsonify, send_from_directory
import logging
import os
import time
import shutil
import platform
import psutil
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from werkzeug.middleware.proxy_fix import ProxyFix
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from services.cleanup_service import CleanupService
from services.ffmpeg_toolkit import binary_available
from services.local_storage import file_exists
from version import get_version_info, get_version_string
import error_middleware
import config

logger = logging.getLogger('bannerapi')

startup_time = time.time()
cleanup_service = None
_logging_configured = False

ENDPOINTS = {
    "banner": [
        "/add-banner",
        "/add-banners-batch",
        "/v1/video/add_banner",
        "/v1/video/add_banners_batch"
    ],
    "storage": ["/storage/<filename>"],
    "system": ["/health", "/version"]
}

def setup_directories():
    """Ensure required directories exist"""
    for directory in (config.LOG_DIR, config.STORAGE_PATH, config.TEMP_DIR):
        os.makedirs(directory, exist_ok=True)

def configure_logging():
    """Configure application logging with rotation and formatting"""
    global _logging_configured
    log_level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    logger.setLevel(log_level)
    if _logging_configured:
        return logger

    os.makedirs(config.LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    file_handler = RotatingFileHandler(
        os.path.join(config.LOG_DIR, 'bannerapi.log'),
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(log_level)

    error_handler = TimedRotatingFileHandler(
        os.path.join(config.LOG_DIR, 'error.log'),
        when='midnight',
        interval=1,
        backupCount=config.ERROR_RETENTION_DAYS
    )
    error_handler.setFormatter(formatter)
    error_handler.setLevel(logging.ERROR)

    root_logger = logging.getLogger()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(error_handler)

    _logging_configured = True
    return logger

def init_sentry():
    """Error monitoring, only when a DSN is configured"""
    if not config.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.2,
        sample_rate=0.5,
        before_send=lambda event, hint: event if event.get('level') != 'debug' else None
    )
    logger.info("Sentry monitoring initialized")

def register_blueprints(app):
    """Register the API blueprints"""
    from routes.v1.video.add_banner import v1_video_add_banner_bp

    for blueprint in (v1_video_add_banner_bp,):
        app.register_blueprint(blueprint)
        logger.info(f"Registered blueprint: {blueprint.name}")

def format_time_delta(seconds):
    """Format seconds into readable time format"""
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if days > 0:
        parts.append(f"{int(days)} days")
    if hours > 0 or days > 0:
        parts.append(f"{int(hours)} hours")
    if minutes > 0 or hours > 0 or days > 0:
        parts.append(f"{int(minutes)} minutes")
    parts.append(f"{int(seconds)} seconds")

    return ", ".join(parts)

def check_health():
    """Run the health checks; returns (body, status code)"""
    health_status = {
        "status": "healthy",
        "checks": {},
        "uptime": time.time() - startup_time,
        "uptime_formatted": format_time_delta(time.time() - startup_time)
    }

    try:
        os.makedirs(config.STORAGE_PATH, exist_ok=True)
        test_file_path = os.path.join(config.STORAGE_PATH, '.health_check_test')
        with open(test_file_path, 'w') as f:
            f.write('test')
        os.remove(test_file_path)
        storage_ok = True
        health_status["checks"]["storage"] = {"status": "ok"}
    except OSError as e:
        storage_ok = False
        health_status["checks"]["storage"] = {"status": "error", "message": str(e)}

    tools_ok = True
    for tool in ('ffmpeg', 'ffprobe'):
        if binary_available(tool):
            health_status["checks"][tool] = {"status": "ok"}
        else:
            tools_ok = False
            health_status["checks"][tool] = {"status": "error", "message": f"{tool} not found on PATH"}

    try:
        disk_usage = shutil.disk_usage(config.STORAGE_PATH)
        disk_used_percent = (disk_usage.used / disk_usage.total) * 100
        disk_status = "ok"
        if disk_used_percent > 90:
            disk_status = "warning"
        if disk_used_percent > 95:
            disk_status = "error"
        health_status["checks"]["disk"] = {
            "status": disk_status,
            "free_gb": round(disk_usage.free / (1024**3), 2),
            "used_percent": round(disk_used_percent, 2)
        }
        disk_ok = disk_status != "error"
    except OSError as e:
        disk_ok = False
        health_status["checks"]["disk"] = {"status": "error", "message": str(e)}

    if cleanup_service is not None:
        health_status["checks"]["cleanup"] = cleanup_service.get_status()

    if storage_ok and disk_ok and tools_ok:
        return health_status, 200
    if not (storage_ok and disk_ok):
        health_status["status"] = "critical"
        return health_status, 503
    # Renders will fail without ffmpeg, but stored files can still be served
    health_status["status"] = "degraded"
    return health_status, 200

def create_app():
    """Build the Flask application"""
    setup_directories()
    configure_logging()
    init_sentry()

    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
    error_middleware.init_app(app)
    register_blueprints(app)

    @app.route('/', methods=['GET'])
    def index():
        """API information endpoint"""
        return jsonify({
            "service": "Banner Overlay API",
            "status": "operational",
            "endpoints": ENDPOINTS,
            **get_version_info()
        })

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for monitoring"""
        body, status_code = check_health()
        return jsonify(body), status_code

    @app.route('/version', methods=['GET'])
    def version():
        """Version information endpoint"""
        version_info = get_version_info()
        version_info["python_version"] = platform.python_version()
        version_info["platform"] = platform.platform()
        return jsonify(version_info)

    @app.route('/storage/<path:filename>', methods=['GET'])
    def serve_file(filename):
        """Serve published files"""
        if not file_exists(filename):
            return jsonify({"success": False, "status": "error", "error": "File not found"}), 404

        content_type = 'video/mp4' if filename.lower().endswith('.mp4') else None
        return send_from_directory(config.STORAGE_PATH, filename, as_attachment=False, mimetype=content_type)

    return app

def initialize_services():
    """Start background services"""
    global cleanup_service
    logger.info(f"System: {platform.system()} {platform.release()}")
    logger.info(f"Python: {platform.python_version()}")
    memory = psutil.virtual_memory()
    logger.info(f"Resources: {os.cpu_count() or 0} CPUs, {memory.total / (1024**3):.1f} GB RAM")

    cleanup_service = CleanupService()
    cleanup_service.start()

    logger.info(f"{get_version_string()} initialized successfully")
    return cleanup_service

if __name__ == '__main__':
    app = create_app()
    initialize_services()
    app.run(host='0.0.0.0', port=config.PORT)
