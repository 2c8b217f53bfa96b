from flask import Blueprint, request, jsonify
from app_utils import validate_payload
import logging
from errors import VideoAPIError
from services.banner_jobs import BannerJobRunner, new_job_id
from services.banner_types import BannerConfig, OverlayRequest, BatchOverlayRequest

v1_video_add_banner_bp = Blueprint('v1_video_add_banner', __name__)
logger = logging.getLogger(__name__)

banner_runner = BannerJobRunner()

BANNER_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "y_percent": {"type": "number", "minimum": 0, "maximum": 1},
        "y": {"type": "number"},
        "font_size_percent": {"type": "number", "exclusiveMinimum": 0, "maximum": 1},
        "font_size": {"type": "number", "exclusiveMinimum": 0},
        "template_height": {"type": "number", "exclusiveMinimum": 0},
        "show_background": {"type": "boolean"},
        "text_color": {"type": "string", "minLength": 1},
        "fill_color": {"type": "string", "minLength": 1},
        "bg_color": {"type": "string", "minLength": 1}
    },
    "additionalProperties": False
}

ADD_BANNER_SCHEMA = {
    "type": "object",
    "properties": {
        "video_url": {"type": "string", "format": "uri"},
        "avatar_name": {"type": "string", "minLength": 1},
        "platform": {"type": "string", "minLength": 1},
        "duration": {"type": "number", "exclusiveMinimum": 0},
        "banner_config": BANNER_CONFIG_SCHEMA
    },
    "required": ["video_url", "avatar_name", "platform"],
    "additionalProperties": False
}

ADD_BANNERS_BATCH_SCHEMA = {
    "type": "object",
    "properties": {
        "video_url": {"type": "string", "format": "uri"},
        "avatar_name": {"type": "string", "minLength": 1},
        "platforms": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "minItems": 1
        },
        "duration": {"type": "number", "exclusiveMinimum": 0},
        "banner_config": BANNER_CONFIG_SCHEMA
    },
    "required": ["video_url", "avatar_name", "platforms"],
    "additionalProperties": False
}


def _failure_response(error: VideoAPIError, job_id: str, summary: str):
    return jsonify({
        "success": False,
        "status": "error",
        "error": summary,
        "error_code": error.error_code,
        "details": error.message,
        "job_id": job_id
    }), error.status_code


@v1_video_add_banner_bp.route('/add-banner', methods=['POST'])
@v1_video_add_banner_bp.route('/v1/video/add_banner', methods=['POST'])
@validate_payload(ADD_BANNER_SCHEMA)
def add_banner():
    data = request.get_json()
    job_id = new_job_id()
    logger.info(f"Job {job_id}: Received add banner request for {data['video_url']}")

    try:
        overlay_request = OverlayRequest(
            source_url=data['video_url'],
            label_name=data['avatar_name'],
            platform_tag=data['platform'].upper(),
            duration_override_seconds=data.get('duration'),
            banner_config=BannerConfig.from_dict(data.get('banner_config'))
        )
        result = banner_runner.run(overlay_request, job_id=job_id)
    except VideoAPIError as e:
        return _failure_response(e, job_id, "Failed to process video")

    return jsonify(result.to_dict()), 200


@v1_video_add_banner_bp.route('/add-banners-batch', methods=['POST'])
@v1_video_add_banner_bp.route('/v1/video/add_banners_batch', methods=['POST'])
@validate_payload(ADD_BANNERS_BATCH_SCHEMA)
def add_banners_batch():
    data = request.get_json()
    job_id = new_job_id()
    logger.info(f"Job {job_id}: Received batch banner request for {data['video_url']} ({len(data['platforms'])} platforms)")

    try:
        batch_request = BatchOverlayRequest(
            source_url=data['video_url'],
            label_name=data['avatar_name'],
            platform_tags=[platform.upper() for platform in data['platforms']],
            duration_override_seconds=data.get('duration'),
            banner_config=BannerConfig.from_dict(data.get('banner_config'))
        )
        result = banner_runner.run_batch(batch_request, job_id=job_id)
    except VideoAPIError as e:
        return _failure_response(e, job_id, "Failed to process videos")

    return jsonify(result.to_dict()), 200
