# --- START OF FILE cloudinary_storage.py ---

import os
import logging
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

import config
from errors import PublishError, capture_exception

logger = logging.getLogger(__name__)


def configure_cloudinary() -> None:
    """
    Apply the Cloudinary credentials from configuration.

    Raises:
        PublishError: If any credential is missing.
    """
    credentials = {
        "cloud_name": config.CLOUDINARY_CLOUD_NAME,
        "api_key": config.CLOUDINARY_API_KEY,
        "api_secret": config.CLOUDINARY_API_SECRET,
    }
    missing = [name for name, value in credentials.items() if not value]
    if missing:
        raise PublishError(
            message=f"Cloudinary publishing is enabled but not configured (missing: {', '.join(missing)})",
            error_code="cloudinary_not_configured",
            details={"missing": missing}
        )
    cloudinary.config(secure=True, **credentials)


def upload_video(file_path: str, folder: Optional[str] = None) -> str:
    """
    Upload a rendered video to Cloudinary

    Args:
        file_path (str): Rendered video to upload
        folder (str, optional): Target folder; defaults to CLOUDINARY_FOLDER

    Returns:
        str: The https URL of the uploaded video

    Raises:
        PublishError: If the file is missing, credentials are absent or the upload fails.
    """
    if not os.path.isfile(file_path):
        raise PublishError(
            message=f"Source file not found for upload: {file_path}",
            error_code="source_file_not_found_for_upload",
            details={"source_path": file_path}
        )

    configure_cloudinary()
    folder = folder or config.CLOUDINARY_FOLDER

    try:
        result = cloudinary.uploader.upload(file_path, resource_type="video", folder=folder, overwrite=True)
    except (cloudinary.exceptions.Error, IOError, OSError) as e:
        error_id = capture_exception(e, {"source_path": file_path, "folder": folder})
        raise PublishError(
            message=f"Cloudinary upload of '{os.path.basename(file_path)}' failed: {str(e)}",
            error_code="cloudinary_upload_failed",
            details={"source_path": file_path, "folder": folder, "original_error": str(e), "error_id": error_id}
        )

    url = result.get("secure_url")
    if not url:
        raise PublishError(
            message="Cloudinary upload returned no secure_url",
            error_code="cloudinary_no_url",
            details={"source_path": file_path, "public_id": result.get("public_id")}
        )
    logger.info(f"Uploaded {file_path} to Cloudinary folder '{folder}': {url}")
    return url

# --- END OF FILE cloudinary_storage.py ---
