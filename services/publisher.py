import logging

import config
from services.cloudinary_storage import upload_video
from services.local_storage import store_file

logger = logging.getLogger(__name__)

PUBLISHERS = {
    'local': store_file,
    'cloudinary': upload_video,
}


def publish(file_path: str) -> str:
    """Publish a rendered video through the backend named by PUBLISHER and return its URL."""
    backend = PUBLISHERS[config.PUBLISHER]
    logger.debug(f"Publishing {file_path} via {config.PUBLISHER}")
    return backend(file_path)
