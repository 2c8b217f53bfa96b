# --- START OF FILE banner_jobs.py ---

"""
Single and batch banner jobs.

A job downloads the source once, measures it, and for every platform tag
resolves the banner geometry, renders and publishes. Scratch files live
under TEMP_DIR and are gone once the job returns or raises; a failed job
never yields a partial result.
"""

import re
import uuid
import logging
from typing import Callable, Optional, Tuple

from errors import (
    VideoAPIError,
    FetchError,
    ProbeError,
    GeometryError,
    RenderError,
    PublishError,
    ProcessingError,
    capture_exception
)
from services.banner_geometry import resolve_geometry
from services.banner_overlay import render_banner
from services.banner_types import (
    BannerConfig,
    BannerPolicy,
    BatchOverlayRequest,
    BatchOverlayResult,
    OverlayRequest,
    OverlayResult,
    PlatformResult,
    VideoMeta,
)
from services.fetcher import fetch
from services.ffmpeg_toolkit import probe_video
from services.file_management import ScratchFile
from services.publisher import publish

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str], str]
Prober = Callable[[str], VideoMeta]
Renderer = Callable[..., str]
Publisher = Callable[[str], str]


def new_job_id() -> str:
    return uuid.uuid4().hex


def scratch_tag(tag: str) -> str:
    """Platform tag made safe for a filename."""
    return re.sub(r'[^A-Za-z0-9_-]', '_', tag)


class BannerJobRunner:
    """
    Runs banner jobs against injectable stage functions.

    The defaults are the real fetcher, ffprobe, ffmpeg renderer and the
    configured publisher; tests pass fakes. `policy` is read from configuration when not
    given.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None, prober: Optional[Prober] = None,
                 renderer: Optional[Renderer] = None, publisher: Optional[Publisher] = None,
                 policy: Optional[BannerPolicy] = None):
        self.fetcher = fetcher or fetch
        self.prober = prober or probe_video
        self.renderer = renderer or render_banner
        self.publisher = publisher or publish
        self.policy = policy

    def _stage(self, job_id: str, stage: str, error_cls, func, *args):
        try:
            return func(*args)
        except VideoAPIError:
            raise
        except Exception as e:
            error_id = capture_exception(e, {"job_id": job_id, "stage": stage})
            raise error_cls(
                message=f"{stage.capitalize()} failed: {str(e)}",
                error_code=f"{stage}_failed",
                details={"job_id": job_id, "stage": stage, "error_id": error_id}
            )

    def _fetch_and_probe(self, job_id: str, source_url: str, input_path: str,
                         duration_override: Optional[float]) -> Tuple[VideoMeta, float]:
        logger.info(f"Job {job_id}: downloading {source_url}")
        self._stage(job_id, "fetch", FetchError, self.fetcher, source_url, input_path)

        meta = self._stage(job_id, "probe", ProbeError, self.prober, input_path)
        duration = duration_override if duration_override is not None else meta.duration_seconds
        logger.info(f"Job {job_id}: source is {meta.width}x{meta.height}, {meta.duration_seconds:.2f}s"
                    f"{f' (duration overridden to {duration}s)' if duration_override is not None else ''}")
        return meta, duration

    def _render_and_publish(self, job_id: str, label_name: str, platform_tag: str, meta: VideoMeta,
                            duration: float, banner_config: BannerConfig, input_path: str,
                            output_file: ScratchFile) -> str:
        policy = self.policy or BannerPolicy.from_config()
        geometry = self._stage(job_id, "geometry", GeometryError, resolve_geometry,
                               banner_config, meta, label_name, platform_tag, duration, policy)
        logger.debug(f"Job {job_id}: [{platform_tag}] geometry {geometry.to_dict()}")
        logger.info(f"Job {job_id}: [{platform_tag}] font {geometry.font_size_px}px, y {geometry.banner_y_px}px, "
                    f"speed {geometry.scroll.speed_px_per_sec:.1f}px/s")

        self._stage(job_id, "render", RenderError, self.renderer, input_path, output_file.path, geometry)
        url = self._stage(job_id, "publish", PublishError, self.publisher, output_file.path)
        output_file.release()
        logger.info(f"Job {job_id}: [{platform_tag}] published {url}")
        return url

    def run(self, request: OverlayRequest, job_id: Optional[str] = None) -> OverlayResult:
        """
        Overlay one banner and publish the result

        Args:
            request (OverlayRequest): Source, label, platform and optional overrides
            job_id (str, optional): Identifier for logs and scratch names

        Returns:
            OverlayResult: The published URL with the echoed label and platform

        Raises:
            VideoAPIError: FetchError, ProbeError, GeometryError, RenderError or
                PublishError for the failing stage; ProcessingError otherwise.
        """
        job_id = job_id or new_job_id()
        platform_tag = request.platform_tag.upper()
        try:
            with ScratchFile("input-", job_id) as input_file, ScratchFile("output-", job_id) as output_file:
                meta, duration = self._fetch_and_probe(job_id, request.source_url, input_file.path,
                                                       request.duration_override_seconds)
                url = self._render_and_publish(job_id, request.label_name, platform_tag, meta, duration,
                                               request.banner_config, input_file.path, output_file)
            return OverlayResult(job_id=job_id, platform_tag=platform_tag,
                                 label_name=request.label_name, published_url=url)
        except VideoAPIError as e:
            logger.error(f"Job {job_id}: failed ({e.error_code}): {e.message}")
            raise
        except Exception as e:
            error_id = capture_exception(e, {"job_id": job_id})
            raise ProcessingError(message=f"Unexpected error in banner job: {str(e)}",
                                  error_code="banner_job_unexpected_error",
                                  details={"job_id": job_id, "error_id": error_id})

    def run_batch(self, request: BatchOverlayRequest, job_id: Optional[str] = None) -> BatchOverlayResult:
        """
        Overlay one banner per platform tag on a single download

        Tags are processed sequentially in request order; duplicates each get
        their own render. Any failure aborts the batch.
        """
        job_id = job_id or new_job_id()
        try:
            with ScratchFile("input-", job_id) as input_file:
                meta, duration = self._fetch_and_probe(job_id, request.source_url, input_file.path,
                                                       request.duration_override_seconds)
                results = []
                for index, platform in enumerate(request.platform_tags):
                    tag = platform.upper()
                    with ScratchFile("output-", f"{job_id}-{index}-{scratch_tag(tag)}") as output_file:
                        url = self._render_and_publish(job_id, request.label_name, tag, meta, duration,
                                                       request.banner_config, input_file.path, output_file)
                    results.append(PlatformResult(platform_tag=tag, published_url=url))

            logger.info(f"Job {job_id}: batch finished, {len(results)} videos")
            return BatchOverlayResult(job_id=job_id, label_name=request.label_name, results=results)
        except VideoAPIError as e:
            logger.error(f"Job {job_id}: batch failed ({e.error_code}): {e.message}")
            raise
        except Exception as e:
            error_id = capture_exception(e, {"job_id": job_id})
            raise ProcessingError(message=f"Unexpected error in banner batch: {str(e)}",
                                  error_code="banner_batch_unexpected_error",
                                  details={"job_id": job_id, "error_id": error_id})

# --- END OF FILE banner_jobs.py ---
