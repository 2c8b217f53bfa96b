# --- START OF FILE ffmpeg_toolkit.py ---

import os
import subprocess
import logging
import json
import shutil
import time
import platform
import psutil
from typing import Any, Dict, List, Optional, Type

from errors import (
    VideoAPIError,
    ProbeError,
    RenderError,
    capture_exception
)
from services.banner_types import VideoMeta
import config

logger = logging.getLogger(__name__)


def get_optimal_thread_count() -> int:
    """
    Pick the FFmpeg thread count from the current system load

    Returns:
        int: Threads for one FFmpeg process
    """
    max_threads = config.FFMPEG_THREADS
    try:
        cpu_count = os.cpu_count() or 4
        if platform.system() != "Windows":
            load1, _, _ = os.getloadavg()
            if load1 > cpu_count * 0.8:
                return max(1, cpu_count // 2)

        mem = psutil.virtual_memory()
        if mem.percent > 85:
            return max(1, cpu_count // 2)

        return min(cpu_count, max_threads) if max_threads > 0 else cpu_count
    except Exception as e:
        capture_exception(e, {"context": "get_optimal_thread_count_failed"})
        logger.warning(f"Could not determine optimal thread count: {str(e)}. Falling back to {max_threads if max_threads > 0 else 'cpu_count'}.")
        return max_threads if max_threads > 0 else (os.cpu_count() or 4)


def binary_available(name: str) -> bool:
    return shutil.which(name) is not None


def _positive_number(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_probe_output(info: Dict[str, Any], file_path: str = "") -> VideoMeta:
    """
    Extract VideoMeta from `ffprobe -show_format -show_streams` JSON.

    The first video stream supplies the dimensions. Duration comes from the
    container, or from that stream when the container does not report one.

    Raises:
        ProbeError: If there is no video stream or a value is missing or not positive.
    """
    video_stream = next((s for s in info.get('streams', []) if s.get('codec_type') == 'video'), None)
    if video_stream is None:
        raise ProbeError(message=f"No video stream found in '{file_path}'",
                         error_code="probe_no_video_stream",
                         details={"file_path": file_path})

    width = _positive_number(video_stream.get('width'))
    height = _positive_number(video_stream.get('height'))
    if width is None or height is None:
        raise ProbeError(message=f"Video stream in '{file_path}' has no usable dimensions",
                         error_code="probe_invalid_dimensions",
                         details={"file_path": file_path,
                                  "width": video_stream.get('width'),
                                  "height": video_stream.get('height')})

    duration = _positive_number(info.get('format', {}).get('duration'))
    if duration is None:
        duration = _positive_number(video_stream.get('duration'))
    if duration is None:
        raise ProbeError(message=f"Could not determine the duration of '{file_path}'",
                         error_code="probe_invalid_duration",
                         details={"file_path": file_path})

    return VideoMeta(width=int(width), height=int(height), duration_seconds=duration)


def probe_video(file_path: str) -> VideoMeta:
    """
    Measure a local video with ffprobe

    Args:
        file_path (str): Path to the video

    Returns:
        VideoMeta: width, height and duration of the first video stream

    Raises:
        ProbeError: On a missing file, ffprobe failure, timeout, unreadable
            output or a file without a usable video stream.
    """
    if not os.path.exists(file_path):
        raise ProbeError(message=f"Video file not found for ffprobe: {file_path}",
                         error_code="probe_input_not_found",
                         details={"file_path": file_path})

    cmd = ['ffprobe', '-v', 'quiet', '-print_format', 'json', '-show_format', '-show_streams', file_path]
    cmd_str = ' '.join(cmd)
    logger.debug(f"Running ffprobe: {cmd_str}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=config.FFPROBE_TIMEOUT)
        meta = parse_probe_output(json.loads(result.stdout), file_path)
        logger.debug(f"Probed {file_path}: {meta.width}x{meta.height}, {meta.duration_seconds:.2f}s")
        return meta

    except ProbeError:
        raise
    except subprocess.CalledProcessError as e:
        error_id = capture_exception(e, {"command": cmd_str, "file_path": file_path, "stderr": e.stderr})
        raise ProbeError(message=f"ffprobe could not read '{file_path}'",
                         error_code="probe_failed",
                         details={"file_path": file_path, "ffprobe_error": (e.stderr or "")[-500:], "error_id": error_id})
    except json.JSONDecodeError as e:
        error_id = capture_exception(e, {"command": cmd_str, "file_path": file_path})
        raise ProbeError(message=f"Could not parse ffprobe output for '{file_path}': {str(e)}",
                         error_code="probe_json_decode_error",
                         details={"file_path": file_path, "error_id": error_id})
    except subprocess.TimeoutExpired as e:
        error_id = capture_exception(e, {"command": cmd_str, "file_path": file_path})
        raise ProbeError(message=f"ffprobe timed out on '{file_path}'",
                         error_code="probe_timeout",
                         details={"file_path": file_path, "timeout_seconds": config.FFPROBE_TIMEOUT, "error_id": error_id})
    except Exception as e:
        error_id = capture_exception(e, {"command": cmd_str, "file_path": file_path})
        raise ProbeError(message=f"Unexpected error probing '{file_path}': {str(e)}",
                         error_code="probe_unexpected_error",
                         details={"file_path": file_path, "error_id": error_id})


def execute_ffmpeg_process(cmd: List[str], output_path: str, operation_name: str, timeout: int,
                            error_cls: Type[RenderError] = RenderError) -> None:
    """Run ffmpeg, turning every failure into `error_cls` and checking the output exists."""
    cmd_str = ' '.join(cmd)
    logger.debug(f"Running FFmpeg ({operation_name}): {cmd_str}")
    start_time_exec = time.time()
    process = None
    try:
        process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        stdout, stderr = process.communicate(timeout=timeout)

        processing_time = time.time() - start_time_exec

        if process.returncode != 0:
            error_id = capture_exception(Exception(f"FFmpeg {operation_name} failed"),
                                         {"command": cmd_str, "stderr": stderr, "return_code": process.returncode})
            ffmpeg_error = error_cls.from_ffmpeg_error(stderr=stderr, cmd=cmd)
            ffmpeg_error.details["error_id"] = error_id
            ffmpeg_error.details["operation"] = operation_name
            ffmpeg_error.details["return_code"] = process.returncode
            logger.error(f"FFmpeg {operation_name} failed after {processing_time:.2f}s. Code: {ffmpeg_error.error_code}, Message: {ffmpeg_error.message}")
            raise ffmpeg_error

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            error_id = capture_exception(Exception("FFmpeg output file missing or empty"),
                                         {"command": cmd_str, "output_path": output_path, "operation": operation_name})
            raise error_cls(message=f"{operation_name} produced no output at '{output_path}'",
                            error_code="ffmpeg_output_file_missing",
                            details={"operation": operation_name, "output_path": output_path,
                                     "ffmpeg_error": (stderr or "")[-500:], "error_id": error_id})

        logger.info(f"FFmpeg {operation_name} finished: -> {output_path} in {processing_time:.2f} seconds")

    except subprocess.TimeoutExpired as e:
        if process: process.kill()
        error_id = capture_exception(e, {"command": cmd_str, "operation": operation_name, "timeout_seconds": timeout})
        raise error_cls(message=f"{operation_name} exceeded the {timeout} second time limit",
                        error_code="ffmpeg_timeout",
                        details={"operation": operation_name, "command": cmd_str, "timeout_seconds": timeout, "error_id": error_id})
    except VideoAPIError:
        raise
    except Exception as e:
        if process: process.kill()
        error_id = capture_exception(e, {"command": cmd_str, "operation": operation_name})
        raise error_cls(message=f"Unexpected error during FFmpeg {operation_name}: {str(e)}",
                        error_code="ffmpeg_unexpected_runtime_error",
                        details={"operation": operation_name, "command": cmd_str, "error_id": error_id})

# --- END OF FILE ffmpeg_toolkit.py ---
