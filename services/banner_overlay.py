# --- START OF FILE banner_overlay.py ---

import os
import re
import logging
from typing import List, Optional, Tuple

import config
from services.banner_types import ResolvedGeometry
from services.ffmpeg_toolkit import get_optimal_thread_count, execute_ffmpeg_process

logger = logging.getLogger(__name__)

# Characters special to the filter option parser and to the filtergraph parser.
# A value passes through both, option level first.
_OPTION_SPECIAL = re.compile(r"([\\':])")
_FILTERGRAPH_SPECIAL = re.compile(r"([\\'\[\],;])")

VIDEO_ENCODER_ARGS = ['-c:v', 'libx264', '-preset', 'fast', '-crf', '23']
AUDIO_ENCODER_ARGS = ['-c:a', 'copy']


def escape_option_value(value: str) -> str:
    return _OPTION_SPECIAL.sub(r"\\\1", value)


def escape_filtergraph(value: str) -> str:
    return _FILTERGRAPH_SPECIAL.sub(r"\\\1", value)


def drawtext_options(geometry: ResolvedGeometry, font_file: str) -> List[Tuple[str, str]]:
    options = [
        ('fontfile', font_file),
        ('text', geometry.banner_text),
        ('expansion', 'none'),
        ('fontsize', str(geometry.font_size_px)),
        ('fontcolor', geometry.text_color),
        ('x', geometry.scroll.to_ffmpeg_expr()),
        ('y', str(geometry.banner_y_px)),
    ]
    if geometry.show_background:
        options += [
            ('box', '1'),
            ('boxcolor', geometry.box_color),
            ('boxborderw', str(geometry.box_border_px)),
        ]
    return options


def build_banner_filter(geometry: ResolvedGeometry, font_file: Optional[str] = None) -> str:
    """
    Build the `-vf` value drawing the scrolling banner.

    Text and colors come from requests, so every option value is escaped
    for the option parser and the result again for the filtergraph parser.
    `expansion=none` keeps `%` literal.
    """
    font_file = font_file or config.BANNER_FONT_FILE
    body = ':'.join(f"{key}={escape_option_value(value)}" for key, value in drawtext_options(geometry, font_file))
    return 'drawtext=' + escape_filtergraph(body)


def build_render_command(input_path: str, output_path: str, video_filter: str, threads: int) -> List[str]:
    return (['ffmpeg', '-y', '-i', input_path, '-vf', video_filter]
            + VIDEO_ENCODER_ARGS + AUDIO_ENCODER_ARGS
            + ['-threads', str(threads), output_path])


def render_banner(input_path: str, output_path: str, geometry: ResolvedGeometry,
                  font_file: Optional[str] = None, timeout: Optional[int] = None) -> str:
    """
    Burn the banner into a video

    Video is re-encoded with libx264; audio is copied untouched.

    Args:
        input_path (str): Source video
        output_path (str): Where to write the rendered video
        geometry (ResolvedGeometry): Resolved banner parameters
        font_file (str, optional): Font for drawtext; defaults to BANNER_FONT_FILE
        timeout (int, optional): Seconds before the render is killed; defaults to FFMPEG_TIMEOUT

    Returns:
        str: output_path

    Raises:
        RenderError: If ffmpeg fails, times out or leaves no output.
    """
    font_file = font_file or config.BANNER_FONT_FILE
    if not os.path.exists(font_file):
        logger.warning(f"Banner font {font_file} not found, ffmpeg will likely fail")

    video_filter = build_banner_filter(geometry, font_file)
    cmd = build_render_command(input_path, output_path, video_filter, get_optimal_thread_count())
    logger.info(f"Rendering banner onto {input_path}: {geometry.font_size_px}px at y={geometry.banner_y_px}, "
                f"{geometry.scroll.speed_px_per_sec:.1f}px/s")

    execute_ffmpeg_process(cmd, output_path, "banner render", timeout or config.FFMPEG_TIMEOUT)
    return output_path

# --- END OF FILE banner_overlay.py ---
