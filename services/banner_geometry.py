# --- START OF FILE banner_geometry.py ---

"""
Turns a partial, dual-unit banner configuration into exact overlay geometry.

Sizes and positions can be given either as fractions of the actual video
(`font_size_percent`, `y_percent`) or as legacy pixel values laid out
against a reference template (`font_size`, `y`). Pixel values are
converted to fractions through the template first, then applied to the
measured video, so the same configuration renders proportionally on any
resolution.

Nothing in this module performs I/O.
"""

import math
from typing import Any, Callable, Optional, Sequence, Tuple

from errors import GeometryError
from services.banner_types import (
    BANNER_TEXT_TEMPLATE,
    DEFAULT_BANNER_CONFIG,
    GOLD,
    BannerConfig,
    BannerPolicy,
    ResolvedGeometry,
    ScrollMotion,
    VideoMeta,
)

# (upper aspect bound, template height) checked in order; anything wider is landscape
TEMPLATE_HEIGHT_BY_ASPECT: Tuple[Tuple[float, int], ...] = (
    (0.7, 1280),   # portrait 9:16
    (0.9, 1350),   # 4:5
    (1.1, 1080),   # square
)
LANDSCAPE_TEMPLATE_HEIGHT = 720


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def infer_template_height(aspect_ratio: float) -> int:
    """Reference height of the layout template a pixel configuration was designed on."""
    for upper_bound, template_height in TEMPLATE_HEIGHT_BY_ASPECT:
        if aspect_ratio < upper_bound:
            return template_height
    return LANDSCAPE_TEMPLATE_HEIGHT


def normalize_color(color: Any, field_name: str = "color") -> str:
    """Accept ffmpeg color strings, rewriting a 0x hex prefix to #."""
    if not isinstance(color, str) or not color.strip():
        raise GeometryError(message=f"{field_name} must be a non-empty color string",
                            error_code="invalid_color",
                            details={"field": field_name, "value": color})
    color = color.strip()
    if color[:2].lower() == '0x':
        return '#' + color[2:]
    return color


def _number(value: Any, field_name: str, positive: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise GeometryError(message=f"{field_name} must be a finite number",
                            error_code="invalid_banner_config",
                            details={"field": field_name, "value": value})
    if positive and value <= 0:
        raise GeometryError(message=f"{field_name} must be greater than zero",
                            error_code="invalid_banner_config",
                            details={"field": field_name, "value": value})
    return float(value)


def template_height_for(config: BannerConfig, meta: VideoMeta) -> float:
    if config.template_height is not None:
        return _number(config.template_height, "template_height", positive=True)
    return infer_template_height(meta.aspect_ratio)


def template_min_dimension(config: BannerConfig, meta: VideoMeta) -> float:
    template_height = template_height_for(config, meta)
    return min(template_height, template_height * meta.aspect_ratio)


# Ordered preference per output: the first configured field wins.
PercentRule = Tuple[str, bool, Callable[[float, BannerConfig, VideoMeta], float]]

FONT_SIZE_RULES: Sequence[PercentRule] = (
    ('font_size_percent', True, lambda value, config, meta: value),
    ('font_size', True, lambda value, config, meta: value / template_min_dimension(config, meta)),
)

Y_POSITION_RULES: Sequence[PercentRule] = (
    ('y_percent', False, lambda value, config, meta: value),
    ('y', False, lambda value, config, meta: value / template_height_for(config, meta)),
)

TEXT_COLOR_FIELDS = ('text_color', 'fill_color')

# Fractions of the frame must stay inside it; pixel values are not clamped.
FRACTION_RANGES = {
    'font_size_percent': (0.0, 1.0),   # (0, 1]
    'y_percent': (0.0, 1.0),           # [0, 1]
}


def _check_fraction(value: float, field_name: str) -> float:
    if field_name in FRACTION_RANGES:
        lower, upper = FRACTION_RANGES[field_name]
        if value < lower or value > upper:
            raise GeometryError(message=f"{field_name} must be a fraction between {lower} and {upper}, got {value}",
                                error_code="banner_config_out_of_range",
                                details={"field": field_name, "value": value})
    return value


def _resolve_percent(rules: Sequence[PercentRule], config: BannerConfig, meta: VideoMeta,
                     default: float) -> float:
    for field_name, positive, to_percent in rules:
        value = getattr(config, field_name)
        if value is not None:
            number = _check_fraction(_number(value, field_name, positive=positive), field_name)
            return to_percent(number, config, meta)
    return default


def resolve_font_size_percent(config: BannerConfig, meta: VideoMeta) -> float:
    return _resolve_percent(FONT_SIZE_RULES, config, meta, DEFAULT_BANNER_CONFIG.font_size_percent)


def resolve_y_percent(config: BannerConfig, meta: VideoMeta) -> float:
    return _resolve_percent(Y_POSITION_RULES, config, meta, DEFAULT_BANNER_CONFIG.y_percent)


def resolve_text_color(config: BannerConfig) -> str:
    for field_name in TEXT_COLOR_FIELDS:
        value = getattr(config, field_name)
        if value is not None:
            return normalize_color(value, field_name)
    return GOLD


def build_banner_text(label_name: str, platform_tag: str) -> str:
    return BANNER_TEXT_TEMPLATE.format(label_name=label_name, platform_tag=platform_tag)


def build_scroll_motion(font_size_px: int, text: str, video_width: int, duration_seconds: float,
                        policy: BannerPolicy) -> ScrollMotion:
    """
    Speed the banner so it crosses the frame `policy.traversals` times over the clip.

    Text width is approximated from the glyph count; the renderer's font
    metrics are never queried.
    """
    text_width = font_size_px * len(text) * policy.char_width_factor
    total_distance = (text_width + video_width) * policy.traversals
    return ScrollMotion(
        speed_px_per_sec=total_distance / duration_seconds,
        video_width=video_width,
        text_width_px=text_width,
        gap_px=policy.scroll_gap_px,
    )


def _check_inputs(meta: VideoMeta, duration_seconds: float, policy: BannerPolicy) -> None:
    if meta.width <= 0 or meta.height <= 0:
        raise GeometryError(message=f"Video dimensions must be positive, got {meta.width}x{meta.height}",
                            error_code="invalid_video_dimensions",
                            details={"width": meta.width, "height": meta.height})
    if (isinstance(duration_seconds, bool) or not isinstance(duration_seconds, (int, float))
            or not math.isfinite(duration_seconds) or duration_seconds <= 0):
        raise GeometryError(message=f"Duration must be a positive number of seconds, got {duration_seconds}",
                            error_code="invalid_duration",
                            details={"duration": duration_seconds})
    if policy.traversals < 1:
        raise GeometryError(message="Banner must traverse the video at least once",
                            error_code="invalid_traversals",
                            details={"traversals": policy.traversals})


def resolve_geometry(config: Optional[BannerConfig], meta: VideoMeta, label_name: str, platform_tag: str,
                     duration_seconds: float, policy: Optional[BannerPolicy] = None) -> ResolvedGeometry:
    """
    Resolve overlay parameters for one banner.

    Args:
        config: Partial configuration from the request (None for all defaults)
        meta: Measured dimensions of the source video
        label_name: Name substituted into the banner text
        platform_tag: Platform substituted into the banner text, already upper-cased
        duration_seconds: Clip duration the scroll speed is spread over
        policy: Traversal count and glyph correction switch

    Returns:
        ResolvedGeometry: Everything the renderer needs

    Raises:
        GeometryError: For non-positive durations, dimensions or sizes, or malformed colors.
    """
    policy = policy or BannerPolicy()
    config = (config or BannerConfig()).merged_with_defaults()
    _check_inputs(meta, duration_seconds, policy)

    font_size_percent = resolve_font_size_percent(config, meta)
    font_size_px = round_half_up(meta.min_dimension * font_size_percent)
    if font_size_px < 1:
        raise GeometryError(message=f"Font size resolves to {font_size_px}px on a {meta.width}x{meta.height} video",
                            error_code="font_size_too_small",
                            details={"font_size_percent": font_size_percent})

    y_percent = resolve_y_percent(config, meta)
    correction = policy.glyph_correction_factor * font_size_px if policy.glyph_correction else 0.0
    banner_y_px = round_half_up(meta.height * y_percent + correction)

    show_background = bool(config.show_background)
    box_color = normalize_color(config.bg_color, 'bg_color') if show_background else None
    box_border_px = round_half_up(policy.box_border_factor * font_size_px) if show_background else None

    text = build_banner_text(label_name, platform_tag)

    return ResolvedGeometry(
        font_size_px=font_size_px,
        banner_y_px=banner_y_px,
        text_color=resolve_text_color(config),
        show_background=show_background,
        box_color=box_color,
        box_border_px=box_border_px,
        scroll=build_scroll_motion(font_size_px, text, meta.width, duration_seconds, policy),
        banner_text=text,
        y_percent=y_percent,
        font_size_percent=font_size_percent,
    )

# --- END OF FILE banner_geometry.py ---
