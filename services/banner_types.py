"""
Value types shared by the banner pipeline.

Everything here is immutable; a job builds its own values and never
mutates a shared default.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

import config
from errors import ValidationError

GOLD = '#feb628'
NAVY = '#1a325b'

BANNER_TEXT_TEMPLATE = "Ask for {label_name} and mention you saw this on {platform_tag}!"


@dataclass(frozen=True)
class VideoMeta:
    width: int
    height: int
    duration_seconds: float

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def min_dimension(self) -> int:
        return min(self.width, self.height)


@dataclass(frozen=True)
class BannerConfig:
    """
    Partial banner configuration as received from a request.

    Each field is independently optional. Percent fields are fractions
    (0.04 == 4%); pixel fields are measured against a reference template
    height, explicit or inferred from the source aspect ratio.
    """
    y_percent: Optional[float] = None
    y: Optional[float] = None
    font_size_percent: Optional[float] = None
    font_size: Optional[float] = None
    template_height: Optional[float] = None
    show_background: Optional[bool] = None
    text_color: Optional[str] = None
    fill_color: Optional[str] = None
    bg_color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'BannerConfig':
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known and value is not None})

    def merged_with_defaults(self) -> 'BannerConfig':
        """
        Fill the unset display fields from DEFAULT_BANNER_CONFIG.

        Position and size fields are left alone: their defaults only apply
        after the pixel alternatives have been considered, which is the
        resolver's job.
        """
        return replace(
            self,
            show_background=DEFAULT_BANNER_CONFIG.show_background if self.show_background is None else self.show_background,
            bg_color=self.bg_color or DEFAULT_BANNER_CONFIG.bg_color,
        )


DEFAULT_BANNER_CONFIG = BannerConfig(
    y_percent=0.159,
    font_size_percent=0.04,
    show_background=False,
    text_color=GOLD,
    bg_color=NAVY,
)


@dataclass(frozen=True)
class BannerPolicy:
    """Rendering constants that are a product decision rather than per-request input."""
    traversals: int = 3
    glyph_correction: bool = False
    scroll_gap_px: int = 100
    char_width_factor: float = 0.6
    box_border_factor: float = 0.3
    glyph_correction_factor: float = 0.3

    @classmethod
    def from_config(cls) -> 'BannerPolicy':
        return cls(traversals=config.BANNER_TRAVERSALS, glyph_correction=config.BANNER_GLYPH_CORRECTION)


@dataclass(frozen=True)
class ScrollMotion:
    """
    Horizontal position of the banner as a function of elapsed time.

    The text starts at the right edge, moves left at `speed_px_per_sec`
    and re-enters from the right once it has fully left the frame plus
    `gap_px`.
    """
    speed_px_per_sec: float
    video_width: int
    text_width_px: float
    gap_px: int

    @property
    def cycle_px(self) -> float:
        return self.video_width + self.text_width_px + self.gap_px

    @property
    def period_seconds(self) -> float:
        return self.cycle_px / self.speed_px_per_sec

    def offset_at(self, t: float) -> float:
        return self.video_width - ((t * self.speed_px_per_sec) % self.cycle_px)

    def to_ffmpeg_expr(self) -> str:
        """offset_at(t) as an ffmpeg expression, unescaped; `w` is the frame width."""
        return f"w-mod(t*{self.speed_px_per_sec:.6f},{self.cycle_px:.6f})"


@dataclass(frozen=True)
class ResolvedGeometry:
    font_size_px: int
    banner_y_px: int
    text_color: str
    show_background: bool
    box_color: Optional[str]
    box_border_px: Optional[int]
    scroll: ScrollMotion
    banner_text: str
    y_percent: float
    font_size_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'font_size_px': self.font_size_px,
            'banner_y_px': self.banner_y_px,
            'text_color': self.text_color,
            'show_background': self.show_background,
            'box_color': self.box_color,
            'box_border_px': self.box_border_px,
            'scroll_speed_px_per_sec': self.scroll.speed_px_per_sec,
            'scroll_period_seconds': self.scroll.period_seconds,
            'banner_text': self.banner_text,
        }


def _require_text(value: Any, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message=f"{name} must be a non-empty string",
                              error_code="missing_required_field",
                              details={"field": name})


def _check_duration_override(value: Optional[float]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(message="duration must be a positive number of seconds",
                              error_code="invalid_duration",
                              details={"duration": value})


@dataclass(frozen=True)
class OverlayRequest:
    source_url: str
    label_name: str
    platform_tag: str
    duration_override_seconds: Optional[float] = None
    banner_config: BannerConfig = field(default_factory=BannerConfig)

    def __post_init__(self):
        _require_text(self.source_url, "video_url")
        _require_text(self.label_name, "avatar_name")
        _require_text(self.platform_tag, "platform")
        _check_duration_override(self.duration_override_seconds)


@dataclass(frozen=True)
class BatchOverlayRequest:
    source_url: str
    label_name: str
    platform_tags: List[str]
    duration_override_seconds: Optional[float] = None
    banner_config: BannerConfig = field(default_factory=BannerConfig)

    def __post_init__(self):
        _require_text(self.source_url, "video_url")
        _require_text(self.label_name, "avatar_name")
        if not self.platform_tags:
            raise ValidationError(message="platforms must contain at least one platform",
                                  error_code="missing_required_field",
                                  details={"field": "platforms"})
        for index, tag in enumerate(self.platform_tags):
            _require_text(tag, f"platforms[{index}]")
        _check_duration_override(self.duration_override_seconds)


@dataclass(frozen=True)
class OverlayResult:
    job_id: str
    platform_tag: str
    label_name: str
    published_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'job_id': self.job_id,
            'video_url': self.published_url,
            'platform': self.platform_tag,
            'avatar_name': self.label_name,
        }


@dataclass(frozen=True)
class PlatformResult:
    platform_tag: str
    published_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {'platform': self.platform_tag, 'video_url': self.published_url}


@dataclass(frozen=True)
class BatchOverlayResult:
    job_id: str
    label_name: str
    results: List[PlatformResult]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'job_id': self.job_id,
            'avatar_name': self.label_name,
            'results': [result.to_dict() for result in self.results],
        }
