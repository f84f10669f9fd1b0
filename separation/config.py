from dataclasses import dataclass, field
from enum import Enum

from .color import hex_to_rgb
from .errors import InvalidParameter


class SeparationMode(str, Enum):
    CMYK = "CMYK"
    SPOT = "SPOT"


class BgRemoveMode(str, Enum):
    """How the background target color is chosen."""

    WHITE = "white"
    BLACK = "black"
    CUSTOM = "custom"
    AUTO = "auto"  # top-left pixel of the adjusted image


class MaskPolicy(str, Enum):
    """What to do with a stencil whose size differs from the source."""

    IGNORE = "ignore"
    RAISE = "raise"


class BrushType(str, Enum):
    ERASE = "erase"
    KEEP = "keep"


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise InvalidParameter(
            f"{name}={value} outside [{low}, {high}]", stage="config"
        )


@dataclass
class AdjustmentSettings:
    """Tone correction and background removal settings for one run."""

    brightness: float = 0.0  # -100..100, additive
    contrast: float = 0.0  # -100..100
    gamma: float = 1.0  # 0.1..3.0, 1 = untouched

    # Background removal
    remove_bg: bool = False
    bg_remove_mode: BgRemoveMode = BgRemoveMode.WHITE
    custom_bg_color: str = "#000000"
    bg_threshold: float = 20.0  # 0..100 sensitivity

    def validate(self) -> None:
        """Raise InvalidParameter if any value is outside its range."""
        _check_range("brightness", self.brightness, -100, 100)
        _check_range("contrast", self.contrast, -100, 100)
        _check_range("gamma", self.gamma, 0.1, 3.0)
        _check_range("bg_threshold", self.bg_threshold, 0, 100)
        try:
            mode = BgRemoveMode(self.bg_remove_mode)
        except ValueError:
            raise InvalidParameter(
                f"unknown background mode {self.bg_remove_mode!r}", stage="config"
            ) from None
        if mode is BgRemoveMode.CUSTOM:
            hex_to_rgb(self.custom_bg_color)


@dataclass
class SpotColorTarget:
    """A single configured spot ink."""

    id: str
    name: str
    color: str  # hex
    threshold: float = 50.0  # 0..100

    @property
    def rgb(self) -> tuple[int, int, int]:
        return hex_to_rgb(self.color)

    def validate(self) -> None:
        _check_range(f"threshold of {self.name!r}", self.threshold, 0, 100)
        hex_to_rgb(self.color)


DEFAULT_SPOT_COLORS: tuple[SpotColorTarget, ...] = (
    SpotColorTarget(id="1", name="Bright Green", color="#00ff00", threshold=50),
    SpotColorTarget(id="2", name="Orange", color="#ff8800", threshold=50),
    SpotColorTarget(id="3", name="Violet", color="#9d00ff", threshold=50),
)


def default_spot_colors() -> list[SpotColorTarget]:
    return [
        SpotColorTarget(s.id, s.name, s.color, s.threshold)
        for s in DEFAULT_SPOT_COLORS
    ]


def new_spot_color(existing: list[SpotColorTarget], color: str) -> SpotColorTarget:
    """Create the next spot entry, named after its position in the list."""
    hex_to_rgb(color)
    taken = {s.id for s in existing}
    next_id = len(existing) + 1
    while str(next_id) in taken:
        next_id += 1
    return SpotColorTarget(
        id=str(next_id),
        name=f"Color {len(existing) + 1}",
        color=color,
        threshold=50.0,
    )


@dataclass
class ProcessingConfig:
    """Configuration for the image-to-ink-channels pipeline."""

    mode: SeparationMode = SeparationMode.CMYK
    spot_colors: list[SpotColorTarget] = field(default_factory=default_spot_colors)
    include_white_base: bool = False
    adjustments: AdjustmentSettings = field(default_factory=AdjustmentSettings)

    # Stencil with the wrong size: drop it or fail
    mask_policy: MaskPolicy = MaskPolicy.IGNORE

    # Reject out-of-range settings instead of letting the math clamp them
    strict: bool = False

    # Row-band threads for the per-pixel stages; 1 = sequential
    max_workers: int = 1

    def validate(self) -> None:
        try:
            mode = SeparationMode(self.mode)
        except ValueError:
            raise InvalidParameter(f"unknown mode {self.mode!r}", stage="config") from None
        if self.max_workers < 1:
            raise InvalidParameter(
                f"max_workers must be >= 1, got {self.max_workers}", stage="config"
            )
        self.adjustments.validate()
        if mode is SeparationMode.SPOT:
            for spot in self.spot_colors:
                spot.validate()
