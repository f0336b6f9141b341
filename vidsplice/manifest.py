"""JSON manifest schema — the contract between the CLI and the engine."""

import json
from dataclasses import dataclass
from pathlib import Path

from vidsplice.errors import InvalidInputError
from vidsplice.models import (
    DEFAULT_QUALITY,
    DEFAULT_RESOLUTION,
    RESOLUTIONS,
    JobKind,
    QualityLevel,
)
from vidsplice.pipelines import compress, stitch
from vidsplice.timecode import parse_timestamp, to_seconds


@dataclass
class Manifest:
    """Top-level job manifest.

    A stitch needs ``target`` and either ``cut_timestamp`` (seconds or
    ``M:S:CC``) or ``cut_position`` (0-100 relative to the base duration).
    """

    kind: JobKind
    base: Path
    output: Path | None = None
    target: Path | None = None
    cut_timestamp: float | None = None
    cut_position: float | None = None
    quality: QualityLevel = DEFAULT_QUALITY
    resolution: str = DEFAULT_RESOLUTION
    version: str = "1"

    def __post_init__(self) -> None:
        try:
            self.kind = JobKind(self.kind)
            self.quality = QualityLevel.parse(self.quality)
        except ValueError as e:
            raise InvalidInputError(str(e)) from None
        self.base = Path(self.base)
        if self.target is not None:
            self.target = Path(self.target)
        if self.output is not None:
            self.output = Path(self.output)
        if self.cut_timestamp is not None:
            self.cut_timestamp = parse_timestamp(self.cut_timestamp)
        if self.cut_position is not None and not 0 <= float(self.cut_position) <= 100:
            raise InvalidInputError("cut_position must be within [0, 100]")
        if self.resolution not in RESOLUTIONS:
            raise InvalidInputError(f"Unsupported resolution {self.resolution!r}")

    def resolve_cut(self, base_duration: float | None) -> float | None:
        """Cut point in seconds, preferring an explicit timestamp."""
        if self.kind != JobKind.STITCH:
            return None
        if self.cut_timestamp is not None:
            return self.cut_timestamp
        if self.cut_position is not None and base_duration:
            return to_seconds(float(self.cut_position), base_duration)
        return None

    def output_path(self) -> Path:
        """Explicit output, or the default file name beside the base clip."""
        if self.output is not None:
            return self.output
        name = stitch.OUTPUT_NAME if self.kind == JobKind.STITCH else compress.OUTPUT_NAME
        return self.base.with_name(name)


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "kind" not in data or "base" not in data:
        raise InvalidInputError("Manifest must contain 'kind' and 'base' fields")

    # Relative paths are resolved against the manifest's directory.
    def _path(key: str) -> Path | None:
        if data.get(key) is None:
            return None
        p = Path(data[key])
        return p if p.is_absolute() else path.parent / p

    return Manifest(
        version=str(data.get("version", "1")),
        kind=data["kind"],
        base=_path("base"),
        target=_path("target"),
        output=_path("output"),
        cut_timestamp=data.get("cut_timestamp"),
        cut_position=data.get("cut_position"),
        quality=data.get("quality", DEFAULT_QUALITY),
        resolution=data.get("resolution", DEFAULT_RESOLUTION),
    )
