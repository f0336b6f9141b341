"""Compress pipeline — re-encode a clip at a preset resolution and quality."""

from vidsplice.errors import InvalidInputError
from vidsplice.models import RESOLUTIONS, PipelineStep, QualityLevel, StepKind

BASE_NAME = "base.mp4"
OUTPUT_NAME = "compressed.mp4"

VIDEO_CODEC = "libx264"
ENCODER_PRESET = "ultrafast"


def build_compress_pipeline(
    quality: QualityLevel,
    resolution: str,
    base_duration: float | None = None,
) -> list[PipelineStep]:
    """Return the single transcode step for *quality* and *resolution*.

    The output is resized to exactly *resolution*; the source aspect ratio is
    not preserved.
    """
    if resolution not in RESOLUTIONS:
        raise InvalidInputError(
            f"Unsupported resolution {resolution!r}; expected one of {', '.join(RESOLUTIONS)}"
        )
    try:
        quality = QualityLevel.parse(quality)
    except ValueError as e:
        raise InvalidInputError(str(e)) from None

    return [
        PipelineStep(
            kind=StepKind.TRANSCODE,
            inputs=(BASE_NAME,),
            output=OUTPUT_NAME,
            params={
                "vcodec": VIDEO_CODEC,
                "crf": quality.value,
                "preset": ENCODER_PRESET,
                "resolution": resolution,
            },
            expected_duration=base_duration,
        )
    ]
