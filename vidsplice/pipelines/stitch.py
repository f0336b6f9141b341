"""Stitch pipeline — splice a target clip into a base clip at a cut point."""

from vidsplice.errors import InvalidInputError
from vidsplice.models import PipelineStep, StepKind

BASE_NAME = "base.mp4"
TARGET_NAME = "target.mp4"
PART1_NAME = "part1.mp4"
PART2_NAME = "part2.mp4"
OUTPUT_NAME = "stitched.mp4"


def build_stitch_pipeline(
    base_duration: float,
    cut: float,
    target_duration: float | None = None,
) -> list[PipelineStep]:
    """Return the three steps that insert ``target`` into ``base`` at *cut*.

    Both trims and the concat are stream copies. A cut at 0 or at the end of
    the base yields a zero-length lead or tail segment; the pipeline keeps all
    three steps regardless.
    """
    if not 0 <= cut <= base_duration:
        raise InvalidInputError(
            f"Cut timestamp {cut} is outside the base clip [0, {base_duration}]"
        )

    total = None
    if target_duration is not None:
        total = base_duration + target_duration

    return [
        PipelineStep(
            kind=StepKind.TRIM,
            inputs=(BASE_NAME,),
            output=PART1_NAME,
            params={"start": 0.0, "end": float(cut)},
            expected_duration=float(cut),
        ),
        PipelineStep(
            kind=StepKind.TRIM,
            inputs=(BASE_NAME,),
            output=PART2_NAME,
            params={"start": float(cut), "end": float(base_duration)},
            expected_duration=float(base_duration - cut),
        ),
        PipelineStep(
            kind=StepKind.CONCAT,
            inputs=(PART1_NAME, TARGET_NAME, PART2_NAME),
            output=OUTPUT_NAME,
            expected_duration=total,
        ),
    ]
