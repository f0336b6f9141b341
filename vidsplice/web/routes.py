"""Web UI routes for vidsplice."""

import io
import json
import logging
import queue
import subprocess
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    render_template,
    request,
    send_file,
)

from vidsplice import ffutil
from vidsplice.errors import InvalidInputError, JobBusyError
from vidsplice.models import (
    DEFAULT_QUALITY,
    DEFAULT_RESOLUTION,
    RESOLUTIONS,
    JobKind,
    JobState,
    MediaHandle,
    QualityLevel,
    TranscodeSpec,
)
from vidsplice.timecode import is_ready, parse_timestamp, scrub_display, to_seconds

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__, template_folder="templates", static_folder="static")

SLOTS = ("base", "target")


def _state():
    return current_app.extensions["vidsplice"]


def _error(message: str, status: int, **extra):
    return jsonify({"error": message, **extra}), status


@bp.route("/")
def index():
    return render_template("index.html")


@bp.route("/api/presets")
def presets():
    return jsonify({
        "quality": [
            {"name": q.label, "value": q.value} for q in QualityLevel
        ],
        "resolution": [
            {"name": name, "value": value} for value, name in RESOLUTIONS.items()
        ],
        "defaults": {"quality": DEFAULT_QUALITY.value, "resolution": DEFAULT_RESOLUTION},
    })


@bp.route("/api/timecode")
def timecode():
    position = request.args.get("position", type=float, default=0.0)
    duration = request.args.get("duration", type=float)
    if not 0 <= position <= 100:
        return _error("position must be within [0, 100]", 400)
    seconds = to_seconds(position, duration) if is_ready(duration) else 0.0
    return jsonify({"seconds": seconds, "display": scrub_display(position, duration)})


@bp.route("/api/upload/<slot>", methods=["POST"])
def upload(slot: str):
    if slot not in SLOTS:
        return _error(f"Unknown slot {slot!r}", 400)
    if "file" not in request.files:
        return _error("No file provided", 400)

    f = request.files["file"]
    if not f.filename:
        return _error("Empty filename", 400)

    data = f.read()
    if not data:
        return _error("Empty file", 400)

    # The player may declare the duration; otherwise probe it.
    duration = request.form.get("duration", type=float)
    if duration is None:
        upload_dir = Path(current_app.config["WORK_DIR"]) / "uploads"
        try:
            duration = ffutil.probe_bytes(
                data, upload_dir, ffprobe=current_app.config["FFPROBE_BIN"]
            ).duration
        except (subprocess.CalledProcessError, ValueError, KeyError, OSError) as e:
            logger.warning("Could not probe upload %s: %s", f.filename, e)
            return _error("Could not read video metadata", 400)

    _state().media[slot] = MediaHandle(name=f.filename, data=data, duration=duration)
    logger.info("Selected %s clip %s (%.2fs)", slot, f.filename, duration)
    return jsonify({"slot": slot, "filename": f.filename, "duration": duration})


@bp.route("/api/media")
def media():
    return jsonify({
        slot: {"filename": h.name, "duration": h.duration, "size": len(h.data)}
        for slot, h in _state().media.items()
    })


def _spec_from_request(kind: JobKind, config: dict, base: MediaHandle | None) -> TranscodeSpec:
    try:
        quality = QualityLevel.parse(config.get("quality", DEFAULT_QUALITY))
    except ValueError as e:
        raise InvalidInputError(str(e)) from None

    cut = None
    if kind == JobKind.STITCH:
        if config.get("cut_timestamp") is not None:
            cut = parse_timestamp(config["cut_timestamp"])
        elif config.get("cut_position") is not None:
            try:
                position = float(config["cut_position"])
            except (TypeError, ValueError):
                raise InvalidInputError("cut_position must be a number") from None
            if not 0 <= position <= 100:
                raise InvalidInputError("cut_position must be within [0, 100]")
            if base is not None and is_ready(base.duration):
                cut = to_seconds(position, base.duration)

    return TranscodeSpec(
        cut_timestamp=cut,
        quality=quality,
        resolution=str(config.get("resolution", DEFAULT_RESOLUTION)),
    )


@bp.route("/api/jobs", methods=["POST"])
def submit_job():
    config = request.get_json(silent=True) or {}
    try:
        kind = JobKind(config.get("kind", ""))
    except ValueError:
        return _error("kind must be 'stitch' or 'compress'", 400)

    state = _state()
    base = state.media.get("base")
    target = state.media.get("target")

    orchestrator = state.orchestrator
    try:
        spec = _spec_from_request(kind, config, base)
        job = orchestrator.start(kind, spec, base, target)
    except JobBusyError as e:
        return _error(str(e), 409, job_id=e.job_id)
    except (InvalidInputError, ValueError) as e:
        return _error(str(e), 400)

    snap = orchestrator.snapshot()
    if job.state == JobState.FAILED:
        return jsonify(snap.to_dict()), 400
    return jsonify(snap.to_dict()), 202


@bp.route("/api/jobs/current")
def job_status():
    return jsonify(_state().orchestrator.snapshot().to_dict())


@bp.route("/api/jobs/current/progress")
def progress_stream():
    orchestrator = _state().orchestrator
    timeout = current_app.config["PROGRESS_TIMEOUT"]

    if orchestrator.job is None:
        return _error("No job in progress", 409)

    q: queue.Queue = queue.Queue()
    unsubscribe = orchestrator.subscribe(q.put)

    def generate():
        try:
            snap = orchestrator.snapshot()
            yield f"data: {json.dumps(snap.to_dict())}\n\n"
            while not (snap.state.is_terminal or snap.state == JobState.IDLE):
                try:
                    snap = q.get(timeout=timeout)
                except queue.Empty:
                    yield "data: {\"error\": \"timeout\"}\n\n"
                    break
                yield f"data: {json.dumps(snap.to_dict())}\n\n"
        finally:
            unsubscribe()

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/current/result")
def download_result():
    orchestrator = _state().orchestrator
    result = orchestrator.result
    if orchestrator.state != JobState.SUCCEEDED or result is None:
        return _error("Job not complete", 409)

    return send_file(
        io.BytesIO(result.data),
        mimetype=result.mime_type,
        as_attachment=True,
        download_name=result.filename,
    )


@bp.route("/api/jobs/current/reset", methods=["POST"])
def reset_job():
    orchestrator = _state().orchestrator
    orchestrator.reset()
    return jsonify(orchestrator.snapshot().to_dict())
