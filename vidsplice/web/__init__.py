"""Flask application factory for the vidsplice web UI."""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from flask import Flask, jsonify

from vidsplice.backends.base import MediaBackend
from vidsplice.engine import Orchestrator
from vidsplice.models import MediaHandle


@dataclass
class WebState:
    """Per-app orchestrator plus the clips currently selected by the user."""

    orchestrator: Orchestrator
    media: dict[str, MediaHandle] = field(default_factory=dict)


def create_app(work_dir: Path | None = None, backend: MediaBackend | None = None) -> Flask:
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="vidsplice_"))
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024 * 1024  # 10 GB
    app.config["FFMPEG_BIN"] = os.environ.get("VIDSPLICE_FFMPEG", "ffmpeg")
    app.config["FFPROBE_BIN"] = os.environ.get("VIDSPLICE_FFPROBE", "ffprobe")
    app.config["PROGRESS_TIMEOUT"] = 120

    if backend is None:
        from vidsplice.backends.ffmpeg import FFmpegBackend
        backend = FFmpegBackend(
            work_dir=Path(app.config["WORK_DIR"]) / "engine",
            ffmpeg=app.config["FFMPEG_BIN"],
            ffprobe=app.config["FFPROBE_BIN"],
        )
    app.extensions["vidsplice"] = WebState(orchestrator=Orchestrator(backend))

    from vidsplice.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    return app
