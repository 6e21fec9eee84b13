"""HTTP job API routes for keycut."""

import json
import logging
import queue
import threading
import uuid
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request

from keycut import ffutil
from keycut.editors.preview import render_frame
from keycut.engine import process
from keycut.formats import detect_format
from keycut.manifest import Manifest
from keycut.models import CutSegment

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


def _job_or_404(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return None, (jsonify({"error": "Job not found"}), 404)
    return job, None


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = job_dir / f"input{ext}"
    f.save(input_path)

    _jobs[job_id] = {
        "dir": job_dir,
        "input_path": input_path,
        "filename": f.filename,
        "status": "uploaded",
        "commands": [],
    }

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/probe")
def probe(job_id: str):
    job, error = _job_or_404(job_id)
    if error:
        return error

    try:
        result = ffutil.probe(job["input_path"])
        fmt = detect_format(job["input_path"])
    except ffutil.ProcessError as e:
        return jsonify({"error": f"ffprobe failed: {e.stderr[-500:] or e}"}), 422

    return jsonify({
        "format": fmt,
        "format_name": result.format_name,
        "duration": result.duration,
        "streams": [
            {"index": s.index, "codec_name": s.codec_name, "codec_type": s.codec_type}
            for s in result.streams
        ],
    })


@bp.route("/api/jobs/<job_id>/frame")
def frame(job_id: str):
    job, error = _job_or_404(job_id)
    if error:
        return error

    try:
        timestamp = float(request.args.get("t", 0))
        rotation = request.args.get("rotation")
        rotation = int(rotation) if rotation is not None else None
    except ValueError:
        return jsonify({"error": "t and rotation must be numbers"}), 400
    if timestamp < 0:
        return jsonify({"error": "t must not be negative"}), 400
    if rotation is not None and rotation not in (0, 90, 180, 270):
        return jsonify({"error": "rotation must be 0, 90, 180 or 270"}), 400

    try:
        jpeg = render_frame(timestamp, job["input_path"], rotation=rotation)
    except ffutil.ProcessError as e:
        return jsonify({"error": f"ffmpeg failed: {e.stderr[-500:] or e}"}), 422

    return Response(jpeg, mimetype="image/jpeg")


@bp.route("/api/jobs/<job_id>/cut", methods=["POST"])
def start_cut(job_id: str):
    job, error = _job_or_404(job_id)
    if error:
        return error

    if job["status"] not in ("uploaded", "done", "error", "cancelled"):
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    config = request.get_json() or {}
    try:
        segments = [
            CutSegment(cut_from=float(s["cut_from"]), cut_to=float(s["cut_to"]))
            for s in config.get("segments", [])
        ]
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "Segments need numeric cut_from and cut_to"}), 400
    if not segments:
        return jsonify({"error": "No segments provided"}), 400

    manifest = Manifest(
        input=job["input_path"],
        segments=segments,
        output_dir=job["dir"],
        output_format=config.get("output_format"),
        keyframe_cut=config.get("keyframe_cut", True),
        auto_merge=config.get("auto_merge", False),
        snap_to_keyframes=config.get("snap_to_keyframes", False),
    )

    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue
    job["status"] = "processing"
    job["error"] = None
    job["commands"] = []
    job["cut_job"] = None

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            def job_created(cut_job):
                job["cut_job"] = cut_job

            result = process(
                manifest,
                on_progress=on_progress,
                append_command_log=job["commands"].append,
                job_created=job_created,
            )
            job["result"] = {
                "output_paths": [str(p) for p in result.output_paths],
                "merged_path": str(result.merged_path) if result.merged_path else None,
                "output_format": result.output_format,
                "duration_original": result.duration_original,
            }
            job["status"] = "done"
        except ffutil.ProcessAbortedError:
            job["status"] = "cancelled"
        except ffutil.ProcessError as e:
            job["status"] = "error"
            job["error"] = f"ffmpeg failed: {e.stderr[-500:]}" if e.stderr else str(e)
        except Exception as e:
            logger.exception("Cut job %s failed", job_id)
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel(job_id: str):
    job, error = _job_or_404(job_id)
    if error:
        return error

    cut_job = job.get("cut_job")
    if job["status"] != "processing" or cut_job is None:
        return jsonify({"error": "No cut in progress"}), 409

    cut_job.cancel()
    return jsonify({"status": "cancelling"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job, error = _job_or_404(job_id)
    if error:
        return error

    q = job.get("progress_queue")
    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                elif job["status"] == "cancelled":
                    data = json.dumps({"stage": "cancelled"})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job, error = _job_or_404(job_id)
    if error:
        return error

    resp = {
        "status": job["status"],
        "filename": job.get("filename"),
        "commands": job.get("commands", []),
    }
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)
