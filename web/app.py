#!/usr/bin/env python3
"""
web/app.py - Web entrypoint for the Quadtree Image Stylizer.

Features:
- AJAX-friendly compress endpoint (returns JSON with base64 previews)
- Detail-driven quadtree build + render (uses stylizer/quadtree_core.py)
- Optional depth cutoff and quadrant outlines
- Saves renderings to QUADTREE_OUTPUT_DIR (default ./output) and returns download links

Usage (dev):
    python web/app.py
"""

import os
import io
import math
import base64
import sys
import uuid
from pathlib import Path
from flask import Flask, request, render_template, send_file, redirect, url_for, flash, jsonify
from werkzeug.utils import secure_filename
from PIL import Image, UnidentifiedImageError
import numpy as np

# Ensure project root is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stylizer.quadtree_core import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_DETAIL_THRESHOLD,
    build_quadtree,
    render_quadtree,
    validate_depth_limit,
    QuadTreeConfig,
    count_nodes,
    count_leaves,
    psnr,
)
from stylizer.errors import QuadTreeError

ALLOWED = {"png", "jpg", "jpeg"}

app = Flask(__name__, template_folder=str(Path(__file__).resolve().parent / "templates"))
app.secret_key = os.environ.get("FLASK_SECRET", "change_me_for_prod")
app.config["OUTPUT_DIR"] = os.environ.get("QUADTREE_OUTPUT_DIR", str(PROJECT_ROOT / "output"))

def allowed_filename(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED

def pil_to_bytes_io(img: Image.Image, fmt="PNG"):
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    buf.seek(0)
    return buf

def output_dir() -> Path:
    p = Path(app.config["OUTPUT_DIR"])
    p.mkdir(parents=True, exist_ok=True)
    return p

def _parse_params(form):
    """Read build/render params from the form, defaults for blanks. Raises ValueError on junk."""
    max_depth_str = (form.get("max_depth") or "").strip()
    threshold_str = (form.get("detail_threshold") or "").strip()
    depth_limit_str = (form.get("depth_limit") or "").strip()
    max_depth = int(max_depth_str) if max_depth_str != "" else DEFAULT_MAX_DEPTH
    threshold = float(threshold_str) if threshold_str != "" else DEFAULT_DETAIL_THRESHOLD
    depth_limit = int(depth_limit_str) if depth_limit_str != "" else None
    show_lines = (form.get("show_lines") or "").lower() in {"1", "true", "on", "yes"}
    return max_depth, threshold, depth_limit, show_lines

@app.route("/", methods=["GET"])
def index():
    return render_template("index.html", result=None,
                           default_depth=DEFAULT_MAX_DEPTH, default_threshold=DEFAULT_DETAIL_THRESHOLD)

@app.route("/compress", methods=["POST"])
def compress():
    """
    Main compress endpoint.
    If request is AJAX (X-Requested-With: XMLHttpRequest) or Accept: application/json -> return JSON.
    Otherwise render template fallback.
    """
    prefer_json = (request.headers.get("X-Requested-With") == "XMLHttpRequest") or ("application/json" in (request.headers.get("Accept") or ""))

    def respond_error(msg, http_code=400):
        if prefer_json:
            return jsonify({"error": msg}), http_code
        flash(msg)
        return redirect(url_for("index"))

    if "image" not in request.files:
        return respond_error("No file uploaded")
    file = request.files["image"]
    if file.filename == "":
        return respond_error("No file selected")
    if not allowed_filename(file.filename):
        return respond_error("Unsupported file type (allowed: png, jpg, jpeg)")

    try:
        max_depth, threshold, depth_limit, show_lines = _parse_params(request.form)
        QuadTreeConfig(max_depth=max_depth, detail_threshold=threshold).validate()
        validate_depth_limit(depth_limit)
    except QuadTreeError as e:
        return respond_error(str(e))
    except ValueError:
        return respond_error("Invalid numeric parameter")

    try:
        pil = Image.open(file.stream).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        return respond_error(f"Cannot open image: {e}")
    arr = np.array(pil)

    try:
        qt = build_quadtree(arr, max_depth=max_depth, detail_threshold=threshold)
        recon = render_quadtree(qt, depth_limit=depth_limit, draw_boundaries=show_lines)
    except QuadTreeError as e:
        return respond_error(str(e), 400)
    except Exception as e:
        app.logger.exception("Quadtree build/render failed")
        return respond_error(f"Build failed: {e}", 500)

    pil_recon = Image.fromarray(recon)
    pval = psnr(arr, recon)
    p_str = "inf" if math.isinf(pval) else f"{pval:.2f}"

    recon_name = f"recon_{uuid.uuid4().hex[:12]}.png"
    try:
        pil_recon.save(output_dir() / recon_name, format="PNG")
    except OSError as e:
        # still return the inline preview
        app.logger.warning("Failed to write rendering: %s", e)
        recon_name = None

    result = {
        "psnr": p_str,
        "nodes": count_nodes(qt.root),
        "leaves": count_leaves(qt.root),
        "depth_reached": qt.max_depth_reached,
        "width": qt.width,
        "height": qt.height,
        "max_depth": max_depth,
        "detail_threshold": threshold,
        "depth_limit": depth_limit,
        "recon_name": recon_name,
    }
    app.logger.info("Rendered %dx%d image: %d leaves, psnr %s", qt.width, qt.height, result["leaves"], p_str)

    if prefer_json:
        result["orig_b64"] = base64.b64encode(pil_to_bytes_io(pil).getvalue()).decode("ascii")
        result["recon_b64"] = base64.b64encode(pil_to_bytes_io(pil_recon).getvalue()).decode("ascii")
        return jsonify(result)

    return render_template("index.html", result=result, default_depth=max_depth, default_threshold=threshold)

@app.route("/download/recon/<fname>")
def download_recon(fname):
    p = Path(app.config["OUTPUT_DIR"]) / secure_filename(fname)
    if not p.exists():
        flash("File not found")
        return redirect(url_for("index"))
    return send_file(str(p), as_attachment=True)

if __name__ == "__main__":
    print("Starting quadtree web app on http://127.0.0.1:5000")
    app.run(host="0.0.0.0", port=5000, debug=True)
