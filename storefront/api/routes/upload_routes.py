import os

from flask import Blueprint, current_app, jsonify, request

from storefront.api.utils.image_host import is_allowed, normalize_image, resolve_folder, upload_image
from storefront.auth.permissions import staff_required

api_upload = Blueprint("api_upload", __name__, url_prefix="/api/upload")


@api_upload.post("")
@staff_required
def upload():
    fs = request.files.get("file")
    if fs is None or not fs.filename:
        return jsonify({"error": "No file provided"}), 400

    upload_type = (request.form.get("type") or "").strip()
    folder_raw = (request.form.get("folder") or "").strip()
    if not upload_type and not folder_raw:
        return jsonify({"error": "Upload type or folder is required"}), 400

    if not is_allowed(fs.filename, fs.mimetype):
        return jsonify({"error": "Invalid file type. Allowed: JPG, PNG, WebP, AVIF"}), 400

    data = fs.read()
    max_bytes = int(current_app.config.get("UPLOAD_MAX_BYTES") or 5 * 1024 * 1024)
    if len(data) > max_bytes:
        return jsonify({"error": f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB"}), 400
    if not data:
        return jsonify({"error": "Empty file"}), 400

    filename, mimetype = fs.filename, fs.mimetype
    normalized = normalize_image(data, int(current_app.config.get("IMAGE_MAX_SIDE") or 1600))
    if normalized is not None:
        data, ext = normalized
        filename = f"{os.path.splitext(fs.filename)[0]}.{ext}"
        mimetype = f"image/{ext}"
    else:
        current_app.logger.info("Pillow could not decode %s, forwarding as-is", fs.filename)

    folder = resolve_folder(upload_type, folder_raw)
    tags = [t for t in ("storefront", upload_type or None) if t]
    result = upload_image(data, filename, mimetype, folder, tags)

    current_app.logger.info("Uploaded %s to %s (%s bytes)", fs.filename, folder, result.get("bytes"))
    return jsonify({
        "success": True,
        "url": result.get("secure_url") or result.get("url"),
        "file": filename,
        "publicId": result.get("public_id"),
        "width": result.get("width"),
        "height": result.get("height"),
        "format": result.get("format"),
        "bytes": result.get("bytes"),
    }), 200
