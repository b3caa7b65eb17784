import io

import pytest
import requests
from PIL import Image

from conftest import FakeResponse


def _png(width=2400, height=1200, mode="RGBA"):
    buf = io.BytesIO()
    Image.new(mode, (width, height), (200, 120, 40, 255) if mode == "RGBA" else (200, 120, 40)).save(buf, format="PNG")
    return buf.getvalue()


def _form(data=None, filename="photo.png", mimetype="image/png", **fields):
    form = {"file": (io.BytesIO(_png() if data is None else data), filename, mimetype)}
    form.update(fields)
    return form


@pytest.fixture
def host(monkeypatch):
    sent = {}

    def fake_post(url, data=None, files=None, timeout=None):
        sent.update(url=url, data=data, files=files)
        return FakeResponse(200, {
            "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/storefront/products/abc.webp",
            "public_id": "storefront/products/abc",
            "width": 1600,
            "height": 800,
            "format": "webp",
            "bytes": 1234,
        })

    monkeypatch.setattr("storefront.api.utils.image_host.requests.post", fake_post)
    return sent


def test_upload_normalises_and_forwards(admin_client, host):
    resp = admin_client.post("/api/upload", data=_form(type="product"), content_type="multipart/form-data")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["url"].startswith("https://res.cloudinary.com/")
    assert body["publicId"] == "storefront/products/abc"
    assert body["file"] == "photo.webp"

    assert host["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert host["data"] == {"upload_preset": "unsigned-test", "folder": "storefront/products", "tags": "storefront,product"}
    name, payload, mimetype = host["files"]["file"]
    assert name.endswith(".webp")
    assert mimetype == "image/webp"
    img = Image.open(io.BytesIO(payload))
    assert img.format == "WEBP"
    assert max(img.size) == 1600


def test_small_image_is_not_upscaled(admin_client, host):
    admin_client.post("/api/upload", data=_form(data=_png(300, 200, "RGB"), type="slider"),
                      content_type="multipart/form-data")
    img = Image.open(io.BytesIO(host["files"]["file"][1]))
    assert img.size == (300, 200)
    assert host["data"]["folder"] == "storefront/sliders"


def test_explicit_folder_wins(admin_client, host):
    admin_client.post("/api/upload", data=_form(folder="/campaigns/eid/"), content_type="multipart/form-data")
    assert host["data"]["folder"] == "storefront/campaigns/eid"
    assert host["data"]["tags"] == "storefront"


def test_undecodable_image_is_forwarded_as_is(admin_client, host):
    resp = admin_client.post(
        "/api/upload",
        data=_form(data=b"not really an image", filename="shot.avif", mimetype="image/avif", type="content"),
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert host["files"]["file"][1] == b"not really an image"
    assert host["files"]["file"][2] == "image/avif"


def test_upload_validation(admin_client, host):
    no_file = admin_client.post("/api/upload", data={"type": "product"}, content_type="multipart/form-data")
    assert no_file.get_json()["error"] == "No file provided"

    no_type = admin_client.post("/api/upload", data=_form(), content_type="multipart/form-data")
    assert no_type.status_code == 400

    pdf = admin_client.post(
        "/api/upload", data=_form(data=b"%PDF", filename="menu.pdf", mimetype="application/pdf", type="product"),
        content_type="multipart/form-data",
    )
    assert pdf.status_code == 400
    assert pdf.get_json()["error"].startswith("Invalid file type")
    assert host == {}


def test_too_large_file_rejected(app, admin_client, host):
    app.config["UPLOAD_MAX_BYTES"] = 10
    resp = admin_client.post("/api/upload", data=_form(type="product"), content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("File too large")


def test_unconfigured_host_is_503(app, admin_client):
    app.config["CLOUDINARY_CLOUD_NAME"] = None
    resp = admin_client.post("/api/upload", data=_form(type="product"), content_type="multipart/form-data")
    assert resp.status_code == 503
    assert resp.get_json()["error"] == "Image upload is not configured"


def test_host_errors_are_502(admin_client, monkeypatch):
    monkeypatch.setattr(
        "storefront.api.utils.image_host.requests.post",
        lambda url, **kw: FakeResponse(400, {"error": {"message": "Upload preset not found"}}),
    )
    resp = admin_client.post("/api/upload", data=_form(type="product"), content_type="multipart/form-data")
    assert resp.status_code == 502
    assert resp.get_json()["error"] == "Upload failed: Upload preset not found"

    def unreachable(url, **kw):
        raise requests.Timeout("timed out")

    monkeypatch.setattr("storefront.api.utils.image_host.requests.post", unreachable)
    resp = admin_client.post("/api/upload", data=_form(type="product"), content_type="multipart/form-data")
    assert resp.status_code == 502
    assert resp.get_json()["error"] == "Upload failed: timed out"


def test_upload_is_staff_only(client, customer_client):
    assert client.post("/api/upload", data=_form(type="product"), content_type="multipart/form-data").status_code == 401
    assert customer_client.post(
        "/api/upload", data=_form(type="product"), content_type="multipart/form-data"
    ).status_code == 403
