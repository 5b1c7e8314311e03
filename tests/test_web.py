import base64
import io
import numpy as np
import pytest
from PIL import Image

from web.app import app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setitem(app.config, "OUTPUT_DIR", str(tmp_path))
    monkeypatch.setitem(app.config, "TESTING", True)
    with app.test_client() as c:
        yield c


def _post(client, data, json=True):
    headers = {"Accept": "application/json"} if json else {}
    return client.post("/compress", data=data, headers=headers, content_type="multipart/form-data")


def test_index_renders_form(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert b"detail_threshold" in resp.data


def test_compress_returns_json_and_saves_rendering(client, tmp_path, png_bytes, quad_colors_image):
    data = {"image": (io.BytesIO(png_bytes(quad_colors_image)), "blocks.png"),
            "max_depth": "4", "detail_threshold": "13"}
    resp = _post(client, data)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["width"] == 4 and body["height"] == 4
    assert body["nodes"] == 5 and body["leaves"] == 4
    assert body["depth_reached"] == 1
    assert body["psnr"] == "inf"
    assert (tmp_path / body["recon_name"]).exists()
    recon = np.array(Image.open(io.BytesIO(base64.b64decode(body["recon_b64"]))).convert("RGB"))
    assert (recon == quad_colors_image).all()


def test_compress_depth_limit_and_lines(client, png_bytes, quad_colors_image):
    data = {"image": (io.BytesIO(png_bytes(quad_colors_image)), "blocks.png"),
            "depth_limit": "0", "show_lines": "on"}
    body = _post(client, data).get_json()
    assert body["depth_limit"] == 0
    recon = np.array(Image.open(io.BytesIO(base64.b64decode(body["recon_b64"]))).convert("RGB"))
    assert (recon[0] == 0).all()


def test_download_saved_rendering(client, png_bytes, quad_colors_image):
    data = {"image": (io.BytesIO(png_bytes(quad_colors_image)), "blocks.png")}
    name = _post(client, data).get_json()["recon_name"]
    resp = client.get(f"/download/recon/{name}")
    assert resp.status_code == 200
    assert resp.data[:8] == b"\x89PNG\r\n\x1a\n"


def test_missing_file_is_rejected(client):
    resp = _post(client, {})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "No file uploaded"


def test_unsupported_extension_is_rejected(client, png_bytes, quad_colors_image):
    resp = _post(client, {"image": (io.BytesIO(png_bytes(quad_colors_image)), "blocks.gif")})
    assert resp.status_code == 400


@pytest.mark.parametrize("field,value", [("max_depth", "abc"), ("max_depth", "-1"),
                                         ("detail_threshold", "-3"), ("depth_limit", "-2")])
def test_bad_parameters_are_rejected(client, png_bytes, quad_colors_image, field, value):
    data = {"image": (io.BytesIO(png_bytes(quad_colors_image)), "blocks.png"), field: value}
    resp = _post(client, data)
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_html_fallback_redirects_with_flash(client):
    resp = _post(client, {}, json=False)
    assert resp.status_code == 302


def test_html_result_page(client, png_bytes, quad_colors_image):
    data = {"image": (io.BytesIO(png_bytes(quad_colors_image)), "blocks.png"), "max_depth": "4"}
    resp = _post(client, data, json=False)
    assert resp.status_code == 200
    assert b"Depth reached: 1" in resp.data
    assert b"Nodes: 5 (4 leaves)" in resp.data
    assert b"/download/recon/recon_" in resp.data


def test_bad_depth_limit_is_rejected_before_decoding(client):
    # not a decodable image: the parameter check must answer first
    data = {"image": (io.BytesIO(b"not a png"), "blocks.png"), "depth_limit": "-2"}
    resp = _post(client, data)
    assert resp.status_code == 400
    assert "depth_limit" in resp.get_json()["error"]
