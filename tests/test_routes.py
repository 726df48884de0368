"""
Tests for the HTTP API: compress, download, health, metrics, presets.
"""

import io

import pytest

from pdfshrink.codecs.mock import fake_pdf
from pdfshrink.errors import CompressionFailed

pytest.importorskip("flask")


def upload(data, name="report.pdf", field="file", **form):
    return {field: (io.BytesIO(data), name), **form}


def post(client, data, **kwargs):
    return client.post("/compress", data=data, content_type="multipart/form-data", **kwargs)


class TestCompressInline:
    """Tests for POST /compress returning the PDF body."""

    def test_returns_compressed_pdf(self, make_client):
        client, _ = make_client(gs={"extreme": 4000, "high": 4500, "medium": 6000})

        resp = post(client, upload(fake_pdf(10_000), quality="high"))

        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert len(resp.data) == 4000
        assert resp.headers["X-Original-Size"] == "10000"
        assert resp.headers["X-Compressed-Size"] == "4000"
        assert resp.headers["X-Reduction-Percent"] == "60.0"
        assert resp.headers["X-Compression-Preset"] == "extreme"
        assert "compressed-report.pdf" in resp.headers["Content-Disposition"]

    def test_aliases(self, make_client):
        """Accept the legacy 'pdf' field and 'compressionLevel' parameter."""
        client, service = make_client(strategy="single")

        resp = post(client, upload(fake_pdf(10_000), field="pdf", compressionLevel="extreme"))

        assert resp.status_code == 200
        assert service.registry.get("ghostscript").calls == ["extreme"]

    def test_api_prefix(self, make_client):
        client, _ = make_client()

        resp = client.post(
            "/api/compress", data=upload(fake_pdf(10_000)), content_type="multipart/form-data"
        )

        assert resp.status_code == 200

    def test_not_smaller_returns_original(self, make_client, scratch):
        client, _ = make_client(gs={"high": 1.0, "medium": 1.5, "low": 1.2})
        original = fake_pdf(200_000)

        resp = post(client, upload(original))

        assert resp.status_code == 200
        assert resp.data == original
        assert resp.headers["X-Reduction-Percent"] == "0.0"
        assert resp.headers["X-Compression-Preset"] == "original"
        assert scratch.live_handles() == []


class TestCompressDownload:
    """Tests for download mode and GET /download/<token>."""

    def test_json_and_download(self, make_client):
        client, _ = make_client(gs={"high": 1024, "medium": 2048, "low": 4096})

        resp = post(client, upload(fake_pdf(1024 * 1024), mode="download"))

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["originalName"] == "report.pdf"
        assert body["originalSize"] == "1 MB"
        assert body["compressedSize"] == "1 KB"
        assert body["originalSizeBytes"] == 1024 * 1024
        assert body["compressedSizeBytes"] == 1024
        assert body["reductionPercent"] == "99.9"
        assert body["preset"] == "high"
        assert body["downloadUrl"].startswith("/download/handler-")

        download = client.get(body["downloadUrl"])
        assert download.status_code == 200
        assert len(download.data) == 1024
        assert "compressed-report.pdf" in download.headers["Content-Disposition"]
        download.close()

    def test_deferred_release(self, make_client, scratch, clock):
        client, _ = make_client(response_mode="download")

        body = post(client, upload(fake_pdf(10_000))).get_json()
        assert len(scratch.live_handles()) == 1

        clock.advance(300)
        assert scratch.run_due() == 1

        assert client.get(body["downloadUrl"]).status_code == 404
        assert scratch.live_handles() == []

    def test_download_once(self, make_client, scratch):
        client, _ = make_client(response_mode="download", download_once=True)
        body = post(client, upload(fake_pdf(10_000))).get_json()

        first = client.get(body["downloadUrl"])
        first.get_data()
        first.close()

        assert scratch.live_handles() == []
        assert client.get(body["downloadUrl"]).status_code == 404

    def test_downloaded_file_released_after_grace(self, make_client, scratch, clock):
        """A finished download unpins the file so the grace timer can free it."""
        client, _ = make_client(response_mode="download")
        body = post(client, upload(fake_pdf(10_000))).get_json()
        path = scratch.live_handles()[0].path

        download = client.get(body["downloadUrl"])
        assert download.get_data().startswith(b"%PDF")
        download.close()

        clock.advance(301)
        assert scratch.run_due() == 1

        assert not path.exists()
        assert scratch.live_handles() == []
        assert client.get(body["downloadUrl"]).status_code == 404

    def test_grace_timer_waits_for_open_download(self, make_client, scratch, clock):
        client, _ = make_client(response_mode="download")
        body = post(client, upload(fake_pdf(10_000))).get_json()
        path = scratch.live_handles()[0].path

        download = client.get(body["downloadUrl"])
        clock.advance(301)
        scratch.run_due()
        assert path.exists()

        download.get_data()
        download.close()
        clock.advance(301)
        scratch.run_due()

        assert not path.exists()
        assert scratch.live_handles() == []

    def test_unknown_token(self, make_client):
        client, _ = make_client()

        assert client.get("/download/handler-0000000000000-" + "0" * 32 + ".pdf").status_code == 404
        assert client.get("/download/..%2Fetc%2Fpasswd").status_code == 404


class TestCompressErrors:
    """Tests for error responses."""

    def test_missing_file(self, make_client):
        client, _ = make_client()

        resp = post(client, {"quality": "high"})

        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_not_a_pdf(self, make_client, scratch):
        client, _ = make_client()

        resp = post(client, upload(b"just some text", name="notes.txt"))

        assert resp.status_code == 400
        assert not scratch.root.exists() or list(scratch.root.iterdir()) == []

    def test_invalid_mode(self, make_client):
        client, _ = make_client()

        resp = post(client, upload(fake_pdf(1000), mode="stream"))

        assert resp.status_code == 400

    def test_strict_quality(self, make_client):
        client, _ = make_client(strict_tier=True)

        resp = post(client, upload(fake_pdf(1000), quality="ultra"))

        assert resp.status_code == 400
        assert "ultra" in resp.get_json()["error"]

    def test_all_presets_failed(self, make_client, scratch):
        client, _ = make_client(strategy="single", gs_available=False)

        resp = post(client, upload(fake_pdf(500_000)))

        assert resp.status_code == 500
        assert resp.get_json()["error"] == CompressionFailed.GENERIC_MESSAGE
        assert scratch.live_handles() == []

    def test_too_large(self, make_client):
        client, _ = make_client(max_upload_bytes=1000)

        resp = post(client, upload(fake_pdf(5000)))

        assert resp.status_code == 413
        assert resp.get_json()["success"] is False

    def test_output_not_smaller_policy_error(self, make_client):
        client, _ = make_client(gs={"high": 1.0, "medium": 1.0, "low": 1.0}, not_smaller_policy="error")

        resp = post(client, upload(fake_pdf(10_000)))

        assert resp.status_code == 422
        assert resp.get_json()["code"] == "output_not_smaller"


class TestCoreRoutes:
    """Tests for health, metrics, presets and index."""

    def test_health(self, make_client):
        client, _ = make_client()

        resp = client.get("/health")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["service"] == "PDF Compression Server"
        assert set(body["codecs"]) == {"ghostscript", "structural"}

    def test_health_degraded_is_200(self, make_client):
        client, _ = make_client(gs_available=False)

        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

    def test_health_unhealthy_is_503(self, make_client):
        client, _ = make_client(gs_available=False, structural_available=False)

        assert client.get("/health").status_code == 503

    def test_metrics(self, make_client):
        client, _ = make_client()
        post(client, upload(fake_pdf(10_000)))

        resp = client.get("/metrics")

        assert resp.status_code == 200
        assert resp.mimetype == "text/plain"
        assert 'pdfshrink_requests_total{result="compressed"} 1' in resp.get_data(as_text=True)

    def test_presets(self, make_client):
        client, _ = make_client()

        body = client.get("/presets").get_json()

        assert body["plans"]["high"] == ["extreme", "high", "medium"]
        assert body["presets"]["extreme"]["params"]["pdfsettings"] == "/screen"

    def test_index(self, make_client):
        client, _ = make_client()

        body = client.get("/").get_json()

        assert body["service"] == "PDF Compression Server"
        assert "compress" in body["endpoints"]

    def test_cors_exposes_metadata_headers(self, make_client):
        client, _ = make_client()

        resp = post(client, upload(fake_pdf(10_000)), headers={"Origin": "https://app.example"})

        assert resp.headers["Access-Control-Allow-Origin"] in ("*", "https://app.example")
        assert "X-Compression-Preset" in resp.headers["Access-Control-Expose-Headers"]
