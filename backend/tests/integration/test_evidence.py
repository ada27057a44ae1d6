"""Integration tests for evidence export, import and download."""

import io
import json
import zipfile

import pytest
import pytest_asyncio

from bizgov.models import Evidence
from tests.conftest import auth_headers


@pytest_asyncio.fixture
async def evidence_file(test_session, upload_dir):
    """One evidence record with a file on disk and one without."""
    path = upload_dir / "stored-report.pdf"
    path.write_bytes(b"%PDF-1.4 evidence")
    test_session.add_all([
        Evidence(
            id="ev-1",
            title="Signed report",
            file_path=str(path),
            original_filename="report.pdf",
            mime_type="application/pdf",
        ),
        Evidence(id="ev-2", title="Phone call notes"),
    ])
    await test_session.commit()
    return path


@pytest.mark.asyncio
class TestDownload:
    """Tests for GET /evidence/{id}/download."""

    async def test_inline(self, client, user_token, evidence_file):
        response = await client.get(
            "/api/evidence/ev-1/download", headers=auth_headers(user_token)
        )

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4 evidence"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"].startswith("inline")
        assert "report.pdf" in response.headers["content-disposition"]

    async def test_attachment(self, client, user_token, evidence_file):
        response = await client.get(
            "/api/evidence/ev-1/download",
            params={"download": "true"},
            headers=auth_headers(user_token),
        )

        assert response.status_code == 200
        assert response.headers["content-disposition"].startswith("attachment")

    async def test_unknown_evidence(self, client, user_token):
        response = await client.get(
            "/api/evidence/nope/download", headers=auth_headers(user_token)
        )

        assert response.status_code == 404

    async def test_no_file_attached(self, client, user_token, evidence_file):
        response = await client.get(
            "/api/evidence/ev-2/download", headers=auth_headers(user_token)
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "No file attached to this evidence"

    async def test_file_missing_on_disk(self, client, user_token, evidence_file):
        evidence_file.unlink()

        response = await client.get(
            "/api/evidence/ev-1/download", headers=auth_headers(user_token)
        )

        assert response.status_code == 404

    async def test_file_outside_upload_dir(self, client, user_token, test_session, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("not evidence")
        test_session.add(Evidence(id="ev-3", title="Imported elsewhere", file_path=str(outside)))
        await test_session.commit()

        response = await client.get(
            "/api/evidence/ev-3/download", headers=auth_headers(user_token)
        )

        assert response.status_code == 404
        assert b"not evidence" not in response.content


@pytest.mark.asyncio
class TestEvidenceTransfer:
    """Tests for the evidence-only ZIP endpoints."""

    async def test_export(self, client, user_token, evidence_file):
        response = await client.get("/api/evidence/export", headers=auth_headers(user_token))

        assert response.status_code == 200
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            manifest = json.loads(archive.read("manifest.json"))
            assert archive.read("files/ev-1") == b"%PDF-1.4 evidence"
        assert list(manifest["data"]) == ["evidence"]
        assert manifest["files"] == {"ev-1": "report.pdf"}

    async def test_reimport_skips_existing(self, client, user_token, evidence_file):
        headers = auth_headers(user_token)
        exported = await client.get("/api/evidence/export", headers=headers)

        response = await client.post(
            "/api/evidence/import",
            headers=headers,
            files={"file": ("evidence.zip", exported.content, "application/zip")},
        )

        assert response.status_code == 200
        summary = response.json()
        assert summary["skipped"]["evidenceRecords"] == 2
        assert summary["imported"]["evidenceFiles"] == 0

    async def test_not_a_zip(self, client, user_token):
        response = await client.post(
            "/api/evidence/import",
            headers=auth_headers(user_token),
            files={"file": ("evidence.zip", b"nope", "application/zip")},
        )

        assert response.status_code == 400
