"""Unit tests for the import reconciler."""

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlmodel import select

from bizgov.core.security import get_password_hash
from bizgov.models import BillableEvent, Contract, Evidence, Organization, User
from bizgov.services.errors import CorruptArchiveError
from bizgov.services.import_service import ImportService, ImportState
from bizgov.services.manifest import build_manifest

PASSWORD_HASH = get_password_hash("secret123")


def _user(user_id="u-1", username="alice", **extra) -> dict:
    return {
        "id": user_id,
        "username": username,
        "role": "user",
        "hashedPassword": PASSWORD_HASH,
        "isActive": True,
        **extra,
    }


def _org(org_id="org-1", code="ACME") -> dict:
    return {"id": org_id, "name": f"Org {code}", "code": code, "orgType": "customer"}


def _contract(contract_id="ct-1", org_id="org-1") -> dict:
    return {
        "id": contract_id,
        "organizationId": org_id,
        "title": "Master services agreement",
        "startDate": "2024-01-01T00:00:00",
        "maxAmount": "25000.00",
    }


def _evidence(evidence_id="ev-1", **extra) -> dict:
    return {
        "id": evidence_id,
        "title": f"Evidence {evidence_id}",
        "evidenceType": "document",
        "originalFilename": "report.pdf",
        "mimeType": "application/pdf",
        **extra,
    }


@pytest.mark.asyncio
class TestImportDatabase:
    """Tests for JSON manifest imports."""

    async def test_import_then_reimport(self, test_session):
        """Test a second import of the same manifest inserts nothing."""
        manifest = build_manifest(
            {
                "contracts": [_contract()],
                "organizations": [_org()],
                "users": [_user()],
            }
        )
        service = ImportService(test_session)

        first = await service.import_database(manifest)
        second = await service.import_database(manifest)

        assert first.state == ImportState.COMPLETED
        assert first.imported["users"] == 1
        assert first.imported["organizations"] == 1
        assert first.imported["contracts"] == 1
        assert first.total == 3
        assert first.errors == 0

        assert second.total == 0
        assert second.skipped["organizations"] == 1
        assert second.skipped["contracts"] == 1
        assert second.errors == 0
        assert second.to_summary().message.startswith("No new records were imported")

        contract = await test_session.get(Contract, "ct-1")
        assert str(contract.max_amount) == "25000.00"

    async def test_reference_to_existing_row(self, test_session):
        """Test a contract may point at an organization already in the database."""
        test_session.add(Organization(id="org-1", name="Acme", code="ACME"))
        await test_session.commit()

        report = await ImportService(test_session).import_database(
            build_manifest({"users": [], "organizations": [], "contracts": [_contract()]})
        )

        assert report.imported["contracts"] == 1
        assert report.errors == 0

    async def test_dangling_reference(self, test_session):
        """Test a reference to a row that exists nowhere is an error."""
        report = await ImportService(test_session).import_database(
            build_manifest(
                {
                    "users": [],
                    "organizations": [_org()],
                    "contracts": [_contract("ct-1", "org-1"), _contract("ct-2", "org-404")],
                }
            )
        )

        assert report.imported["contracts"] == 1
        assert report.errors == 1
        assert await test_session.get(Contract, "ct-2") is None

    async def test_unique_code_collision(self, test_session):
        """Test an organization code already in use is rejected with its dependents."""
        test_session.add(Organization(id="org-local", name="Local Acme", code="ACME"))
        await test_session.commit()

        report = await ImportService(test_session).import_database(
            build_manifest(
                {
                    "users": [],
                    "organizations": [_org("org-2", "ACME")],
                    "contracts": [_contract("ct-2", "org-2")],
                }
            )
        )

        assert report.imported["organizations"] == 0
        assert report.imported["contracts"] == 0
        assert report.errors == 2

    async def test_user_without_password_hash(self, test_session):
        """Test a user without credentials is created as an inactive account."""
        user = _user()
        del user["hashedPassword"]

        report = await ImportService(test_session).import_database(
            build_manifest({"users": [user], "organizations": []})
        )

        assert report.imported["users"] == 1
        assert report.errors == 0
        stored = await test_session.get(User, "u-1")
        assert stored.is_active is False
        assert stored.hashed_password

    async def test_offset_less_timestamps_stored_as_utc(self, test_session):
        """Test ISO timestamps without an offset are read as UTC."""
        report = await ImportService(test_session).import_database(
            build_manifest({"users": [], "organizations": [_org()], "contracts": [_contract()]})
        )

        assert report.errors == 0
        contract = await test_session.get(Contract, "ct-1")
        assert contract.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def test_offset_timestamps_converted_to_utc(self, test_session):
        contract = _contract()
        contract["startDate"] = "2024-01-01T02:00:00+02:00"

        await ImportService(test_session).import_database(
            build_manifest({"users": [], "organizations": [_org()], "contracts": [contract]})
        )

        stored = await test_session.get(Contract, "ct-1")
        assert stored.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert stored.start_date.tzinfo == timezone.utc

    async def test_invalid_field(self, test_session):
        """Test a record that fails validation is counted as an error."""
        contract = _contract()
        contract["startDate"] = "not a date"

        report = await ImportService(test_session).import_database(
            build_manifest({"users": [], "organizations": [_org()], "contracts": [contract]})
        )

        assert report.imported["organizations"] == 1
        assert report.errors == 1

    async def test_billable_total_computed(self, test_session):
        """Test a billable event without a total gets rate * units."""
        event = {
            "id": "be-1",
            "organizationId": "org-1",
            "description": "Consulting",
            "rate": "150.00",
            "units": "2.5",
            "billingDate": "2024-02-01T00:00:00",
        }

        report = await ImportService(test_session).import_database(
            build_manifest({"users": [], "organizations": [_org()], "billableEvents": [event]})
        )

        assert report.imported["billableEvents"] == 1
        stored = await test_session.get(BillableEvent, "be-1")
        assert stored.total_amount == Decimal("375.00")

    async def test_corrupt_manifest_writes_nothing(self, test_session):
        """Test a manifest failing its hash aborts before any insert."""
        manifest = build_manifest({"users": [_user()], "organizations": [_org()]})
        manifest["data"]["organizations"][0]["code"] = "TAMPERED"

        with pytest.raises(CorruptArchiveError):
            await ImportService(test_session).import_database(manifest)

        result = await test_session.execute(select(Organization))
        assert result.scalars().all() == []


@pytest.mark.asyncio
class TestImportBundle:
    """Tests for unified archive imports."""

    async def test_files_written_for_new_evidence_only(self, test_session, upload_dir):
        """Test blobs are stored once and re-imports leave them alone."""
        manifest = build_manifest(
            {"users": [], "organizations": [], "evidence": [_evidence("ev-1")]},
            files={"ev-1": "report.pdf"},
        )
        files = {"ev-1": b"%PDF-1.4 report"}
        service = ImportService(test_session, upload_dir)

        first = await service.import_bundle(manifest, files)

        assert first.imported["evidenceRecords"] == 1
        assert first.imported["evidenceFiles"] == 1
        assert first.total == 1

        evidence = await test_session.get(Evidence, "ev-1")
        stored = list(upload_dir.iterdir())
        assert len(stored) == 1
        assert Path(evidence.file_path) == stored[0].resolve()
        assert stored[0].read_bytes() == b"%PDF-1.4 report"
        assert evidence.file_hash is not None

        second = await service.import_bundle(manifest, files)

        assert second.skipped["evidenceRecords"] == 1
        assert second.imported["evidenceFiles"] == 0
        assert len(list(upload_dir.iterdir())) == 1

    async def test_evidence_without_blob(self, test_session, upload_dir):
        """Test evidence missing from the archive is stored without a file."""
        manifest = build_manifest(
            {
                "users": [],
                "organizations": [],
                "evidence": [_evidence("ev-2", filePath="/old/host/path.pdf")],
            },
            files={},
        )

        report = await ImportService(test_session, upload_dir).import_bundle(manifest, {})

        assert report.imported["evidenceRecords"] == 1
        assert report.imported["evidenceFiles"] == 0
        evidence = await test_session.get(Evidence, "ev-2")
        assert evidence.file_path is None

    async def test_evidence_only_bundle(self, test_session, upload_dir):
        """Test an evidence-only archive needs no users or organizations."""
        manifest = build_manifest({"evidence": [_evidence("ev-3")]}, files={"ev-3": "report.pdf"})

        report = await ImportService(test_session, upload_dir).import_bundle(
            manifest, {"ev-3": b"data"}, required=("evidence",)
        )

        assert report.imported["evidenceRecords"] == 1

    async def test_uploaded_by_existing_user(self, test_session, upload_dir):
        """Test evidence may reference a user that already exists."""
        test_session.add(User(id="u-9", username="bob", hashed_password=PASSWORD_HASH))
        await test_session.commit()
        manifest = build_manifest(
            {"users": [], "organizations": [], "evidence": [_evidence("ev-4", uploadedBy="u-9")]},
            files={},
        )

        report = await ImportService(test_session, upload_dir).import_bundle(manifest, {})

        assert report.imported["evidenceRecords"] == 1
        assert report.errors == 0

    async def test_requires_upload_dir(self, test_session):
        with pytest.raises(ValueError):
            await ImportService(test_session).import_bundle(
                build_manifest({"users": [], "organizations": []}), {}
            )
