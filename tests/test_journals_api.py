"""
LedgerFlow - Journals and Approvals API Tests
"""

import pytest

from tests.conftest import COMPANY_ID, OTHER_COMPANY_ID


async def _create(client, module, **fields):
    payload = {"company_id": COMPANY_ID, "entry_date": "2025-03-05", **fields}
    response = await client.post(f"/api/v1/journals/{module}/headers", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def _add_line(client, module, header_id, acct_code, debit=0, credit=0):
    return await client.post(
        f"/api/v1/journals/{module}/headers/{header_id}/details",
        json={"company_id": COMPANY_ID, "acct_code": acct_code, "debit": debit, "credit": credit},
    )


class TestCashDisbursementApi:

    @pytest.mark.asyncio
    async def test_create_numbers_and_zero_totals(self, client, chart):
        """Test create numbers and zero totals."""
        header = await _create(client, "cash_disbursement", bank_id="BDO", vend_id="V001")

        assert header["number"] == "800000"
        assert header["module"] == "cash_disbursement"
        assert header["party_id"] == "V001"
        assert header["state"] == "ACTIVE"
        assert float(header["sum_debit"]) == 0
        assert header["is_balanced"] is True

    @pytest.mark.asyncio
    async def test_add_line_returns_totals(self, client, chart):
        """Test add line returns totals."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")

        response = await _add_line(client, "cash_disbursement", header["id"], "6000", debit=150)

        assert response.status_code == 201
        data = response.json()
        assert data["totals"] == {"debit": 150.0, "credit": 150.0, "balanced": True}
        assert data["detail"]["acct_code"] == "6000"

        journal = await client.get(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}", params={"company_id": COMPANY_ID}
        )
        assert journal.status_code == 200
        body = journal.json()
        assert len(body["details"]) == 2
        assert float(body["header"]["amount"]) == 150.0

    @pytest.mark.asyncio
    async def test_bank_row_cannot_be_deleted(self, client, chart):
        """Test bank row cannot be deleted."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")
        await _add_line(client, "cash_disbursement", header["id"], "6000", debit=150)

        journal = await client.get(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}", params={"company_id": COMPANY_ID}
        )
        bank_row = next(d for d in journal.json()["details"] if d["acct_code"] == "1010")

        response = await client.delete(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}/details/{bank_row['id']}",
            params={"company_id": COMPANY_ID},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "BANK_ROW_PROTECTED"

    @pytest.mark.asyncio
    async def test_debit_and_credit_on_one_line_rejected(self, client, chart):
        """Test debit and credit on one line rejected."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")

        response = await _add_line(client, "cash_disbursement", header["id"], "6000", debit=10, credit=10)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cancelled_journal_is_closed(self, client, chart):
        """Test cancelled journal is closed."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")

        response = await client.post(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}/cancel",
            json={"company_id": COMPANY_ID, "state": "CANCELLED"},
        )
        assert response.status_code == 200
        assert response.json()["state"] == "CANCELLED"

        response = await _add_line(client, "cash_disbursement", header["id"], "6000", debit=150)
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "RECORD_CLOSED"

    @pytest.mark.asyncio
    async def test_soft_delete_unsupported_for_cash_journals(self, client, chart):
        """Test soft delete unsupported for cash journals."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")

        response = await client.delete(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}", params={"company_id": COMPANY_ID}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_other_company_cannot_read(self, client, chart):
        """Test other company cannot read."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")

        response = await client.get(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}", params={"company_id": OTHER_COMPANY_ID}
        )
        assert response.status_code in (403, 404)

    @pytest.mark.asyncio
    async def test_recalc(self, client, chart):
        """Test recalc rebuilds totals."""
        header = await _create(client, "cash_disbursement", bank_id="BDO")
        await _add_line(client, "cash_disbursement", header["id"], "6000", debit=75)

        response = await client.post(
            f"/api/v1/journals/cash_disbursement/headers/{header['id']}/recalc",
            params={"company_id": COMPANY_ID},
        )
        assert response.status_code == 200
        assert response.json() == {"debit": 75.0, "credit": 75.0, "balanced": True}


class TestGeneralAccountingApi:

    @pytest.mark.asyncio
    async def test_vendor_field_rejected(self, client, chart):
        """Test vendor field rejected."""
        response = await client.post(
            "/api/v1/journals/general_accounting/headers",
            json={"company_id": COMPANY_ID, "entry_date": "2025-03-05", "vend_id": "V001"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unbalanced_list(self, client, chart):
        """Test unbalanced list."""
        balanced = await _create(client, "general_accounting")
        await _add_line(client, "general_accounting", balanced["id"], "6000", debit=100)
        await _add_line(client, "general_accounting", balanced["id"], "2000", credit=100)
        lopsided = await _create(client, "general_accounting")
        await _add_line(client, "general_accounting", lopsided["id"], "6000", debit=40)

        response = await client.get(
            "/api/v1/journals/general_accounting/unbalanced", params={"company_id": COMPANY_ID}
        )

        data = response.json()
        assert data["exists"] is True
        assert [item["id"] for item in data["items"]] == [lopsided["id"]]

    @pytest.mark.asyncio
    async def test_soft_delete(self, client, chart):
        """Test soft delete."""
        header = await _create(client, "general_accounting")

        response = await client.delete(
            f"/api/v1/journals/general_accounting/headers/{header['id']}", params={"company_id": COMPANY_ID}
        )
        assert response.status_code == 200
        assert response.json()["state"] == "DELETED"

    @pytest.mark.asyncio
    async def test_line_edit_requires_approval(self, client, chart):
        """Test line edit requires approval."""
        header = await _create(client, "general_accounting")
        added = await _add_line(client, "general_accounting", header["id"], "6000", debit=100)
        detail_id = added.json()["detail"]["id"]
        edit_url = f"/api/v1/journals/general_accounting/headers/{header['id']}/details/{detail_id}"
        edit = {"company_id": COMPANY_ID, "debit": 120}

        response = await client.patch(edit_url, json=edit)
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "APPROVAL_REQUIRED"

        requested = await client.post("/api/v1/approvals", json={
            "company_id": COMPANY_ID,
            "module": "general_accounting",
            "record_id": header["id"],
            "reason": "Amount typo",
        })
        assert requested.status_code == 201
        assert requested.json()["status"] == "pending"
        approval_id = requested.json()["id"]

        approved = await client.post(
            f"/api/v1/approvals/{approval_id}/approve",
            json={"company_id": COMPANY_ID, "approver_id": 7},
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        response = await client.patch(edit_url, json=edit)
        assert response.status_code == 200
        assert response.json()["totals"]["debit"] == 120.0

        status_response = await client.get("/api/v1/approvals/status", params={
            "module": "general_accounting", "record_id": header["id"], "company_id": COMPANY_ID,
        })
        assert status_response.json()["usable"] is True
        assert status_response.json()["approval"]["first_edit_at"] is not None

        released = await client.post("/api/v1/approvals/release", json={
            "company_id": COMPANY_ID, "module": "general_accounting", "record_id": header["id"],
        })
        assert released.status_code == 200
        assert released.json()["exists"] is True
        assert released.json()["usable"] is False

        response = await client.patch(edit_url, json=edit)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_rejected_request(self, client, chart):
        """Test rejected request."""
        header = await _create(client, "general_accounting")
        requested = await client.post("/api/v1/approvals", json={
            "company_id": COMPANY_ID, "module": "general_accounting", "record_id": header["id"],
        })

        rejected = await client.post(
            f"/api/v1/approvals/{requested.json()['id']}/reject",
            json={"company_id": COMPANY_ID, "note": "No"},
        )
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"

        again = await client.post(
            f"/api/v1/approvals/{requested.json()['id']}/approve",
            json={"company_id": COMPANY_ID},
        )
        assert again.status_code == 409


class TestHeaderNumbersApi:

    @pytest.mark.asyncio
    async def test_number_must_be_digits(self, client, chart):
        """Test a non-numeric header number is a 422."""
        response = await client.post(
            "/api/v1/journals/cash_purchase/headers",
            json={"company_id": COMPANY_ID, "entry_date": "2025-03-05", "number": "A-1"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_used_number_conflicts_and_sequence_continues(self, client, chart):
        """Test reusing a number is a 409 and the next automatic number follows it."""
        await _create(client, "cash_purchase", number="12")

        duplicate = await client.post(
            "/api/v1/journals/cash_purchase/headers",
            json={"company_id": COMPANY_ID, "entry_date": "2025-03-06", "number": "12"},
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"]["code"] == "DUPLICATE_ENTRY"

        header = await _create(client, "cash_purchase")
        assert header["number"] == "13"


class TestModuleRouting:

    @pytest.mark.asyncio
    async def test_unknown_module(self, client):
        """Test unknown module."""
        response = await client.get("/api/v1/journals/petty_cash/unbalanced", params={"company_id": COMPANY_ID})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_approval_for_unknown_module(self, client):
        """Test approval for unknown module."""
        response = await client.post("/api/v1/approvals", json={
            "company_id": COMPANY_ID, "module": "petty_cash", "record_id": 1,
        })
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_health(self, client):
        """Test health check endpoint."""
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}
