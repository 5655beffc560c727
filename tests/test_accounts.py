"""
Tests for bank account endpoints (opening, reads, deposits and withdrawals).

These tests verify:
  - Accounts open with zero balance under a caller-chosen account number
  - Opening for an unknown user is 404; a duplicate number is 409
  - Deposits and withdrawals return the updated account
  - Non-positive amounts are rejected as invalid (400)
  - Non-integer amounts and missing fields are rejected as malformed (400)
  - Overdrafts are rejected with 422 and leave the balance unchanged
  - Unknown account ids are 404
  - Only empty accounts can be deleted
  - Amounts and balances stay within the storage range
  - Dozens of concurrent requests on one account all complete correctly
"""

import asyncio

import pytest


# ---------------------------------------------------------------------------
# Opening accounts
# ---------------------------------------------------------------------------

class TestAccountOpening:
    """Tests for POST /users/{id}/bankAccount."""

    async def test_open_account(self, authenticated_client, api_user):
        response = await authenticated_client.post(
            f"/users/{api_user['id']}/bankAccount",
            json={"account_number": "CHK-001", "name": "Checking"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["account_number"] == "CHK-001"
        assert data["display_name"] == "Checking"
        assert data["user_id"] == api_user["id"]
        assert data["balance"] == 0

    async def test_name_is_optional(self, authenticated_client, api_user):
        response = await authenticated_client.post(
            f"/users/{api_user['id']}/bankAccount",
            json={"account_number": "CHK-002"},
        )
        assert response.status_code == 201
        assert response.json()["display_name"] == ""

    async def test_open_for_unknown_user(self, authenticated_client):
        response = await authenticated_client.post(
            "/users/9999/bankAccount",
            json={"account_number": "CHK-001"},
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "user_not_found"

    async def test_duplicate_account_number(self, authenticated_client, api_user, api_account):
        await api_account("CHK-001")
        response = await authenticated_client.post(
            f"/users/{api_user['id']}/bankAccount",
            json={"account_number": "CHK-001"},
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_account_number"

    async def test_empty_account_number_is_malformed(self, authenticated_client, api_user):
        response = await authenticated_client.post(
            f"/users/{api_user['id']}/bankAccount",
            json={"account_number": ""},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "malformed_request"


# ---------------------------------------------------------------------------
# Reads and deletion
# ---------------------------------------------------------------------------

class TestAccountReads:

    async def test_get_account(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=75)
        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.status_code == 200
        assert response.json()["balance"] == 75

    async def test_get_unknown_account(self, authenticated_client):
        response = await authenticated_client.get("/bankAccounts/9999")
        assert response.status_code == 404
        assert response.json()["error_type"] == "account_not_found"

    async def test_list_accounts(self, authenticated_client, api_account):
        await api_account("CHK-001")
        await api_account("CHK-002")
        response = await authenticated_client.get("/bankAccounts")
        assert response.status_code == 200
        numbers = {a["account_number"] for a in response.json()}
        assert numbers == {"CHK-001", "CHK-002"}

    async def test_list_user_accounts(self, authenticated_client, api_user, api_account):
        await api_account("CHK-001")
        response = await authenticated_client.get(f"/users/{api_user['id']}/bankAccounts")
        assert response.status_code == 200
        assert [a["account_number"] for a in response.json()] == ["CHK-001"]

    async def test_list_accounts_of_unknown_user(self, authenticated_client):
        response = await authenticated_client.get("/users/9999/bankAccounts")
        assert response.status_code == 404

    async def test_delete_account(self, authenticated_client, api_account):
        account = await api_account("CHK-001")
        response = await authenticated_client.delete(f"/bankAccounts/{account['id']}")
        assert response.status_code == 204

        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.status_code == 404

    async def test_delete_funded_account_refused(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=25)
        response = await authenticated_client.delete(f"/bankAccounts/{account['id']}")
        assert response.status_code == 409
        data = response.json()
        assert data["error_type"] == "account_not_empty"
        assert data["balance"] == 25

        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.json()["balance"] == 25


# ---------------------------------------------------------------------------
# Deposits
# ---------------------------------------------------------------------------

class TestDeposit:
    """Tests for POST /bankAccounts/{id}/deposit."""

    async def test_deposit(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.post(
            f"/bankAccounts/{account['id']}/deposit", json={"amount": 50}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 150
        assert data["id"] == account["id"]

    async def test_deposit_unknown_account(self, authenticated_client):
        response = await authenticated_client.post(
            "/bankAccounts/9999/deposit", json={"amount": 50}
        )
        assert response.status_code == 404

    @pytest.mark.parametrize("amount", [0, -10])
    async def test_non_positive_amount(self, authenticated_client, api_account, amount):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.post(
            f"/bankAccounts/{account['id']}/deposit", json={"amount": amount}
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_amount"

        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.json()["balance"] == 100

    @pytest.mark.parametrize("body", [{"amount": "50"}, {"amount": 10.5}, {"amount": True}, {}])
    async def test_malformed_body(self, authenticated_client, api_account, body):
        account = await api_account("CHK-001")
        response = await authenticated_client.post(
            f"/bankAccounts/{account['id']}/deposit", json=body
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "malformed_request"


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------

class TestWithdraw:
    """Tests for PUT /bankAccounts/{id}/withdraw."""

    async def test_withdraw(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.put(
            f"/bankAccounts/{account['id']}/withdraw", json={"amount": 40}
        )
        assert response.status_code == 200
        assert response.json()["balance"] == 60

    async def test_withdraw_entire_balance(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.put(
            f"/bankAccounts/{account['id']}/withdraw", json={"amount": 100}
        )
        assert response.status_code == 200
        assert response.json()["balance"] == 0

    async def test_insufficient_funds(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.put(
            f"/bankAccounts/{account['id']}/withdraw", json={"amount": 101}
        )
        assert response.status_code == 422
        data = response.json()
        assert data["error_type"] == "insufficient_funds"
        assert data["requested"] == 101
        assert data["available"] == 100

        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.json()["balance"] == 100

    async def test_withdraw_negative_amount(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.put(
            f"/bankAccounts/{account['id']}/withdraw", json={"amount": -5}
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_amount"

    async def test_withdraw_unknown_account(self, authenticated_client):
        response = await authenticated_client.put(
            "/bankAccounts/9999/withdraw", json={"amount": 1}
        )
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Balance limit
# ---------------------------------------------------------------------------

class TestBalanceLimit:

    async def test_amount_beyond_storage_range(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)
        response = await authenticated_client.post(
            f"/bankAccounts/{account['id']}/deposit", json={"amount": 2**63}
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_amount"

    async def test_deposit_past_limit(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=2**62)
        response = await authenticated_client.post(
            f"/bankAccounts/{account['id']}/deposit", json={"amount": 2**62}
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "balance_limit_exceeded"

        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.json()["balance"] == 2**62


# ---------------------------------------------------------------------------
# Concurrent requests
# ---------------------------------------------------------------------------

class TestConcurrentRequests:
    """Many requests queued on one account lock must all complete."""

    async def test_concurrent_deposits_all_land(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)

        responses = await asyncio.wait_for(
            asyncio.gather(
                *(
                    authenticated_client.post(
                        f"/bankAccounts/{account['id']}/deposit", json={"amount": 1}
                    )
                    for _ in range(30)
                )
            ),
            timeout=30,
        )

        assert [r.status_code for r in responses] == [200] * 30
        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.json()["balance"] == 130

    async def test_concurrent_withdrawals_never_overdraw(self, authenticated_client, api_account):
        account = await api_account("CHK-001", balance=100)

        responses = await asyncio.wait_for(
            asyncio.gather(
                *(
                    authenticated_client.put(
                        f"/bankAccounts/{account['id']}/withdraw", json={"amount": 30}
                    )
                    for _ in range(20)
                )
            ),
            timeout=30,
        )

        codes = sorted(r.status_code for r in responses)
        assert codes == [200] * 3 + [422] * 17
        response = await authenticated_client.get(f"/bankAccounts/{account['id']}")
        assert response.json()["balance"] == 10
