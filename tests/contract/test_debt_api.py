"""Contract tests for debt, payment history, monthly status and debt summary endpoints.

The reference date is fixed at 2026-06-15 and the first digital year at 2024
(see conftest).
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from condo.models import Owner


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestUnitDebtEndpoint:
    """Tests for /api/units/{unit_id}/debt."""

    def test_paid_up_unit_with_legacy_debt(self, client: TestClient, building):
        response = client.get(f"/api/units/{building['unit_1a']}/debt")
        assert response.status_code == 200
        data = response.json()

        assert data["unit_code"] == "1A"
        assert data["policy"] == "carry_forward"
        assert data["as_of_month"] == "2026-06"
        assert [y["year"] for y in data["years"]] == [2024, 2025]
        assert data["years"][0]["expected"] == 450.0
        assert data["years"][1]["expected"] == 600.0
        assert data["past_years_debt"] == 0.0
        assert data["previous_debt_remaining"] == 100.0
        assert data["total_debt"] == 100.0
        assert data["current_year"] == {"year": 2026, "expected": 270.0, "paid": 0.0, "shortfall": 270.0}

    def test_include_current_year(self, client: TestClient, building):
        response = client.get(
            f"/api/units/{building['unit_1a']}/debt", params={"include_current_year": "true"}
        )
        assert response.json()["total_debt"] == 370.0

    def test_unpaid_year_and_partial_legacy(self, client: TestClient, building):
        data = client.get(f"/api/units/{building['unit_2b']}/debt").json()
        assert data["years"][1] == {
            "year": 2025,
            "expected": 660.0,
            "paid": 0.0,
            "debt": 660.0,
            "cumulative": 660.0,
        }
        assert data["previous_debt"] == 1000.0
        assert data["previous_debt_paid"] == 400.0
        assert data["total_debt"] == 1260.0
        assert data["capped_debt"] == data["carry_forward_debt"] == 660.0

    def test_outstanding_extras(self, client: TestClient, building):
        data = client.get(f"/api/units/{building['unit_2b']}/debt").json()
        (roof,) = data["outstanding_extras"]
        assert roof["description"] == "Roof repair"
        assert roof["total_expected"] == 60.0
        assert roof["remaining"] == 60.0

    def test_owner_restriction(self, client: TestClient, db, building):
        bruno = db.query(Owner).filter(Owner.name == "Bruno").one()
        data = client.get(
            f"/api/units/{building['unit_1a']}/debt", params={"owner_id": bruno.id}
        ).json()
        assert data["owner_id"] == bruno.id
        assert data["previous_debt"] == 0.0
        assert data["total_debt"] == 0.0

    def test_owner_of_other_unit_is_400(self, client: TestClient, db, building):
        carla = db.query(Owner).filter(Owner.name == "Carla").one()
        response = client.get(f"/api/units/{building['unit_1a']}/debt", params={"owner_id": carla.id})
        assert response.status_code == 400

    def test_capped_policy(self, client: TestClient, building):
        data = client.get(f"/api/units/{building['unit_2b']}/debt", params={"policy": "capped"}).json()
        assert data["policy"] == "capped"

    def test_unknown_policy_is_400(self, client: TestClient, building):
        response = client.get(f"/api/units/{building['unit_1a']}/debt", params={"policy": "lenient"})
        assert response.status_code == 400
        assert "Unknown debt policy" in response.json()["detail"]

    def test_unknown_unit_is_404(self, client: TestClient, building):
        assert client.get("/api/units/999/debt").status_code == 404

    def test_unexpected_error_is_500(self, client: TestClient, building):
        with patch(
            "condo.api.debt.DebtCalculator.compute_unit_debt",
            side_effect=RuntimeError("Database error"),
        ):
            response = client.get(f"/api/units/{building['unit_1a']}/debt")
        assert response.status_code == 500
        assert response.json()["detail"] == "Server error"


class TestPaymentHistoryEndpoints:
    """Tests for unit and creditor payment history."""

    def test_unit_history(self, client: TestClient, building):
        response = client.get(f"/api/units/{building['unit_1a']}/payment-history")
        assert response.status_code == 200
        data = response.json()

        assert data["payments"]["2024-01"] == 37.5
        assert data["payments"]["2025-01"] == 55.0
        assert min(data["expected"]) == "2024-01"
        assert max(data["expected"]) == "2026-06"
        assert [y["year"] for y in data["years"]] == [2024, 2025, 2026]
        assert data["years"][2]["debt"] == 270.0

    def test_unit_history_unknown_unit(self, client: TestClient, building):
        assert client.get("/api/units/999/payment-history").status_code == 404

    def test_creditor_history(self, client: TestClient, building):
        response = client.get(f"/api/creditors/{building['cleaning']}/payment-history")
        assert response.status_code == 200
        data = response.json()
        assert data["payments"] == {"2024-01": 120.0}
        assert [y["year"] for y in data["years"]] == [2024, 2025, 2026]
        assert data["years"][0]["debt"] == 1320.0
        assert "2026-07" not in data["expected"]

    def test_creditor_history_unknown(self, client: TestClient, building):
        assert client.get("/api/creditors/999/payment-history").status_code == 404


class TestMonthlyStatusEndpoint:
    """Tests for /api/monthly-status."""

    def test_unit_months(self, client: TestClient, building):
        response = client.get("/api/monthly-status", params={"unit_id": building["unit_1a"], "year": 2025})
        assert response.status_code == 200
        data = response.json()
        assert data["year"] == 2025
        assert len(data["months"]) == 12

        january = data["months"][0]
        assert january["expected"] == 55.0
        assert january["base_fee"] == 45.0
        assert [e["description"] for e in january["extras"]] == ["Roof repair"]
        assert january["base_fee_paid"] == 45.0
        assert january["extras_paid"] == [{"extra_charge_id": building["roof"], "amount": 10.0}]
        assert january["is_paid"] is True
        assert data["months"][6]["expected"] == 45.0

    def test_defaults_to_current_year(self, client: TestClient, building):
        data = client.get("/api/monthly-status", params={"unit_id": building["unit_1a"]}).json()
        assert data["year"] == 2026
        assert not any(m["is_paid"] for m in data["months"])

    def test_explicit_year_zero_is_not_replaced(self, client: TestClient, building):
        data = client.get("/api/monthly-status", params={"unit_id": building["unit_1a"], "year": 0}).json()
        assert data["year"] == 0
        assert data["months"][0]["month"] == "0000-01"

    def test_creditor_months(self, client: TestClient, building):
        data = client.get(
            "/api/monthly-status", params={"creditor_id": building["cleaning"], "year": 2024}
        ).json()
        assert data["months"][0]["paid"] == 120.0
        assert data["months"][0]["is_paid"] is True
        assert data["months"][0]["extras"] == []
        assert data["months"][1]["is_paid"] is False

    def test_requires_an_entity(self, client: TestClient, building):
        assert client.get("/api/monthly-status").status_code == 400

    def test_unknown_unit(self, client: TestClient, building):
        assert client.get("/api/monthly-status", params={"unit_id": 999}).status_code == 404


class TestDebtSummaryEndpoint:
    """Tests for /api/reports/debt-summary."""

    def test_summary(self, client: TestClient, building):
        response = client.get("/api/reports/debt-summary", params={"end_year": 2025})
        assert response.status_code == 200
        data = response.json()

        assert data["years"] == [2024, 2025]
        assert data["legacy_label"] == "Before 2024"
        assert [u["code"] for u in data["units"]] == ["1A", "2B"]
        assert [u["name"] for u in data["units"]] == ["Bruno", "Carla"]

        unit_2b = data["units"][1]
        assert unit_2b["legacy"] == {"expected": 1000.0, "paid": 400.0, "debt": 600.0}
        assert unit_2b["years"]["2025"]["debt"] == 660.0
        assert unit_2b["total"]["debt"] == 1260.0

        assert data["year_base_fees"] == {"2024": 1050.0, "2025": 1140.0}
        assert data["extra_charges"][0]["yearly_totals"] == {"2024": 0.0, "2025": 120.0}
        assert data["grand_total"]["debt"] == 1360.0

    def test_end_year_before_first_digital_year(self, client: TestClient, building):
        response = client.get("/api/reports/debt-summary", params={"end_year": 2020})
        assert response.status_code == 400

    def test_empty_building(self, client: TestClient):
        data = client.get("/api/reports/debt-summary", params={"end_year": 2024}).json()
        assert data["units"] == []
        assert data["grand_total"] == {"expected": 0.0, "paid": 0.0, "debt": 0.0}
