"""Tests for transfer endpoints (F6)."""

import pytest

INSTITUTE_A = "0x" + "a" * 40
INSTITUTE_B = "0x" + "b" * 40
STUDENT_ADDR = "0x" + "1" * 40


@pytest.fixture
def transfer(client, world):
    response = client.post(
        "/api/transfers",
        json={"to_institute_address": INSTITUTE_B},
        headers={"X-Wallet-Address": STUDENT_ADDR},
    )
    assert response.status_code == 201
    return response.json()


class TestRequest:
    def test_request_from_current(self, transfer, world):
        assert transfer["from_institute_id"] == world.institute_a
        assert transfer["to_institute_id"] == world.institute_b
        assert transfer["status"] == "pending"

    def test_pending_for_destination(self, client, transfer, world):
        response = client.get(f"/api/institutes/{world.institute_b}/transfers/pending")
        assert [t["id"] for t in response.json()["transfers"]] == [transfer["id"]]

    def test_duplicate_request_conflict(self, client, transfer):
        response = client.post(
            "/api/transfers",
            json={"to_institute_address": INSTITUTE_B},
            headers={"X-Wallet-Address": STUDENT_ADDR},
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATE"

    def test_request_unknown_student(self, client, world):
        response = client.post(
            "/api/transfers",
            json={"to_institute_address": INSTITUTE_B},
            headers={"X-Wallet-Address": "0xstranger"},
        )
        assert response.status_code == 404


class TestResolve:
    def test_approve(self, client, transfer, world):
        response = client.post(
            f"/api/transfers/{transfer['id']}/approve",
            json={"student_id": world.student},
            headers={"X-Wallet-Address": INSTITUTE_B},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        student = client.get(f"/api/students/{STUDENT_ADDR}").json()
        assert student["current_institute_id"] == world.institute_b
        assert student["pending_institute_id"] is None

        again = client.post(
            f"/api/transfers/{transfer['id']}/approve",
            json={"student_id": world.student},
            headers={"X-Wallet-Address": INSTITUTE_B},
        )
        assert again.status_code == 409

    def test_approve_by_source_institute(self, client, transfer, world):
        response = client.post(
            f"/api/transfers/{transfer['id']}/approve",
            json={"student_id": world.student},
            headers={"X-Wallet-Address": INSTITUTE_A},
        )
        assert response.status_code == 403

    def test_decline(self, client, transfer, world):
        response = client.post(
            f"/api/transfers/{transfer['id']}/decline",
            headers={"X-Wallet-Address": INSTITUTE_B},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "declined"

        student = client.get(f"/api/students/{STUDENT_ADDR}").json()
        assert student["current_institute_id"] == world.institute_a

        history = client.get(f"/api/students/{world.student}/transfers").json()
        assert [t["status"] for t in history["transfers"]] == ["declined"]

    def test_get_unknown(self, client):
        assert client.get("/api/transfers/404").status_code == 404
