"""Integration tests — employee directory and self-access."""

import pytest

from hrms.models.user import User

pytestmark = pytest.mark.integration


def test_employee_reads_own_profile(client, make_user, auth_headers):
    employee = make_user(role="employee", full_name="Sam Lee")
    resp = client.get(f"/api/users/{employee.id}", headers=auth_headers(employee))
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Sam Lee"
    assert resp.json()["role"] == "employee"


def test_employee_cannot_read_others(client, make_user, auth_headers):
    employee = make_user(role="employee")
    other = make_user(role="employee")
    resp = client.get(f"/api/users/{other.id}", headers=auth_headers(employee))
    assert resp.status_code == 403


def test_manager_reads_others(client, make_user, auth_headers):
    manager = make_user(role="manager")
    other = make_user(role="employee")
    resp = client.get(f"/api/users/{other.id}", headers=auth_headers(manager))
    assert resp.status_code == 200


def test_missing_user_is_404(client, make_user, auth_headers):
    manager = make_user(role="manager")
    resp = client.get("/api/users/does-not-exist", headers=auth_headers(manager))
    assert resp.status_code == 404


def test_list_requires_employee_read(client, make_user, auth_headers):
    employee = make_user(role="employee")
    hr_staff = make_user(role="hr-staff")

    assert client.get("/api/users/", headers=auth_headers(employee)).status_code == 403

    resp = client.get("/api/users/", headers=auth_headers(hr_staff))
    assert resp.status_code == 200
    assert resp.json()["total"] == 2


def test_employee_updates_own_name(client, make_user, auth_headers):
    employee = make_user(role="employee")
    resp = client.put(
        f"/api/users/{employee.id}",
        json={"full_name": "New Name"},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "New Name"


def test_self_access_cannot_change_account_status(client, make_user, auth_headers):
    employee = make_user(role="employee")
    resp = client.put(
        f"/api/users/{employee.id}",
        json={"is_active": False},
        headers=auth_headers(employee),
    )
    assert resp.status_code == 403


def test_hr_admin_deactivates_account(client, make_user, auth_headers):
    hr_admin = make_user(role="hr-admin")
    employee = make_user(role="employee")
    resp = client.put(
        f"/api/users/{employee.id}",
        json={"is_active": False},
        headers=auth_headers(hr_admin),
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False


def test_taken_employee_id_is_conflict(client, make_user, auth_headers, db_session):
    first = make_user(role="employee")
    second = make_user(role="employee")
    first.employee_id = "E1"
    db_session.commit()

    resp = client.put(
        f"/api/users/{second.id}",
        json={"employee_id": "E1"},
        headers=auth_headers(second),
    )
    assert resp.status_code == 409

    db_session.expire_all()
    assert db_session.get(User, second.id).employee_id is None
    # The session is usable again after the failed write.
    resp = client.put(
        f"/api/users/{second.id}",
        json={"employee_id": "E2"},
        headers=auth_headers(second),
    )
    assert resp.status_code == 200
    assert resp.json()["employee_id"] == "E2"


def test_super_admin_token_reads_anyone(client, make_user, auth_headers):
    admin = make_user(role="super-admin")
    other = make_user(role="employee")
    resp = client.get(f"/api/users/{other.id}", headers=auth_headers(admin, "super-admin"))
    assert resp.status_code == 200


def test_admin_health(client):
    resp = client.get("/api/admin/health")
    assert resp.json() == {"database": "ok", "status": "healthy"}
