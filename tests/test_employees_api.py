"""Integration tests for the /employees endpoints."""

EMPLOYEE = {
    "first_name": "Jane",
    "last_name": "Doe",
    "email": "Jane.Doe@Example.com",
    "department": "Engineering",
    "job_title": "Engineer",
    "base_salary": 7_500_000,
    "date_of_joining": "2020-01-15",
}


def _create(client, **overrides):
    return client.post("/employees", json={**EMPLOYEE, **overrides})


def test_create_employee_returns_201(client):
    resp = _create(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["id"] is not None
    assert body["email"] == "jane.doe@example.com"
    assert body["status"] == "active"


def test_duplicate_email_returns_409(client):
    _create(client)
    resp = _create(client, first_name="Other")
    assert resp.status_code == 409


def test_invalid_fields_return_400(client):
    assert _create(client, email="not-an-email").status_code == 400
    assert _create(client, base_salary=-5).status_code == 400
    assert _create(client, first_name="   ").status_code == 400
    assert _create(client, phone="call me").status_code == 400
    assert _create(client, date_of_joining="2999-01-01").status_code == 400


def test_get_employee(client):
    created = _create(client).json()
    resp = client.get(f"/employees/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["last_name"] == "Doe"


def test_get_employee_not_found_returns_404(client):
    assert client.get("/employees/99999").status_code == 404


def test_list_employees_paginates_in_name_order(client):
    for i, last in enumerate(["Carter", "Adams", "Baker"]):
        _create(client, last_name=last, email=f"e{i}@example.com")

    first_page = client.get("/employees", params={"page": 1, "limit": 2}).json()
    second_page = client.get("/employees", params={"page": 2, "limit": 2}).json()

    assert [e["last_name"] for e in first_page["items"]] == ["Adams", "Baker"]
    assert first_page["total"] == 3
    assert first_page["total_pages"] == 2
    assert first_page["has_next_page"] is True
    assert first_page["has_prev_page"] is False
    assert [e["last_name"] for e in second_page["items"]] == ["Carter"]
    assert second_page["has_next_page"] is False


def test_list_employees_filters(client):
    _create(client, email="a@example.com", department="Sales")
    _create(client, email="b@example.com", last_name="Roe")

    by_dept = client.get("/employees", params={"department": "Sales"}).json()
    by_search = client.get("/employees", params={"search": "roe"}).json()

    assert by_dept["total"] == 1
    assert by_search["total"] == 1
    assert by_search["items"][0]["last_name"] == "Roe"


def test_list_limit_out_of_range_returns_400(client):
    assert client.get("/employees", params={"limit": 101}).status_code == 400


def test_update_is_partial(client):
    created = _create(client).json()

    resp = client.put(f"/employees/{created['id']}", json={"job_title": "Lead Engineer"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["job_title"] == "Lead Engineer"
    assert body["last_name"] == "Doe"


def test_update_to_taken_email_returns_409(client):
    _create(client, email="taken@example.com")
    other = _create(client, email="free@example.com").json()

    resp = client.put(f"/employees/{other['id']}", json={"email": "taken@example.com"})

    assert resp.status_code == 409


def test_delete_terminates_employee(client, auth_headers):
    created = _create(client).json()

    resp = client.delete(f"/employees/{created['id']}", headers=auth_headers("admin"))

    assert resp.status_code == 200
    assert resp.json()["status"] == "terminated"
    assert client.get(f"/employees/{created['id']}").json()["status"] == "terminated"


def test_delete_requires_admin(client):
    created = _create(client).json()
    assert client.delete(f"/employees/{created['id']}").status_code == 403


def test_writes_require_payroll_role(client, auth_headers):
    resp = client.post("/employees", json=EMPLOYEE, headers=auth_headers("employee"))
    assert resp.status_code == 403


def test_department_stats_count_active_employees(client):
    _create(client, email="a@example.com", base_salary=100)
    _create(client, email="b@example.com", base_salary=200)
    _create(client, email="c@example.com", department="Sales", base_salary=300)
    _create(client, email="d@example.com", department="Sales", base_salary=400, status="inactive")

    items = client.get("/employees/stats/departments").json()["items"]

    assert items == [
        {"department": "Engineering", "employee_count": 2, "total_salary": 300},
        {"department": "Sales", "employee_count": 1, "total_salary": 300},
    ]
