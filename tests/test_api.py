"""HTTP surface: auth, role matrix, error envelope and the main billing flow."""
from tests.conftest import auth_headers


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


async def test_missing_token_is_unauthorized(client):
    response = await client.get("/api/v1/companies")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNAUTHORIZED"


async def test_garbage_token_is_unauthorized(client):
    response = await client.get("/api/v1/companies", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_login(client, admin):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "Manager@WasteCorp.in", "password": "secret123"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["role"] == "admin"

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["email"] == "manager@wastecorp.in"

    bad = await client.post(
        "/api/v1/auth/login", json={"email": "manager@wastecorp.in", "password": "wrong-password"}
    )
    assert bad.status_code == 401


async def test_only_superadmin_creates_users(client, admin, superadmin):
    payload = {"email": "new.clerk@wastecorp.in", "name": "New Clerk", "password": "secret123"}

    denied = await client.post("/api/v1/auth/users", json=payload, headers=auth_headers(admin))
    assert denied.status_code == 403

    created = await client.post("/api/v1/auth/users", json=payload, headers=auth_headers(superadmin))
    assert created.status_code == 201
    assert created.json()["role"] == "employee"

    duplicate = await client.post("/api/v1/auth/users", json=payload, headers=auth_headers(superadmin))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "CONFLICT"


async def test_invoice_role_matrix(client, admin, employee, company):
    payload = {
        "type": "Inward",
        "date": "2024-06-15",
        "company_id": str(company.id),
        "materials": [{"material_name": "Spent Solvent", "quantity": 1, "rate": 100}],
    }

    response = await client.post("/api/v1/invoices", json=payload, headers=auth_headers(admin))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"

    assert (await client.get("/api/v1/invoices", headers=auth_headers(admin))).status_code == 200
    assert (await client.get("/api/v1/invoices", headers=auth_headers(employee))).status_code == 403
    assert (await client.get("/api/v1/dashboard/stats", headers=auth_headers(employee))).status_code == 403


async def test_invoice_billing_flow(client, superadmin, company, make_inward):
    entry = await make_inward(quantity="10")
    headers = auth_headers(superadmin)

    preview = await client.get("/api/v1/invoices/next-number?date=2024-06-15", headers=headers)
    assert preview.json()["invoice_number"] == "INV-202406-0001"

    created = await client.post("/api/v1/invoices", headers=headers, json={
        "type": "Inward",
        "date": "2024-06-15",
        "company_id": str(company.id),
        "inward_entry_ids": [str(entry.id)],
    })
    assert created.status_code == 201
    invoice = created.json()
    assert invoice["invoice_number"] == "INV-202406-0001"
    assert invoice["grand_total"] == 1180.0
    assert invoice["status"] == "pending"

    unbilled = await client.get(f"/api/v1/companies/{company.id}/unbilled-entries", headers=headers)
    assert unbilled.json() == []

    paid = await client.put(
        f"/api/v1/invoices/{invoice['id']}/payment",
        headers=headers,
        json={"payment_received": "1180", "payment_received_on": "2024-07-01"},
    )
    assert paid.json()["status"] == "paid"

    listing = await client.get("/api/v1/invoices?status=paid,partial", headers=headers)
    assert listing.json()["total"] == 1
    assert listing.json()["total_value"] == 1180.0

    printed = await client.get(f"/api/v1/invoices/{invoice['id']}/print", headers=headers)
    assert printed.status_code == 200
    assert printed.headers["content-type"].startswith("text/html")
    assert "INV-202406-0001" in printed.text

    deleted = await client.delete(f"/api/v1/invoices/{invoice['id']}", headers=headers)
    assert deleted.json() == {
        "success": True,
        "message": "Invoice deleted successfully, 1 entries unlinked",
    }

    unbilled = await client.get(f"/api/v1/companies/{company.id}/unbilled-entries", headers=headers)
    assert [e["id"] for e in unbilled.json()] == [str(entry.id)]


async def test_tax_rate_setting_applies_to_next_invoice(client, superadmin, admin, company):
    denied = await client.put("/api/v1/settings/cgst_rate", json={"value": "6"}, headers=auth_headers(admin))
    assert denied.status_code == 403

    updated = await client.put("/api/v1/settings/cgst_rate", json={"value": "6"}, headers=auth_headers(superadmin))
    assert updated.status_code == 200
    assert updated.json()["parsed_value"] == 6.0

    created = await client.post("/api/v1/invoices", headers=auth_headers(superadmin), json={
        "type": "Inward",
        "date": "2024-06-15",
        "company_id": str(company.id),
        "materials": [{"material_name": "ETP Sludge", "quantity": 1, "rate": 1000}],
    })
    assert created.json()["cgst"] == 60.0
    assert created.json()["grand_total"] == 1150.0


async def test_validation_error_envelope(client, superadmin):
    response = await client.post(
        "/api/v1/invoices", json={"type": "Inward"}, headers=auth_headers(superadmin)
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert any(e["field"] == "date" for e in body["error"]["details"]["errors"])


async def test_not_found_envelope(client, admin):
    response = await client.get(
        "/api/v1/invoices/00000000-0000-0000-0000-000000000000", headers=auth_headers(admin)
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_employee_does_not_see_rates(client, employee, admin, company):
    as_employee = await client.get(f"/api/v1/companies/{company.id}", headers=auth_headers(employee))
    assert as_employee.status_code == 200
    assert {m["rate"] for m in as_employee.json()["materials"]} == {None}

    as_admin = await client.get(f"/api/v1/companies/{company.id}", headers=auth_headers(admin))
    assert {m["rate"] for m in as_admin.json()["materials"]} == {100.0, 2500.0}


async def test_employee_records_dispatch_with_invoice_number(client, employee, transporter):
    response = await client.post("/api/v1/outward", headers=auth_headers(employee), json={
        "date": "2024-06-12",
        "cement_company": "UltraCem Works",
        "manifest_number": "OUT-7",
        "transporter_id": str(transporter.id),
        "quantity": 20,
        "unit": "MT",
        "rate": 500,
        "invoice_number": "OUT-INV-7",
    })

    assert response.status_code == 201
    assert response.json()["invoice_number"] == "OUT-INV-7"
    assert response.json()["amount"] == 10000.0


async def test_billed_inward_entry_update_conflicts(client, superadmin, company, make_inward):
    entry = await make_inward(quantity="10")
    headers = auth_headers(superadmin)
    await client.post("/api/v1/invoices", headers=headers, json={
        "type": "Inward",
        "date": "2024-06-15",
        "company_id": str(company.id),
        "inward_entry_ids": [str(entry.id)],
    })

    response = await client.put(f"/api/v1/inward/{entry.id}", headers=headers, json={"quantity": 12})
    assert response.status_code == 409

    response = await client.delete(f"/api/v1/inward/{entry.id}", headers=headers)
    assert response.status_code == 409


async def test_waste_flow_endpoint(client, admin):
    response = await client.get("/api/v1/dashboard/waste-flow?year=2024", headers=auth_headers(admin))
    assert response.status_code == 200
    assert len(response.json()) == 12


async def test_global_stats_routes(client, employee, company, transporter, make_outward):
    headers = auth_headers(employee)
    await make_outward()

    companies = await client.get("/api/v1/companies/stats", headers=headers)
    assert companies.status_code == 200
    assert companies.json()["company_count"] == 1

    transporters = await client.get("/api/v1/transporters/stats", headers=headers)
    assert transporters.status_code == 200
    assert transporters.json()["unbilled_outward_count"] == 1

    summary = await client.get("/api/v1/outward/summary?cement_company=ultracem", headers=headers)
    assert summary.status_code == 200
    assert summary.json()[0]["count"] == 1
    assert summary.json()[0]["transporter_name"] == "Speedy Logistics"
    assert summary.json()[0]["total_quantity"] == 20.0
