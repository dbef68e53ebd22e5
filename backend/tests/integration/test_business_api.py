"""
Integration Tests for customer registration, invoicing and role checks
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from carworld.models.activity_log import ActivityLog
from carworld.models.user import UserRole


def registration_payload(**overrides):
    payload = {
        "full_name": "Sachin Jadhav",
        "mobile_number": "9822012345",
        "email": "sachin.jadhav@gmail.com",
        "address": "12 Shivaji Nagar",
        "city": "Pune",
        "taluka": "Haveli",
        "district": "Pune",
        "state": "Maharashtra",
        "pin_code": "411005",
    }
    payload.update(overrides)
    return payload


class TestCustomerRegistration:
    """Register -> OTP -> verified customer"""

    @pytest.mark.asyncio
    async def test_register_and_verify(self, client: AsyncClient, sales_auth_headers):
        response = await client.post(
            "/api/v1/registration/customers", json=registration_payload(), headers=sales_auth_headers,
        )

        assert response.status_code == 201
        registration = response.json()
        assert registration["reference_code"] == "CUST00001"
        assert registration["whatsapp_sent"] is False
        assert registration["otp"]

        response = await client.post("/api/v1/registration/verify-otp", json={
            "customer_id": registration["customer_id"],
            "otp": registration["otp"],
        }, headers=sales_auth_headers)

        assert response.status_code == 200
        assert response.json()["is_verified"] is True
        assert response.json()["registered_by_role"] == "Sales Executive"

    @pytest.mark.asyncio
    async def test_duplicate_mobile(self, client: AsyncClient, sales_auth_headers):
        await client.post("/api/v1/registration/customers", json=registration_payload(), headers=sales_auth_headers)

        response = await client.post(
            "/api/v1/registration/customers",
            json=registration_payload(email="other@gmail.com"),
            headers=sales_auth_headers,
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_pin_code(self, client: AsyncClient, sales_auth_headers):
        response = await client.post(
            "/api/v1/registration/customers",
            json=registration_payload(pin_code="41100A"),
            headers=sales_auth_headers,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_add_vehicle(self, client: AsyncClient, sales_auth_headers, customer):
        response = await client.post(
            f"/api/v1/registration/customers/{customer.id}/vehicles",
            json={
                "vehicle_number": "MH12AB1234",
                "brand": "Maruti Suzuki",
                "model": "Swift",
                "vehicle_photo": "data:image/png;base64,iVBORw0KGgo=",
            },
            headers=sales_auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["vehicle_code"] == "VEH00001"

        response = await client.get(f"/api/v1/customers/{customer.id}/vehicles", headers=sales_auth_headers)
        assert len(response.json()) == 1


class TestRoleChecks:

    @pytest.mark.asyncio
    async def test_service_staff_cannot_list_customers(self, client: AsyncClient, staff_auth_headers):
        response = await client.get("/api/v1/customers", headers=staff_auth_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_AUTHORIZED"

    @pytest.mark.asyncio
    async def test_sales_cannot_approve(self, client: AsyncClient, sales_auth_headers, customer):
        created = (await client.post("/api/v1/invoices", json={
            "customer_id": customer.id,
            "items": [{"name": "Wiper Blades", "quantity": 1, "unit_price": 900}],
        }, headers=sales_auth_headers)).json()
        await client.post(f"/api/v1/invoices/{created['id']}/submit", headers=sales_auth_headers)

        response = await client.post(f"/api/v1/invoices/{created['id']}/approve", headers=sales_auth_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_activity_logs_admin_only(self, client: AsyncClient, sales_auth_headers, admin_auth_headers):
        assert (await client.get("/api/v1/activity-logs", headers=sales_auth_headers)).status_code == 403
        assert (await client.get("/api/v1/activity-logs", headers=admin_auth_headers)).status_code == 200


class TestInvoiceFlow:
    """Create, submit, approve, pay and download"""

    @pytest.mark.asyncio
    async def test_full_flow(self, client: AsyncClient, db_session, admin_auth_headers, customer):
        response = await client.post("/api/v1/invoices", json={
            "customer_id": customer.id,
            "items": [
                {"name": "Seat Cover", "quantity": 2, "unit_price": 2500},
                {"type": "service", "name": "Fitting", "quantity": 1, "unit_price": 800, "has_gst": False},
            ],
        }, headers=admin_auth_headers)
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["status"] == "draft"
        assert invoice["total_amount"] == 6700

        response = await client.post(f"/api/v1/invoices/{invoice['id']}/submit", headers=admin_auth_headers)
        assert response.json()["status"] == "pending_approval"

        response = await client.post(f"/api/v1/invoices/{invoice['id']}/approve", headers=admin_auth_headers)
        assert response.status_code == 200
        approved = response.json()
        assert approved["status"] == "approved"
        # No WhatsApp credentials in tests, but the attempt is still recorded
        assert approved["whatsapp_sent"] is True

        response = await client.post(f"/api/v1/invoices/{invoice['id']}/payments", json={
            "amount": 6700,
            "payment_mode": "UPI",
            "transaction_id": "UPI123456",
        }, headers=admin_auth_headers)
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"

        response = await client.get(f"/api/v1/invoices/{invoice['id']}/pdf", headers=admin_auth_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

        actions = (await db_session.execute(
            select(ActivityLog.action).where(ActivityLog.resource == "invoice")
        )).scalars().all()
        assert {"create", "submit", "approve", "payment"} <= set(actions)

    @pytest.mark.asyncio
    async def test_public_pdf_needs_token(self, client: AsyncClient, admin_auth_headers, customer):
        invoice = (await client.post("/api/v1/invoices", json={
            "customer_id": customer.id,
            "items": [{"name": "Floor Mats", "quantity": 1, "unit_price": 1500}],
        }, headers=admin_auth_headers)).json()
        await client.post(f"/api/v1/invoices/{invoice['id']}/submit", headers=admin_auth_headers)
        await client.post(f"/api/v1/invoices/{invoice['id']}/approve", headers=admin_auth_headers)

        response = await client.get(f"/api/v1/public/invoices/{invoice['id']}/pdf?token=wrong")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, client: AsyncClient, admin_auth_headers):
        response = await client.get("/api/v1/invoices/00000000-0000-0000-0000-000000000000", headers=admin_auth_headers)

        assert response.status_code == 404
        assert response.json()["success"] is False


class TestNotificationsApi:

    @pytest.mark.asyncio
    async def test_low_stock_alert_reaches_inventory_manager(
        self, client: AsyncClient, admin_auth_headers, product, user_factory, token_headers,
    ):
        response = await client.post("/api/v1/inventory/transactions", json={
            "product_id": product.id,
            "type": "OUT",
            "quantity": 8,
            "reason": "Bulk sale",
        }, headers=admin_auth_headers)
        assert response.status_code == 201

        manager = await user_factory(UserRole.INVENTORY_MANAGER)
        response = await client.get("/api/v1/notifications", headers=token_headers(manager))

        assert response.status_code == 200
        messages = [n["message"] for n in response.json()["items"]]
        assert any("Low stock alert: Seat Cover Premium" in m for m in messages)


class TestHrApi:

    async def create_employee(self, client: AsyncClient, headers) -> dict:
        response = await client.post("/api/v1/employees", json={
            "name": "Ganesh Pawar",
            "role": "Service Staff",
            "contact": "9823098230",
        }, headers=headers)
        assert response.status_code == 201
        return response.json()

    @pytest.mark.asyncio
    async def test_attendance_once_per_day(self, client: AsyncClient, admin_auth_headers):
        employee = await self.create_employee(client, admin_auth_headers)
        mark = {"employee_id": employee["id"], "date": "2025-06-16", "status": "present"}

        first = await client.post("/api/v1/attendance", json=mark, headers=admin_auth_headers)
        again = await client.post("/api/v1/attendance", json={**mark, "status": "late"}, headers=admin_auth_headers)
        next_day = await client.post(
            "/api/v1/attendance", json={**mark, "date": "2025-06-17"}, headers=admin_auth_headers,
        )

        assert first.status_code == 201
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "DUPLICATE_RESOURCE"
        assert next_day.status_code == 201

    @pytest.mark.asyncio
    async def test_leave_decided_only_while_pending(
        self, client: AsyncClient, admin_auth_headers, staff_user, staff_auth_headers,
    ):
        leave = await client.post("/api/v1/leaves", json={
            "leave_type": "sick",
            "start_date": "2025-06-20",
            "end_date": "2025-06-21",
            "reason": "Fever",
        }, headers=staff_auth_headers)
        assert leave.status_code == 201
        leave_id = leave.json()["id"]
        assert leave.json()["user_id"] == staff_user.id

        approved = await client.post(
            f"/api/v1/leaves/{leave_id}/decision", json={"status": "approved"}, headers=admin_auth_headers,
        )
        rejected = await client.post(
            f"/api/v1/leaves/{leave_id}/decision", json={"status": "rejected"}, headers=admin_auth_headers,
        )

        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approval_date"]
        assert rejected.status_code == 409
        assert rejected.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

    @pytest.mark.asyncio
    async def test_staff_cannot_decide_leave(self, client: AsyncClient, staff_auth_headers):
        leave = await client.post("/api/v1/leaves", json={
            "leave_type": "casual",
            "start_date": "2025-06-20",
            "end_date": "2025-06-20",
            "reason": "Family function",
        }, headers=staff_auth_headers)

        response = await client.post(
            f"/api/v1/leaves/{leave.json()['id']}/decision", json={"status": "approved"}, headers=staff_auth_headers,
        )

        assert response.status_code == 403
