"""
Unit Tests for document numbering
"""
import pytest
from datetime import datetime
from unittest.mock import MagicMock, patch

from sqlalchemy import insert

from carworld.models.counter import Counter
from carworld.services.sequence_service import (
    next_sequence,
    next_invoice_number,
    next_warranty_number,
    next_order_number,
    next_customer_code,
    next_vehicle_code,
    next_ticket_number,
    next_employee_code,
)


class TestNumberFormats:

    @pytest.mark.asyncio
    async def test_yearly_formats(self, db_session):
        now = datetime(2025, 3, 14)

        assert await next_invoice_number(db_session, now) == "INV/2025/0001"
        assert await next_invoice_number(db_session, now) == "INV/2025/0002"
        assert await next_warranty_number(db_session, now) == "WRT/2025/0001"
        assert await next_order_number(db_session, now) == "ORD-202500001"

    @pytest.mark.asyncio
    async def test_running_codes(self, db_session):
        assert await next_customer_code(db_session) == "CUST00001"
        assert await next_vehicle_code(db_session) == "VEH00001"
        assert await next_ticket_number(db_session) == "TKT00001"
        assert await next_employee_code(db_session) == "EMP001"
        assert await next_employee_code(db_session) == "EMP002"

    @pytest.mark.asyncio
    async def test_new_year_restarts_at_one(self, db_session):
        for _ in range(3):
            await next_invoice_number(db_session, datetime(2025, 12, 31, 23, 59))

        assert await next_invoice_number(db_session, datetime(2026, 1, 1)) == "INV/2026/0001"
        assert await next_invoice_number(db_session, datetime(2025, 12, 31)) == "INV/2025/0004"


class TestNextSequence:

    @pytest.mark.asyncio
    async def test_continues_from_stored_value(self, db_session):
        await db_session.execute(insert(Counter).values(name="customer", value=41))

        assert await next_customer_code(db_session) == "CUST00042"

    @pytest.mark.asyncio
    async def test_counter_created_concurrently_is_incremented(self, db_session):
        # Another transaction inserts the row between our UPDATE and INSERT
        await db_session.execute(insert(Counter).values(name="ticket", value=4))
        real_execute = db_session.execute
        calls = []

        async def execute_missing_row_once(statement, *args, **kwargs):
            calls.append(statement)
            if len(calls) == 1:
                result = MagicMock()
                result.scalar_one_or_none.return_value = None
                return result
            return await real_execute(statement, *args, **kwargs)

        with patch.object(db_session, "execute", new=execute_missing_row_once):
            assert await next_sequence(db_session, "ticket") == 5

        assert await db_session.get(Counter, "ticket") is not None
