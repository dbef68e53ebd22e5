"""
Human-readable document numbers backed by the counters table.

The increment happens in the caller's transaction, so a number is only
consumed if the record that uses it is committed.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.models.counter import Counter


async def next_sequence(db: AsyncSession, name: str) -> int:
    """Atomically increment and return the named counter (first value is 1)"""
    result = await db.execute(
        update(Counter)
        .where(Counter.name == name)
        .values(value=Counter.value + 1)
        .returning(Counter.value)
        .execution_options(synchronize_session=False)
    )
    value = result.scalar_one_or_none()
    if value is not None:
        return value

    # First use of this sequence. If another transaction created the row
    # first, only the savepoint is rolled back and the increment is retried.
    try:
        async with db.begin_nested():
            db.add(Counter(name=name, value=1))
    except IntegrityError:
        return await next_sequence(db, name)
    return 1


def _year(now: Optional[datetime]) -> int:
    return (now or datetime.utcnow()).year


async def next_invoice_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    year = _year(now)
    seq = await next_sequence(db, f"invoice:{year}")
    return f"INV/{year}/{seq:04d}"


async def next_warranty_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    year = _year(now)
    seq = await next_sequence(db, f"warranty:{year}")
    return f"WRT/{year}/{seq:04d}"


async def next_order_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    year = _year(now)
    seq = await next_sequence(db, f"order:{year}")
    return f"ORD-{year}{seq:05d}"


async def next_customer_code(db: AsyncSession) -> str:
    return f"CUST{await next_sequence(db, 'customer'):05d}"


async def next_vehicle_code(db: AsyncSession) -> str:
    return f"VEH{await next_sequence(db, 'vehicle'):05d}"


async def next_ticket_number(db: AsyncSession) -> str:
    return f"TKT{await next_sequence(db, 'ticket'):05d}"


async def next_employee_code(db: AsyncSession) -> str:
    return f"EMP{await next_sequence(db, 'employee'):03d}"
