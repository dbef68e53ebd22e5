"""
Seed demo data for a fresh install

Creates one login per staff role (password demo123), a few employees, a
small parts catalogue, a verified customer with a vehicle and an open
service visit. Safe to re-run: records that already exist are skipped.

Run with: python seed_demo_data.py
"""
import asyncio

from sqlalchemy import select

from carworld.core.database import AsyncSessionLocal, init_db, close_db
from carworld.models.customer import Customer, Vehicle
from carworld.models.employee import Employee
from carworld.models.product import Product
from carworld.models.user import User, UserRole
from carworld.schemas.auth import UserCreate
from carworld.schemas.employee import EmployeeCreate
from carworld.schemas.order import ServiceVisitCreate
from carworld.schemas.product import ProductCreate
from carworld.services.hr_service import hr_service
from carworld.services.inventory_service import inventory_service
from carworld.services.sequence_service import next_customer_code, next_vehicle_code
from carworld.services.service_visit_service import service_visit_service
from carworld.services.user_service import user_service


DEMO_PASSWORD = "demo123"

DEMO_USERS = [
    ("Demo Admin", "admin@maulicarworld.com", "9000000001", UserRole.ADMIN),
    ("Demo Manager", "manager@maulicarworld.com", "9000000002", UserRole.MANAGER),
    ("Demo Store Keeper", "inventory@maulicarworld.com", "9000000003", UserRole.INVENTORY_MANAGER),
    ("Demo Sales", "sales@maulicarworld.com", "9000000004", UserRole.SALES_EXECUTIVE),
    ("Demo HR", "hr@maulicarworld.com", "9000000005", UserRole.HR_MANAGER),
    ("Demo Mechanic", "service@maulicarworld.com", "9000000006", UserRole.SERVICE_STAFF),
]

DEMO_EMPLOYEES = [
    ("Ramesh Patil", UserRole.SERVICE_STAFF, "9100000001", 18000),
    ("Suresh Jadhav", UserRole.SALES_EXECUTIVE, "9100000002", 22000),
    ("Anita Kulkarni", UserRole.INVENTORY_MANAGER, "9100000003", 25000),
]

DEMO_PRODUCTS = [
    dict(name="Seat Cover Premium", category="Interior", brand="Autoform", mrp=4500, selling_price=3999,
         stock_qty=25, min_stock_level=5, warranty="6 months", model_compatibility=["Swift", "Baleno"]),
    dict(name="LED Headlight H4", category="Lighting", brand="Philips", mrp=2800, selling_price=2499,
         stock_qty=8, min_stock_level=10, warranty="1 year", model_compatibility=["Universal"]),
    dict(name="Android Stereo 9 inch", category="Electronics", brand="Pioneer", mrp=15000, selling_price=12999,
         stock_qty=4, min_stock_level=2, warranty="1 year", model_compatibility=["Creta", "Nexon"]),
    dict(name="Floor Mat 3D", category="Interior", brand="Elegant", mrp=3200, selling_price=2799,
         stock_qty=0, min_stock_level=5, model_compatibility=["Swift"]),
]


async def seed_users(db):
    for name, email, mobile, role in DEMO_USERS:
        if await user_service.get_by_email(db, email):
            print(f"  Skipped: {email} already exists")
            continue
        await user_service.create_user(db, UserCreate(
            name=name, email=email, mobile_number=mobile, password=DEMO_PASSWORD, role=role,
        ))
        print(f"  Created: {email} ({role.value})")


async def seed_employees(db):
    for name, role, contact, salary in DEMO_EMPLOYEES:
        existing = await db.execute(select(Employee).where(Employee.contact == contact))
        if existing.scalar_one_or_none():
            continue
        employee = await hr_service.create_employee(db, EmployeeCreate(
            name=name, role=role, contact=contact, salary=salary,
        ))
        print(f"  Employee: {employee.employee_code} {employee.name}")


async def seed_products(db):
    for values in DEMO_PRODUCTS:
        existing = await db.execute(select(Product).where(Product.name == values["name"]))
        if existing.scalar_one_or_none():
            continue
        product = await inventory_service.create_product(db, ProductCreate(**values))
        print(f"  Product: {product.name} ({product.status.value})")


async def seed_customer_and_visit(db):
    result = await db.execute(select(Customer).where(Customer.mobile_number == "9200000001"))
    if result.scalar_one_or_none():
        return

    admin = (await db.execute(select(User).where(User.role == UserRole.ADMIN))).scalars().first()
    customer = Customer(
        reference_code=await next_customer_code(db),
        full_name="Vikas Shinde",
        mobile_number="9200000001",
        email="vikas.shinde@example.com",
        address="Station Road",
        city="Pune",
        taluka="Haveli",
        district="Pune",
        state="Maharashtra",
        pin_code="411001",
        is_verified=True,
        registered_by=admin.id if admin else None,
        registered_by_role=admin.role.value if admin else None,
    )
    db.add(customer)
    await db.flush()
    db.add(Vehicle(
        vehicle_code=await next_vehicle_code(db),
        customer_id=customer.id,
        vehicle_number="MH12AB1234",
        brand="Maruti Suzuki",
        model="Swift",
        vehicle_photo="demo/swift.jpg",
    ))
    await db.commit()
    print(f"  Customer: {customer.reference_code} {customer.full_name}")

    visit = await service_visit_service.create_visit(db, ServiceVisitCreate(
        customer_id=customer.id, vehicle_reg="MH12AB1234", notes="Seat cover fitting",
    ))
    print(f"  Service visit: {visit.vehicle_reg} ({visit.status.value})")


async def seed_demo_data():
    print("=" * 50)
    print("Seeding Car World demo data...")
    print("=" * 50)

    await init_db()

    async with AsyncSessionLocal() as db:
        await seed_users(db)
        await seed_employees(db)
        await seed_products(db)
        await seed_customer_and_visit(db)

    await close_db()

    print("=" * 50)
    print(f"Done. Demo logins use password: {DEMO_PASSWORD}")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
