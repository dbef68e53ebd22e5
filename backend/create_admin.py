"""
Create (or reset) the shop's Admin account.

Run with: python create_admin.py --email owner@maulicarworld.com --mobile 9876543210
The password is prompted for unless --password is given.
"""
import argparse
import asyncio
import getpass

from sqlalchemy import select, or_

from carworld.core.database import AsyncSessionLocal, init_db, close_db
from carworld.core.security import get_password_hash
from carworld.models.user import User, UserRole


async def create_admin(name: str, email: str, mobile: str, password: str):
    await init_db()

    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(User).where(or_(User.email == email.lower(), User.mobile_number == mobile))
        )
        user = result.scalar_one_or_none()

        if user:
            user.hashed_password = get_password_hash(password)
            user.role = UserRole.ADMIN
            user.is_active = True
            print(f"  Reset: {user.email} is an active Admin again")
        else:
            user = User(
                name=name,
                email=email.lower(),
                mobile_number=mobile,
                hashed_password=get_password_hash(password),
                role=UserRole.ADMIN,
                is_active=True,
            )
            db.add(user)
            print(f"  Created: {user.email} (Admin)")

        await db.commit()

    await close_db()


def main():
    parser = argparse.ArgumentParser(description="Create or reset the Admin user")
    parser.add_argument("--name", default="Shop Owner")
    parser.add_argument("--email", required=True)
    parser.add_argument("--mobile", required=True)
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Admin password: ")
    if len(password) < 6:
        parser.error("Password must be at least 6 characters")

    print("=" * 50)
    print("Creating Admin user...")
    print("=" * 50)
    asyncio.run(create_admin(args.name, args.email, args.mobile, password))


if __name__ == "__main__":
    main()
