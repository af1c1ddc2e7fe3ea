#!/usr/bin/env python3
"""
Seed the database with sample users and bills for local development.

Usage:
  python scripts/seed_data.py [--users 10] [--bills 40] [--reset]
  # Requires DATABASE_URL in .env (or export)

Existing rows are kept unless --reset is given. Seeded assignments never
exceed MAX_BILLS_PER_USER.
"""
import argparse
import asyncio
import os
import random
import sys
from datetime import timedelta

from dotenv import load_dotenv

# Load .env from project root
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(_root, ".env"))

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import delete

from app.config import settings
from app.database import AsyncSessionLocal, init_db, close_db
from app.models import Bill, BillStage, User
from app.services.user_service import UserService
from app.utils.time import get_utc_now

FIRST_NAMES = ["John", "Jane", "Alice", "Bob", "Charlie", "Diana", "Eve", "Frank", "Grace", "Henry", "Ivy", "Jack"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Wilson", "Taylor"]

# Stages that imply the bill has been submitted at some point
SUBMITTED_OR_LATER = {
    BillStage.SUBMITTED, BillStage.APPROVED, BillStage.PAYING,
    BillStage.ON_HOLD, BillStage.REJECTED, BillStage.PAID,
}


async def seed(user_count: int, bill_count: int, reset: bool) -> None:
    await init_db()
    rng = random.Random()
    now = get_utc_now()

    async with AsyncSessionLocal() as db:
        if reset:
            await db.execute(delete(Bill))
            await db.execute(delete(User))

        users = []
        for i in range(user_count):
            first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
            users.append(await UserService.create_user(
                db,
                name=f"{first} {last}",
                email=f"{first.lower()}.{last.lower()}{i}.{rng.randrange(10**6)}@example.com",
                auto_commit=False,
            ))

        load = {u.id: 0 for u in users}
        for i in range(bill_count):
            bill_date = (now - timedelta(days=rng.uniform(0, 365))).date()
            stage = rng.choice(list(BillStage))
            submitted_at = None
            if stage in SUBMITTED_OR_LATER:
                submitted_at = now - timedelta(days=rng.uniform(0, 30))

            open_users = [uid for uid, n in load.items() if n < settings.MAX_BILLS_PER_USER]
            assignee = rng.choice(open_users) if open_users and rng.random() < 0.5 else None
            if assignee is not None:
                load[assignee] += 1

            db.add(Bill(
                bill_reference=f"BILL-{now:%y%m%d%H%M%S}-{i + 1:04d}",
                bill_date=bill_date,
                stage=stage,
                submitted_at=submitted_at,
                assigned_to_id=assignee,
            ))

        await db.commit()

    await close_db()
    print(f"Seeded {user_count} users and {bill_count} bills.")


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--users", type=int, default=10)
    parser.add_argument("--bills", type=int, default=40)
    parser.add_argument("--reset", action="store_true", help="Delete existing users and bills first")
    args = parser.parse_args()
    asyncio.run(seed(args.users, args.bills, args.reset))


if __name__ == "__main__":
    main()
