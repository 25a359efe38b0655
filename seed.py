"""
Seed script -- populates the promotion catalog for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 default promotion (auto-applied to every new trip)
  - 3 optional promotions (percent with cap, flat, inactive)
"""

import asyncio

from sqlalchemy import text

from src.domain.enums import DiscountType
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import PromotionModel


PROMOTIONS = [
    {
        "id": "6f1c3a52-8d2e-4b7a-9c1f-0a1b2c3d4e01",
        "name": "Welcome Ride",
        "code": "WELCOME20",
        "description": "20% off your ride, up to $3.00",
        "discount_type": DiscountType.PERCENT,
        "value": 20,
        "max_discount_amount": 3.00,
        "is_default": True,
        "is_active": True,
    },
    {
        "id": "6f1c3a52-8d2e-4b7a-9c1f-0a1b2c3d4e02",
        "name": "Five Off",
        "code": "FIVEOFF",
        "description": "$5.00 off any ride",
        "discount_type": DiscountType.FLAT,
        "value": 5.00,
        "max_discount_amount": None,
        "is_default": False,
        "is_active": True,
    },
    {
        "id": "6f1c3a52-8d2e-4b7a-9c1f-0a1b2c3d4e03",
        "name": "Night Owl",
        "code": "NIGHT15",
        "description": "15% off late-night rides",
        "discount_type": DiscountType.PERCENT,
        "value": 15,
        "max_discount_amount": None,
        "is_default": False,
        "is_active": True,
    },
    {
        "id": "6f1c3a52-8d2e-4b7a-9c1f-0a1b2c3d4e04",
        "name": "Summer Special",
        "code": "SUMMER10",
        "description": "Expired seasonal offer",
        "discount_type": DiscountType.FLAT,
        "value": 10.00,
        "max_discount_amount": None,
        "is_default": False,
        "is_active": False,
    },
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM promotions"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        for p in PROMOTIONS:
            session.add(PromotionModel(**p))
        await session.flush()
        print(f"  Created {len(PROMOTIONS)} promotions")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
