#!/usr/bin/env python3
"""Setup script for the fleet booking API: migrate the database and seed a demo fleet."""

import asyncio
import logging
import sys
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from fleet_booking.core.database import async_session_factory, close_db  # noqa: E402
from fleet_booking.models import Driver, Route, Vehicle, VehicleStatus  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_VEHICLES = [
    {"name": "Van 01", "license_plate": "FLT-001", "model": "Ford Transit", "vehicle_type": "van"},
    {"name": "Van 02", "license_plate": "FLT-002", "model": "Mercedes Sprinter", "vehicle_type": "van"},
    {"name": "Sedan 01", "license_plate": "FLT-101", "model": "Toyota Camry", "vehicle_type": "sedan"},
    {
        "name": "Truck 01",
        "license_plate": "FLT-201",
        "model": "Isuzu NPR",
        "vehicle_type": "truck",
        "status": VehicleStatus.MAINTENANCE,
    },
]

SAMPLE_DRIVERS = [
    {"name": "Dana Reyes", "email": "dana.reyes@example.com", "license_number": "DL-4471", "user_id": "driver-dana"},
    {"name": "Sam Okafor", "email": "sam.okafor@example.com", "license_number": "DL-5820", "user_id": "driver-sam"},
]

SAMPLE_ROUTES = [
    {"name": "Airport shuttle", "origin": "Central Depot", "destination": "Airport Terminal 2", "distance_km": 31.5},
    {"name": "Harbour run", "origin": "Central Depot", "destination": "North Harbour", "distance_km": 12.0},
]


def setup_database():
    """Bring the database schema to the latest revision."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a small demo fleet unless vehicles already exist."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing = await db.execute(select(func.count()).select_from(Vehicle))
            if existing.scalar_one() > 0:
                logger.info("Sample data already exists, skipping...")
                return

            db.add_all(Vehicle(**data) for data in SAMPLE_VEHICLES)
            db.add_all(Driver(**data) for data in SAMPLE_DRIVERS)
            db.add_all(Route(**data) for data in SAMPLE_ROUTES)

            await db.commit()
            logger.info(
                "Sample data created successfully!",
                extra={
                    "vehicles": len(SAMPLE_VEHICLES),
                    "drivers": len(SAMPLE_DRIVERS),
                    "routes": len(SAMPLE_ROUTES),
                }
            )

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise

    await close_db()


def main():
    """Main setup function."""
    logger.info("Starting fleet booking API setup...")

    # Alembic's env.py drives its own event loop
    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: uvicorn fleet_booking.main:app --app-dir server --reload")


if __name__ == "__main__":
    main()
