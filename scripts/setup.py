#!/usr/bin/env python3
"""Setup script for the travel agency booking API."""

import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from travel_agency.core.config import settings
from travel_agency.core.database import async_session_factory, close_db
from travel_agency.core.timeutils import utcnow
from travel_agency.models.trip import Trip
from travel_agency.schemas.trip import CreateTripRequest
from travel_agency.services.policy_service import Policy, PolicyService
from travel_agency.services.trip_service import TripService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_TRIPS = [
    ("Northern Lights Escape", "Tromso", "Norway", "Adventure", 20, 189900),
    ("Lisbon City Break", "Lisbon", "Portugal", "City", 12, 64900),
    ("Adriatic Family Cruise", "Dubrovnik", "Croatia", "Cruise", 40, 129900),
    ("Alpine Lakes Retreat", "Lucerne", "Switzerland", "Family", 8, 159900),
]


def run_migrations() -> None:
    """Bring the schema up to the latest revision."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Store the default policy and create some sample trips."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        await PolicyService(db).save(Policy.from_settings(settings))

        existing_trips = await db.execute(select(func.count(Trip.id)))
        if existing_trips.scalar() > 0:
            logger.info("Sample data already exists, skipping...")
            return

        trips = TripService(db)
        base_date = utcnow().replace(hour=12, minute=0, second=0, microsecond=0) + timedelta(days=30)
        for i, (title, destination, country, package_type, capacity, price) in enumerate(SAMPLE_TRIPS):
            start = base_date + timedelta(days=i * 7)
            await trips.create_trip(CreateTripRequest(
                title=title,
                destination=destination,
                country=country,
                package_type=package_type,
                start_date=start,
                end_date=start + timedelta(days=5),
                capacity=capacity,
                price_amount=price,
            ))

    logger.info("Sample data created successfully!")


async def seed() -> None:
    try:
        await create_sample_data()
    finally:
        await close_db()


def main() -> None:
    """Main setup function."""
    logger.info("Starting travel agency API setup...")

    try:
        # Alembic runs its own event loop in env.py
        run_migrations()
        asyncio.run(seed())
    except Exception as e:
        logger.error(f"Setup failed: {e}")
        raise

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn travel_agency.main:app --reload")


if __name__ == "__main__":
    main()
