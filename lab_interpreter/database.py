"""MongoDB database connection manager."""

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from typing import Optional

from lab_interpreter.config import settings
from lab_interpreter.core.logging import logger


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and initialize Beanie."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)

        # Import document models
        from lab_interpreter.models.interpretation import AnalysisInterpretation
        from lab_interpreter.models.clinical import Patient, Analysis

        # Patients and analyses belong to the main back office; this
        # service only reads them and updates the last-interpretation pointer
        await init_beanie(
            database=cls.client[settings.DATABASE_NAME],
            document_models=[
                AnalysisInterpretation,
                Patient,
                Analysis,
            ]
        )

        logger.info(f"Connected to MongoDB database: {settings.DATABASE_NAME}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("Closed MongoDB connection")

    @classmethod
    async def ping(cls) -> bool:
        """True if the server answers."""
        if not cls.client:
            return False
        try:
            await cls.client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False
