from motor.motor_asyncio import AsyncIOMotorClient
from timekeeper.config import settings


client = AsyncIOMotorClient(settings.MONGODB_URL)
db = client[settings.DATABASE_NAME]
