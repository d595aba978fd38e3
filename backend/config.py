import os
from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "creator_platform")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
SNAPSHOT_COLLECTION = os.getenv("SNAPSHOT_COLLECTION", "audiencedemographicsnapshots")
USER_COLLECTION = os.getenv("USER_COLLECTION", "users")

# Clamped to 1..15 minutes
CACHE_TTL_SECONDS = max(60, min(15 * 60, int(os.getenv("CACHE_TTL_SECONDS", "300"))))
# 0 disables caching
CACHE_MAX_SIZE = max(0, int(os.getenv("CACHE_MAX_SIZE", "500")))

COVERAGE_REGION_LIMIT = int(os.getenv("COVERAGE_REGION_LIMIT", "6"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
