import os

# Database
DATABASE_URL = os.getenv("DB_URL", "sqlite:///./studios.db")

# Provider
GEOCODE_BASE_URL = os.getenv("GEOCODE_BASE_URL", "https://maps.googleapis.com/maps/api/geocode/json")
API_KEY_ENV = "GOOGLE_GEOCODE_API_KEY"
REQUEST_TIMEOUT = float(os.getenv("GEOCODE_TIMEOUT", "10"))
USER_AGENT = "StudioGeocoder/1.0"

# Batch queue pacing (seconds)
BATCH_SIZE = int(os.getenv("GEOCODE_BATCH_SIZE", "5"))
INTER_REQUEST_DELAY = float(os.getenv("GEOCODE_REQUEST_DELAY", "2"))
INTER_BATCH_DELAY = float(os.getenv("GEOCODE_BATCH_DELAY", "5"))
BASE_BACKOFF = float(os.getenv("GEOCODE_BASE_BACKOFF", "30"))
MAX_RETRIES = int(os.getenv("GEOCODE_MAX_RETRIES", "3"))
MAX_PENDING = int(os.getenv("GEOCODE_MAX_PENDING", "10000"))

# Cache
CACHE_TTL = int(os.getenv("GEOCODE_CACHE_TTL", str(60 * 60 * 24)))
FAILURE_TTL = int(os.getenv("GEOCODE_FAILURE_TTL", "300"))
CACHE_MAX_SIZE = 10_000
CACHE_MAX_AGE_DAYS = int(os.getenv("GEOCODE_CACHE_MAX_AGE_DAYS", "7"))

# Montreal coordinates historically written when geocoding was unavailable
PLACEHOLDER_COORDINATES = (45.5017, -73.5673)

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")


def get_api_key():
    """Read the provider key at call time so a missing key fails on use, not on import."""
    return os.getenv(API_KEY_ENV) or None
