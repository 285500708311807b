from sqlalchemy import create_engine, Column, String, Float, Boolean, DateTime, Text
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
import logging

from studio_geocoding.config import DATABASE_URL

# Get logger
logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow():
    return datetime.utcnow()


# Studio directory entry; only the address and coordinate columns matter here
class StudioDB(Base):
    __tablename__ = "studios"
    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    country = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


# Persistent tier of the resolution cache, keyed by the normalized address hash
class GeocodeCacheDB(Base):
    __tablename__ = "geocode_cache"
    address_hash = Column(String(64), primary_key=True, unique=True, index=True)
    original_address = Column(Text, nullable=False)
    formatted_address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False, index=True)


def build_engine(url=DATABASE_URL, **kwargs):
    """Create an engine; SQLite connections are shared with the drain thread."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, **kwargs)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(bind=None):
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created (if they didn't exist previously).")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
