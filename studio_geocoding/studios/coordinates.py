import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from studio_geocoding.db.database import SessionLocal, StudioDB
from studio_geocoding.geocoding.exceptions import NoAddressError, StudioNotFoundError
from studio_geocoding.models.geocoding import Success

# Get logger
logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("address", "city", "state", "zip_code", "country")


def build_full_address(studio):
    """Join street, city, region, postal code and country, skipping blanks."""
    parts = []
    for field in ADDRESS_FIELDS:
        value = getattr(studio, field, None)
        if value and value.strip():
            parts.append(value.strip())
    return ", ".join(parts)


class CoordinateWriter:
    """Resolves one studio's address and writes the coordinate pair back to it."""

    def __init__(self, resolver, session_factory=SessionLocal):
        self.resolver = resolver
        self._session_factory = session_factory

    def apply_coordinates(self, studio_id):
        db = self._session_factory()
        try:
            studio = db.query(StudioDB).filter(StudioDB.id == studio_id).first()
            if studio is None:
                raise StudioNotFoundError(studio_id)

            full_address = build_full_address(studio)
            if not full_address:
                raise NoAddressError(studio_id)
            title = studio.title or studio_id

            # Release the read transaction before the provider call
            db.rollback()

            logger.info(f"Geocoding studio {title}: {full_address}")
            result = self.resolver.resolve_address(full_address)
            if not isinstance(result, Success):
                logger.warning(f"Geocoding failed for {title}: {result.reason}")
                return result

            updated = db.query(StudioDB).filter(StudioDB.id == studio_id).update(
                {
                    StudioDB.latitude: result.lat,
                    StudioDB.longitude: result.lng,
                    StudioDB.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
            if updated != 1:
                db.rollback()
                raise StudioNotFoundError(studio_id)
            db.commit()
            logger.info(f"Updated: {title} -> {result.lat}, {result.lng}")
            return result
        except SQLAlchemyError as e:
            logger.error(f"Error writing coordinates for studio {studio_id}: {e}")
            db.rollback()
            raise
        finally:
            db.close()
