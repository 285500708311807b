import logging
from datetime import datetime

from sqlalchemy import and_, func, or_

from studio_geocoding.config import PLACEHOLDER_COORDINATES
from studio_geocoding.db.database import SessionLocal, StudioDB
from studio_geocoding.models.geocoding import GeocodingStatus

# Get logger
logger = logging.getLogger(__name__)


def _has_address():
    columns = (StudioDB.address, StudioDB.city, StudioDB.state, StudioDB.zip_code, StudioDB.country)
    return or_(*[and_(column.isnot(None), func.trim(column) != "") for column in columns])


def _is_placeholder():
    lat, lng = PLACEHOLDER_COORDINATES
    return and_(StudioDB.latitude == lat, StudioDB.longitude == lng)


def _lacks_coordinates():
    return or_(StudioDB.latitude.is_(None), StudioDB.longitude.is_(None), _is_placeholder())


class BulkScanner:
    """Finds active studios that still need geocoding and feeds them to a queue."""

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def find_pending(self):
        db = self._session_factory()
        try:
            rows = (
                db.query(StudioDB.id)
                .filter(StudioDB.is_active.is_(True), _has_address(), _lacks_coordinates())
                .order_by(StudioDB.created_at)
                .all()
            )
            return [row.id for row in rows]
        finally:
            db.close()

    def scan_and_enqueue(self, queue):
        pending = self.find_pending()
        logger.info(f"Found {len(pending)} studios needing geocoding")
        if not pending:
            return 0
        accepted = queue.enqueue_many(pending)
        if accepted < len(pending):
            logger.warning(f"Queue full: only {accepted}/{len(pending)} studios enqueued")
        return accepted

    def reset_placeholder_coordinates(self):
        """Clear coordinates equal to the historical fallback so the studios get rescanned."""
        db = self._session_factory()
        try:
            count = db.query(StudioDB).filter(_is_placeholder()).update(
                {
                    StudioDB.latitude: None,
                    StudioDB.longitude: None,
                    StudioDB.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
            db.commit()
            logger.info(f"Cleared {count} placeholder coordinates")
            return count
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def geocoding_status(self):
        db = self._session_factory()
        try:
            active = db.query(StudioDB).filter(StudioDB.is_active.is_(True))
            total = active.count()
            with_coordinates = active.filter(
                StudioDB.latitude.isnot(None), StudioDB.longitude.isnot(None)
            ).count()
            placeholder = active.filter(_is_placeholder()).count()
        finally:
            db.close()

        percentage = round(with_coordinates / total * 100) if total > 0 else 0
        return GeocodingStatus(
            total=total,
            with_coordinates=with_coordinates,
            without_coordinates=total - with_coordinates,
            placeholder=placeholder,
            percentage=percentage,
        )
