import hashlib
import logging
import re
from datetime import datetime, timedelta
from threading import Lock

from cachetools import TTLCache
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from studio_geocoding.config import CACHE_MAX_AGE_DAYS, CACHE_MAX_SIZE, CACHE_TTL, FAILURE_TTL
from studio_geocoding.db.database import GeocodeCacheDB, SessionLocal
from studio_geocoding.models.geocoding import CacheStats, Failure, Success

# Get logger
logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_address(address):
    """Lowercase, trim and collapse whitespace so equivalent spellings share one key."""
    return _WHITESPACE.sub(" ", address.strip().lower())


def address_hash(address):
    return hashlib.sha256(normalize_address(address).encode("utf-8")).hexdigest()


class ResolutionCache:
    """
    Two-tier cache for geocoding results.

    The volatile tier is an in-process TTL cache keyed by the normalized
    address. The persistent tier is the `geocode_cache` table keyed by the
    address hash, and only ever holds successes.
    """

    def __init__(self, session_factory=SessionLocal, ttl=CACHE_TTL, failure_ttl=FAILURE_TTL,
                 maxsize=CACHE_MAX_SIZE, timer=None):
        self._session_factory = session_factory
        kwargs = {"timer": timer} if timer is not None else {}
        self._memory = TTLCache(maxsize=maxsize, ttl=ttl, **kwargs)
        self._failures = TTLCache(maxsize=maxsize, ttl=failure_ttl, **kwargs)
        self._lock = Lock()
        self.memory_hits = 0
        self.memory_misses = 0
        self.failure_hits = 0
        self.database_hits = 0

    def lookup(self, address):
        key = normalize_address(address)

        with self._lock:
            cached = self._memory.get(key)
            if cached is not None:
                self.memory_hits += 1
                logger.debug(f"Memory cache hit for: {address}")
                return cached.model_copy(update={"source": "memory"})
            failure = self._failures.get(key)
            if failure is not None:
                self.failure_hits += 1
                logger.debug(f"Cached failure for: {address}")
                return failure
            self.memory_misses += 1

        entry = self._load_persistent(address)
        if entry is None:
            return None

        result = Success(lat=entry[0], lng=entry[1], formatted_address=entry[2], source="database")
        with self._lock:
            self.database_hits += 1
            self._memory[key] = result
        logger.info(f"Database cache hit for: {address}")
        return result

    def store(self, address, result):
        key = normalize_address(address)

        if isinstance(result, Failure):
            if result.transient:
                return
            with self._lock:
                self._failures[key] = result
            return

        result = result.model_copy(update={"source": "api"})
        with self._lock:
            self._failures.pop(key, None)
            self._memory[key] = result
        self._save_persistent(address, result)

    def _load_persistent(self, address):
        digest = address_hash(address)
        db = self._session_factory()
        try:
            entry = db.query(GeocodeCacheDB).filter(GeocodeCacheDB.address_hash == digest).first()
            if entry is None:
                return None
            entry.updated_at = datetime.utcnow()
            found = (entry.latitude, entry.longitude, entry.formatted_address)
            db.commit()
            return found
        except SQLAlchemyError as e:
            logger.error(f"Error checking database cache for {address}: {e}")
            db.rollback()
            return None
        finally:
            db.close()

    def _save_persistent(self, address, result):
        digest = address_hash(address)
        db = self._session_factory()
        try:
            self._upsert(db, digest, address, result)
            db.commit()
            logger.info(f"Cached geocoding result for: {address}")
        except IntegrityError:
            # Another process inserted the same hash first; update its row instead
            db.rollback()
            try:
                self._upsert(db, digest, address, result)
                db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Error storing in database cache for {address}: {e}")
                db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Error storing in database cache for {address}: {e}")
            db.rollback()
        finally:
            db.close()

    @staticmethod
    def _upsert(db, digest, address, result):
        now = datetime.utcnow()
        entry = db.query(GeocodeCacheDB).filter(GeocodeCacheDB.address_hash == digest).first()
        if entry is None:
            db.add(GeocodeCacheDB(
                address_hash=digest,
                original_address=address,
                formatted_address=result.formatted_address,
                latitude=result.lat,
                longitude=result.lng,
                created_at=now,
                updated_at=now,
            ))
            db.flush()
        else:
            entry.latitude = result.lat
            entry.longitude = result.lng
            entry.formatted_address = result.formatted_address
            entry.updated_at = now

    def purge_stale(self, max_age=timedelta(days=CACHE_MAX_AGE_DAYS)):
        """Delete persistent entries not refreshed within `max_age`. Returns the count removed."""
        cutoff = datetime.utcnow() - max_age
        db = self._session_factory()
        try:
            removed = db.query(GeocodeCacheDB).filter(GeocodeCacheDB.updated_at < cutoff).delete(
                synchronize_session=False
            )
            db.commit()
            logger.info(f"Purged {removed} geocode cache entries older than {max_age.days} days")
            return removed
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def clear(self):
        with self._lock:
            self._memory.clear()
            self._failures.clear()
        db = self._session_factory()
        try:
            removed = db.query(GeocodeCacheDB).delete(synchronize_session=False)
            db.commit()
            logger.info(f"Cache cleared ({removed} database entries removed)")
            return removed
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def stats(self):
        db = self._session_factory()
        try:
            entries = db.query(GeocodeCacheDB).count()
        finally:
            db.close()
        with self._lock:
            return CacheStats(
                memory_hits=self.memory_hits,
                memory_misses=self.memory_misses,
                failure_hits=self.failure_hits,
                memory_size=len(self._memory),
                failure_size=len(self._failures),
                database_hits=self.database_hits,
                database_entries=entries,
            )
