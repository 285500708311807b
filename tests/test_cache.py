from datetime import datetime, timedelta

from studio_geocoding.db.database import GeocodeCacheDB
from studio_geocoding.geocoding.cache import ResolutionCache, address_hash, normalize_address
from studio_geocoding.models.geocoding import Failure, FailureCode, Success


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _entries(session_factory):
    db = session_factory()
    try:
        return db.query(GeocodeCacheDB).all()
    finally:
        db.close()


def test_normalize_collapses_case_and_whitespace():
    assert normalize_address("  123   Main St,\tSpringfield \n") == "123 main st, springfield"


def test_differently_cased_addresses_share_hash():
    assert address_hash(" 123 Main St, Springfield ") == address_hash("123 main st, springfield")
    assert address_hash("123 Main St") != address_hash("124 Main St")
    assert len(address_hash("x")) == 64


def test_success_goes_to_both_tiers(cache, session_factory):
    cache.store("10 Downing St, London", Success(lat=51.5034, lng=-0.1276, formatted_address="10 Downing St"))

    hit = cache.lookup("10 downing st,  london")
    assert hit.lat == 51.5034
    assert hit.source == "memory"

    rows = _entries(session_factory)
    assert len(rows) == 1
    assert rows[0].address_hash == address_hash("10 Downing St, London")
    assert rows[0].original_address == "10 Downing St, London"
    assert rows[0].formatted_address == "10 Downing St"


def test_failure_stays_in_volatile_tier(cache, session_factory):
    cache.store("nowhere", Failure(reason="Geocoding failed: ZERO_RESULTS", code=FailureCode.NO_RESULTS))

    hit = cache.lookup("Nowhere")
    assert isinstance(hit, Failure)
    assert _entries(session_factory) == []

    stats = cache.stats()
    assert stats.failure_hits == 1
    assert stats.memory_hits == 0


def test_transient_failures_are_not_cached(cache):
    cache.store("busy", Failure(reason="Too many requests", code=FailureCode.RATE_LIMITED))
    cache.store("flaky", Failure(reason="timeout", code=FailureCode.TRANSPORT_ERROR))

    assert cache.lookup("busy") is None
    assert cache.lookup("flaky") is None


def test_failure_expires_after_short_ttl(session_factory):
    clock = FakeClock()
    cache = ResolutionCache(session_factory=session_factory, ttl=100, failure_ttl=10, timer=clock)
    cache.store("nowhere", Failure(reason="none", code=FailureCode.NO_RESULTS))
    cache.store("somewhere", Success(lat=1.0, lng=2.0))

    clock.now = 11
    assert cache.lookup("nowhere") is None
    assert cache.lookup("somewhere").source == "memory"


def test_persistent_hit_backfills_memory_and_refreshes_timestamp(cache, session_factory):
    cache.store("1 Infinite Loop, Cupertino", Success(lat=37.33, lng=-122.03, formatted_address="Apple"))

    db = session_factory()
    row = db.query(GeocodeCacheDB).first()
    row.updated_at = datetime.utcnow() - timedelta(days=5)
    db.commit()
    db.close()

    fresh = ResolutionCache(session_factory=session_factory)
    first = fresh.lookup("1 INFINITE LOOP, CUPERTINO")
    second = fresh.lookup("1 infinite loop, cupertino")

    assert first.source == "database"
    assert first.formatted_address == "Apple"
    assert second.source == "memory"
    assert fresh.database_hits == 1
    assert _entries(session_factory)[0].updated_at > datetime.utcnow() - timedelta(minutes=1)


def test_store_overwrites_existing_row(cache, session_factory):
    cache.store("a", Success(lat=1.0, lng=1.0))
    cache.store("A ", Success(lat=2.0, lng=3.0))

    rows = _entries(session_factory)
    assert len(rows) == 1
    assert (rows[0].latitude, rows[0].longitude) == (2.0, 3.0)


def test_purge_stale_removes_only_old_entries(cache, session_factory):
    cache.store("old", Success(lat=1.0, lng=1.0))
    cache.store("new", Success(lat=2.0, lng=2.0))
    db = session_factory()
    old = db.query(GeocodeCacheDB).filter(GeocodeCacheDB.address_hash == address_hash("old")).one()
    old.updated_at = datetime.utcnow() - timedelta(days=8)
    db.commit()
    db.close()

    assert cache.purge_stale(timedelta(days=7)) == 1
    assert [row.original_address for row in _entries(session_factory)] == ["new"]


def test_clear_and_stats(cache):
    cache.store("a", Success(lat=1.0, lng=1.0))
    cache.store("b", Failure(reason="none", code=FailureCode.NO_RESULTS))
    cache.lookup("a")
    cache.lookup("c")

    stats = cache.stats()
    assert stats.memory_hits == 1
    assert stats.memory_misses == 1
    assert stats.failure_hits == 0
    assert stats.memory_size == 1
    assert stats.failure_size == 1
    assert stats.database_entries == 1

    assert cache.clear() == 1
    assert cache.lookup("a") is None
    assert cache.stats().database_entries == 0
