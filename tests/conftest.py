import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studio_geocoding.db.database import Base, StudioDB
from studio_geocoding.geocoding.cache import ResolutionCache
from studio_geocoding.geocoding.google import GoogleGeocodingClient
from studio_geocoding.geocoding.resolver import AddressResolver


def ok_payload(lat, lng, formatted="Somewhere"):
    return {
        "status": "OK",
        "results": [
            {
                "formatted_address": formatted,
                "geometry": {"location": {"lat": lat, "lng": lng}},
            }
        ],
    }


def status_payload(status, message=None):
    payload = {"status": status, "results": []}
    if message:
        payload["error_message"] = message
    return payload


class StubResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, str):
            raise ValueError("not json")
        return self._payload


class StubSession:
    """Stands in for `requests`; replays queued responses, repeating the last one."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, requests.RequestException):
            raise item
        if isinstance(item, StubResponse):
            return item
        return StubResponse(item)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def add_studio(session_factory):
    def _add(studio_id, **fields):
        db = session_factory()
        try:
            db.add(StudioDB(id=studio_id, title=fields.pop("title", studio_id), **fields))
            db.commit()
        finally:
            db.close()
    return _add


@pytest.fixture()
def load_studio(session_factory):
    def _load(studio_id):
        db = session_factory()
        try:
            studio = db.query(StudioDB).filter(StudioDB.id == studio_id).first()
            db.expunge(studio)
            return studio
        finally:
            db.close()
    return _load


@pytest.fixture()
def cache(session_factory):
    return ResolutionCache(session_factory=session_factory)


@pytest.fixture()
def make_resolver(cache):
    def _make(*responses):
        session = StubSession(*responses)
        client = GoogleGeocodingClient(api_key="test-key", session=session)
        return AddressResolver(client=client, cache=cache, sleep=RecordingSleep()), session
    return _make
