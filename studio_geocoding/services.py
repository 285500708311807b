"""Composition root: wires cache, client, resolver, writer, queue and scanner together."""
import time
from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from studio_geocoding.batch.queue import BatchQueue
from studio_geocoding.db.database import create_tables, engine as default_engine
from studio_geocoding.geocoding.cache import ResolutionCache
from studio_geocoding.geocoding.google import GoogleGeocodingClient
from studio_geocoding.geocoding.resolver import AddressResolver
from studio_geocoding.studios.coordinates import CoordinateWriter
from studio_geocoding.studios.scanner import BulkScanner


@dataclass
class GeocodingServices:
    cache: ResolutionCache
    resolver: AddressResolver
    writer: CoordinateWriter
    queue: BatchQueue
    scanner: BulkScanner


def build_services(engine=None, client=None, sleep=time.sleep, **queue_options):
    engine = engine or default_engine
    create_tables(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    cache = ResolutionCache(session_factory=session_factory)
    resolver = AddressResolver(client=client or GoogleGeocodingClient(), cache=cache, sleep=sleep)
    writer = CoordinateWriter(resolver, session_factory=session_factory)
    queue = BatchQueue(writer, sleep=sleep, **queue_options)
    scanner = BulkScanner(session_factory=session_factory)
    return GeocodingServices(cache=cache, resolver=resolver, writer=writer, queue=queue, scanner=scanner)
