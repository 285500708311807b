from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from datetime import timedelta
import logging

from studio_geocoding.config import CACHE_MAX_AGE_DAYS
from studio_geocoding.geocoding.exceptions import (
    AddressNotResolvedError,
    ConfigurationError,
    GeocodingError,
    NoAddressError,
    RateLimitedError,
    StudioNotFoundError,
    TransportError,
)
from studio_geocoding.logs import setup_logging
from studio_geocoding.models.geocoding import Failure
from studio_geocoding.services import build_services

logger = logging.getLogger(__name__)

# HTTP status for each geocoding error; first matching class wins
ERROR_STATUS = [
    (ConfigurationError, 503),
    (StudioNotFoundError, 404),
    (NoAddressError, 422),
    (RateLimitedError, 429),
    (TransportError, 502),
    (AddressNotResolvedError, 400),
    (GeocodingError, 502),
]


class GeocodeRequest(BaseModel):
    address: str


class BatchGeocodeRequest(BaseModel):
    addresses: List[str]


def serialize_result(address, result):
    if isinstance(result, Failure):
        return {
            "success": False,
            "address": address,
            "error": result.reason,
            "code": result.code.value
        }
    return {
        "success": True,
        "address": address,
        "location": {"lat": result.lat, "lng": result.lng},
        "formatted_address": result.formatted_address,
        "cached": result.source != "api",
        "source": result.source
    }


def error_status(exc):
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 500


async def geocoding_error_handler(request: Request, exc: GeocodingError):
    status_code = error_status(exc)
    if isinstance(exc, ConfigurationError):
        logger.error(f"Geocoding unavailable: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"success": False, "error": str(exc), "code": exc.code}}
    )


def get_services(request: Request):
    return request.app.state.services


def create_app(services=None):
    """
    Build the API. Services are created on startup unless passed in,
    so importing this module never touches the database.
    """

    @asynccontextmanager
    async def lifespan(app):
        if getattr(app.state, "services", None) is None:
            setup_logging()
            app.state.services = build_services()
        yield

    app = FastAPI(
        title="Studio Geocoding API",
        description="Address resolution and bulk geocoding for studio listings",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.services = services
    app.add_exception_handler(GeocodingError, geocoding_error_handler)

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Studio Geocoding API"}

    @app.post("/geocode")
    def geocode(body: GeocodeRequest, services=Depends(get_services)):
        """Resolve a single address through the cache and, on a miss, the provider."""
        try:
            result = services.resolver.resolve_address(body.address)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        if isinstance(result, Failure):
            raise result.to_exception()
        return serialize_result(body.address, result)

    @app.post("/geocode/batch")
    def geocode_batch(body: BatchGeocodeRequest, services=Depends(get_services)):
        try:
            results = services.resolver.resolve_many(body.addresses)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {
            "success": True,
            "results": [serialize_result(address, result) for address, result in zip(body.addresses, results)]
        }

    @app.post("/studios/{studio_id}/geocode")
    def geocode_studio(studio_id: str, services=Depends(get_services)):
        """Geocode one studio right away and write its coordinates."""
        try:
            result = services.writer.apply_coordinates(studio_id)
        except GeocodingError:
            raise
        except Exception as e:
            logger.error(f"Error geocoding studio {studio_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        if isinstance(result, Failure):
            raise result.to_exception()
        return {
            "success": True,
            "studio_id": studio_id,
            "location": {"lat": result.lat, "lng": result.lng},
            "formatted_address": result.formatted_address
        }


    @app.post("/studios/{studio_id}/geocode/queue", status_code=202)
    def queue_studio(studio_id: str, services=Depends(get_services)):
        if not services.queue.enqueue(studio_id):
            raise HTTPException(status_code=503, detail="Geocoding queue is full")
        return {"queued": True, "studio_id": studio_id, **queue_payload(services)}

    @app.post("/admin/geocoding/scan", status_code=202)
    def scan(services=Depends(get_services)):
        """Find every studio without usable coordinates and queue it."""
        try:
            queued = services.scanner.scan_and_enqueue(services.queue)
        except Exception as e:
            logger.error(f"Error starting geocoding scan: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"queued": queued, **queue_payload(services)}

    @app.get("/admin/geocoding/queue")
    def queue_status(services=Depends(get_services)):
        return services.queue.status().model_dump()

    @app.delete("/admin/geocoding/queue")
    def clear_queue(services=Depends(get_services)):
        return {"cleared": services.queue.clear(), **queue_payload(services)}

    @app.get("/admin/geocoding/status")
    def coverage(services=Depends(get_services)):
        return services.scanner.geocoding_status().model_dump()

    @app.post("/admin/geocoding/reset-placeholders")
    def reset_placeholders(services=Depends(get_services)):
        return {"cleared": services.scanner.reset_placeholder_coordinates()}

    @app.get("/admin/geocoding/cache")
    def cache_stats(services=Depends(get_services)):
        return {"cache": services.cache.stats().model_dump(), **queue_payload(services)}

    @app.delete("/admin/geocoding/cache")
    def clear_cache(services=Depends(get_services)):
        return {"removed": services.cache.clear()}

    @app.post("/admin/geocoding/cache/purge")
    def purge_cache(max_age_days: int = CACHE_MAX_AGE_DAYS, services=Depends(get_services)):
        if max_age_days < 0:
            raise HTTPException(status_code=400, detail="max_age_days cannot be negative")
        return {"removed": services.cache.purge_stale(timedelta(days=max_age_days))}

    return app


def queue_payload(services):
    status = services.queue.status()
    return {"state": status.state, "pending_count": status.pending_count}


app = create_app()
