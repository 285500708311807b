import requests
import logging

from studio_geocoding.config import GEOCODE_BASE_URL, REQUEST_TIMEOUT, USER_AGENT, get_api_key
from studio_geocoding.geocoding.exceptions import ConfigurationError
from studio_geocoding.models.geocoding import Failure, FailureCode, Success

# Get logger
logger = logging.getLogger(__name__)

# Provider statuses that are not "OK"
STATUS_CODES = {
    "ZERO_RESULTS": FailureCode.NO_RESULTS,
    "OVER_QUERY_LIMIT": FailureCode.RATE_LIMITED,
    "OVER_DAILY_LIMIT": FailureCode.RATE_LIMITED,
    "REQUEST_DENIED": FailureCode.DENIED,
    "INVALID_REQUEST": FailureCode.INVALID_REQUEST,
}


class GoogleGeocodingClient:
    """
    Thin wrapper around one Google Geocoding API call.

    Every call issues exactly one HTTP request; retrying is left to the batch
    queue so an interactive lookup never sits through a backoff sequence.
    """

    def __init__(self, api_key=None, base_url=GEOCODE_BASE_URL, timeout=REQUEST_TIMEOUT, session=None):
        self._api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._session = session or requests

    @property
    def api_key(self):
        return self._api_key or get_api_key()

    def resolve(self, address):
        api_key = self.api_key
        if not api_key:
            raise ConfigurationError("GOOGLE_GEOCODE_API_KEY is not configured")

        params = {
            "address": address,
            "key": api_key
        }

        headers = {
            "User-Agent": USER_AGENT
        }

        try:
            logger.info(f"Calling Google Geocoding API for: {address}")
            response = self._session.get(
                self.base_url,
                params=params,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"Network error geocoding {address}: {e}")
            return Failure(reason=f"Transport error: {e}", code=FailureCode.TRANSPORT_ERROR)

        if response.status_code == 429:
            logger.warning(f"Rate limit exceeded (HTTP 429) for {address}")
            return Failure(reason="Too many requests (HTTP 429)", code=FailureCode.RATE_LIMITED)

        if response.status_code != 200:
            logger.warning(f"Geocoding HTTP error ({response.status_code}) for {address}")
            return Failure(reason=f"HTTP {response.status_code}", code=FailureCode.PROVIDER_ERROR)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Unreadable geocoding response for {address}: {e}")
            return Failure(reason="Invalid JSON from provider", code=FailureCode.PROVIDER_ERROR)

        if not isinstance(data, dict):
            logger.error(f"Unexpected geocoding response for {address}: {type(data).__name__}")
            return Failure(reason="Unexpected response shape from provider", code=FailureCode.PROVIDER_ERROR)

        return self._parse(address, data)

    def _parse(self, address, data):
        status = data.get("status", "UNKNOWN_ERROR")
        results = data.get("results") or []

        if status == "OK" and results:
            try:
                first = results[0]
                location = (first.get("geometry") or {}).get("location") or {}
                success = Success(
                    lat=location["lat"],
                    lng=location["lng"],
                    formatted_address=first.get("formatted_address"),
                )
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                logger.error(f"Malformed location in geocoding result for {address}: {e}")
                return Failure(reason="Malformed location in provider result", code=FailureCode.PROVIDER_ERROR)
            logger.info(f"Geocoded successfully: {address} -> {success.lat}, {success.lng}")
            return success

        code = STATUS_CODES.get(status, FailureCode.PROVIDER_ERROR)
        if status == "OK":
            code = FailureCode.NO_RESULTS
        reason = f"Geocoding failed: {status}"
        if data.get("error_message"):
            reason = f"{reason} ({data['error_message']})"
        logger.warning(f"Geocoding failed for {address}: {reason}")
        return Failure(reason=reason, code=code)
