"""Errors raised by the geocoding pipeline."""


class GeocodingError(Exception):
    """Base class for every geocoding error."""
    code = "geocoding_error"


class ConfigurationError(GeocodingError):
    """Provider credentials are missing. Fatal, never retried."""
    code = "configuration_error"


class StudioNotFoundError(GeocodingError):
    code = "not_found"

    def __init__(self, studio_id):
        super().__init__(f"Studio {studio_id} not found")
        self.studio_id = studio_id


class NoAddressError(GeocodingError):
    code = "no_address"

    def __init__(self, studio_id):
        super().__init__(f"Studio {studio_id} has no address information")
        self.studio_id = studio_id


class ProviderError(GeocodingError):
    """The provider answered with a non-OK, non-throttling status."""
    code = "provider_error"

    def __init__(self, reason, code=None):
        super().__init__(reason)
        if code is not None:
            self.code = code


class AddressNotResolvedError(ProviderError):
    """The provider understood the request but could not place the address."""
    code = "no_results"


class RateLimitedError(ProviderError):
    """The provider reported that the request quota was exceeded."""
    code = "rate_limited"


class TransportError(ProviderError):
    """The request never got a usable answer (timeout, connection failure)."""
    code = "transport_error"
