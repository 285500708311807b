import logging
import time

from studio_geocoding.geocoding.cache import ResolutionCache
from studio_geocoding.geocoding.google import GoogleGeocodingClient

# Get logger
logger = logging.getLogger(__name__)

MAX_ADDRESSES_PER_BATCH = 10
BATCH_REQUEST_DELAY = 0.1


class AddressResolver:
    """Cache lookup, then one provider call on a miss, then cache population."""

    def __init__(self, client=None, cache=None, sleep=time.sleep):
        self.client = client or GoogleGeocodingClient()
        self.cache = cache or ResolutionCache()
        self._sleep = sleep

    def resolve_address(self, address):
        result, _ = self._resolve(address)
        return result

    def resolve_many(self, addresses):
        """
        Resolve a short list of addresses one after another.

        Only provider calls are followed by a pause; cache hits return at once.
        """
        if len(addresses) > MAX_ADDRESSES_PER_BATCH:
            raise ValueError(f"Maximum {MAX_ADDRESSES_PER_BATCH} addresses per batch")

        logger.info(f"Batch geocoding {len(addresses)} addresses")
        results = []
        for address in addresses:
            result, called_provider = self._resolve(address)
            results.append(result)
            if called_provider:
                self._sleep(BATCH_REQUEST_DELAY)
        return results

    def _resolve(self, address):
        if not address or not address.strip():
            raise ValueError("Valid address string is required")

        cached = self.cache.lookup(address)
        if cached is not None:
            return cached, False

        result = self.client.resolve(address)
        self.cache.store(address, result)
        return result, True
