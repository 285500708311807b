import logging
import threading
import time
from collections import deque
from datetime import datetime

from studio_geocoding.config import (
    BASE_BACKOFF,
    BATCH_SIZE,
    INTER_BATCH_DELAY,
    INTER_REQUEST_DELAY,
    MAX_PENDING,
    MAX_RETRIES,
)
from studio_geocoding.geocoding.exceptions import ConfigurationError, NoAddressError, StudioNotFoundError
from studio_geocoding.models.geocoding import BatchSummary, FailureCode, QueueStatus

# Get logger
logger = logging.getLogger(__name__)

IDLE = "idle"
DRAINING = "draining"

# Substrings that mark a provider or transport failure as throttling
THROTTLE_MARKERS = ("too many requests", "rate limit", "over_query_limit", "429", "quota")


def is_throttled(result):
    if result.ok:
        return False
    if result.code == FailureCode.RATE_LIMITED:
        return True
    if result.code in (FailureCode.TRANSPORT_ERROR, FailureCode.PROVIDER_ERROR):
        reason = result.reason.lower()
        return any(marker in reason for marker in THROTTLE_MARKERS)
    return False


class BatchQueue:
    """
    Pending list of studio ids drained by a single background worker.

    Items are processed sequentially in small batches with a pause after
    every request and a longer pause between batches. Throttled items are
    retried in place with a linearly growing backoff. Only one drain worker
    exists at a time no matter how many threads call `enqueue`.
    """

    def __init__(self, writer, batch_size=BATCH_SIZE, inter_request_delay=INTER_REQUEST_DELAY,
                 inter_batch_delay=INTER_BATCH_DELAY, base_backoff=BASE_BACKOFF,
                 max_retries=MAX_RETRIES, max_pending=MAX_PENDING, sleep=time.sleep):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        if min(inter_request_delay, inter_batch_delay, base_backoff) < 0:
            raise ValueError("delays cannot be negative")

        self.writer = writer
        self.batch_size = batch_size
        self.inter_request_delay = inter_request_delay
        self.inter_batch_delay = inter_batch_delay
        self.base_backoff = base_backoff
        self.max_retries = max_retries
        self.max_pending = max_pending
        self._sleep = sleep

        self._pending = deque()
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._state = IDLE
        self._worker = None
        self._summary = BatchSummary()
        self.drains_started = 0

    @property
    def state(self):
        with self._lock:
            return self._state

    def enqueue(self, studio_id):
        return self.enqueue_many([studio_id]) == 1

    def enqueue_many(self, studio_ids):
        accepted = 0
        with self._lock:
            for studio_id in studio_ids:
                if len(self._pending) >= self.max_pending:
                    logger.warning(f"Geocoding queue full ({self.max_pending}); dropping studio {studio_id}")
                    break
                self._pending.append(studio_id)
                accepted += 1
            if accepted:
                logger.info(f"Queued {accepted} studio(s) for geocoding ({len(self._pending)} pending)")
                if self._state == IDLE:
                    self._start_worker()
        return accepted

    def _start_worker(self):
        # Caller holds the lock
        self._state = DRAINING
        self._idle.clear()
        self._summary.started_at = datetime.utcnow()
        self._summary.finished_at = None
        self.drains_started += 1
        self._worker = threading.Thread(target=self._drain, name="geocoding-drain", daemon=True)
        self._worker.start()

    def clear(self):
        """Drop ids not yet picked up by the worker. Items already in flight finish."""
        with self._lock:
            removed = len(self._pending)
            self._pending.clear()
        logger.info(f"Cleared {removed} pending studios from the geocoding queue")
        return removed

    def status(self):
        with self._lock:
            return QueueStatus(
                state=self._state,
                pending_count=len(self._pending),
                pending_ids=list(self._pending),
                summary=self._summary.model_copy(),
            )

    def wait_idle(self, timeout=None):
        return self._idle.wait(timeout)

    def _take_batch(self):
        with self._lock:
            if not self._pending:
                self._state = IDLE
                self._worker = None
                self._summary.finished_at = datetime.utcnow()
                self._idle.set()
                return None
            count = min(self.batch_size, len(self._pending))
            return [self._pending.popleft() for _ in range(count)]

    def _drain(self):
        batch_number = 0
        try:
            while True:
                batch = self._take_batch()
                if batch is None:
                    logger.info("Finished processing pending studios")
                    return
                batch_number += 1
                logger.info(f"Processing batch {batch_number} of {len(batch)} studios...")

                for index, studio_id in enumerate(batch):
                    try:
                        self._process(studio_id)
                    except ConfigurationError as e:
                        # Rest of this batch plus everything still pending
                        dropped = self.clear() + len(batch) - index - 1
                        self._record(failed=1, processed=dropped, skipped=dropped, last_error=str(e))
                        logger.critical(f"Geocoding stopped: {e}. Dropped {dropped} pending studios")
                        break
                    self._sleep(self.inter_request_delay)

                with self._lock:
                    remaining = len(self._pending)
                if remaining:
                    logger.info(f"Waiting {self.inter_batch_delay}s before next batch ({remaining} pending)...")
                    self._sleep(self.inter_batch_delay)
        except Exception as e:
            logger.exception(f"Geocoding drain loop crashed: {e}")
            with self._lock:
                self._pending.clear()
                self._state = IDLE
                self._worker = None
                self._summary.last_error = str(e)
                self._summary.finished_at = datetime.utcnow()
                self._idle.set()

    def _process(self, studio_id):
        self._record(processed=1)
        attempt = 0
        while True:
            try:
                result = self.writer.apply_coordinates(studio_id)
            except (StudioNotFoundError, NoAddressError) as e:
                logger.warning(f"Skipping studio {studio_id}: {e}")
                self._record(skipped=1)
                return
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error(f"Error geocoding studio {studio_id}: {e}")
                self._record(failed=1, last_error=str(e))
                return

            if result.ok:
                self._record(succeeded=1)
                return

            if not is_throttled(result):
                self._record(failed=1, last_error=result.reason)
                return

            self._record(rate_limited=1)
            if attempt >= self.max_retries:
                logger.error(f"Rate limit exceeded after {self.max_retries} retries for studio {studio_id}")
                self._record(failed=1, last_error="Rate limit exceeded after retries")
                return

            attempt += 1
            wait_time = self.base_backoff * attempt
            logger.warning(
                f"Rate limit hit for studio {studio_id}. Waiting {wait_time}s before retry "
                f"(Attempt {attempt}/{self.max_retries})"
            )
            self._sleep(wait_time)

    def _record(self, last_error=None, **counts):
        with self._lock:
            for name, value in counts.items():
                setattr(self._summary, name, getattr(self._summary, name) + value)
            if last_error is not None:
                self._summary.last_error = last_error
