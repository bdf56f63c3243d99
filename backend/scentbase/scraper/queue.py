"""Background scrape queue.

One manager per process drains an ordered list of URLs through the perfume
scraper, one at a time. A rate-limited URL goes back to the front of the
queue and the worker pauses; after ``max_rate_limits`` consecutive hits the
worker stops itself and leaves the URL queued for an operator to restart.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Deque, Iterable, Optional, Set

from scentbase.core.config import Settings, settings as default_settings
from scentbase.db.base import utc_now
from scentbase.schemas.scraper import (
    EnqueueResult,
    QueueError,
    QueueStatus,
    StartResult,
    StopResult,
    UrlCheckResult,
)
from scentbase.scraper.errors import FetchError, ScrapeValidationError
from scentbase.scraper.perfume_scraper import PerfumeScraper
from scentbase.scraper.utils.urls import unique_valid_urls
from scentbase.services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

RUN_LOGGER = "scentbase.scraper"


@dataclass
class QueueState:
    pending: Deque[str] = field(default_factory=deque)
    processing: bool = False
    current: Optional[str] = None
    processed_count: int = 0
    failed_count: int = 0
    total_enqueued: int = 0
    started_at: Optional[datetime] = None
    recent_errors: Deque[QueueError] = field(default_factory=deque)


class ScrapeQueueManager:
    """Single-flight background worker over a FIFO of product URLs."""

    def __init__(
        self,
        scraper: PerfumeScraper,
        store: CatalogStore,
        *,
        item_delay: float = 15.0,
        rate_limit_pause: float = 120.0,
        max_rate_limits: int = 3,
        recent_errors: int = 50,
        status_errors: int = 10,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        log_dir: Optional[Path] = None,
    ):
        self._scraper = scraper
        self._store = store
        self._item_delay = item_delay
        self._rate_limit_pause = rate_limit_pause
        self._max_rate_limits = max_rate_limits
        self._recent_errors = recent_errors
        self._status_errors = status_errors
        self._sleep = sleep
        self._clock = clock
        self._log_dir = log_dir
        self._state = self._new_state()
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        scraper: PerfumeScraper,
        store: CatalogStore,
        config: Settings = default_settings,
    ) -> "ScrapeQueueManager":
        return cls(
            scraper,
            store,
            item_delay=config.QUEUE_ITEM_DELAY,
            rate_limit_pause=config.QUEUE_RATE_LIMIT_PAUSE,
            max_rate_limits=config.QUEUE_MAX_RATE_LIMITS,
            recent_errors=config.QUEUE_RECENT_ERRORS,
            status_errors=config.QUEUE_STATUS_ERRORS,
            log_dir=Path(config.SCRAPER_LOG_DIR) if config.SCRAPER_LOG_DIR else None,
        )

    def _new_state(self) -> QueueState:
        return QueueState(recent_errors=deque(maxlen=self._recent_errors))

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def running(self) -> bool:
        """True while a drain task exists and has not finished."""
        return self._task is not None and not self._task.done()

    async def _stored_urls(self) -> Set[str]:
        try:
            return set(await self._store.get_all_source_urls())
        except Exception as e:
            logger.warning(f"Could not fetch existing URLs, proceeding without duplicate check: {e}")
            return set()

    async def check(self, urls: Iterable[str]) -> UrlCheckResult:
        """Split URLs into already-stored and new, without queueing anything."""
        valid = unique_valid_urls(urls)
        stored = await self._stored_urls()
        existing = [u for u in valid if u in stored]
        new_urls = [u for u in valid if u not in stored]
        return UrlCheckResult(
            total=len(valid),
            existing_count=len(existing),
            new_count=len(new_urls),
            existing=existing,
            new_urls=new_urls,
        )

    async def enqueue(self, urls: Iterable[str]) -> EnqueueResult:
        """Append URLs not already pending, in flight, or stored. Does not start draining."""
        candidates = unique_valid_urls(urls)
        known = set(self._state.pending)
        if self._state.current:
            known.add(self._state.current)
        known |= await self._stored_urls()

        # State may have been replaced by clear() while we awaited the store
        state = self._state
        new_urls = [u for u in candidates if u not in known and u not in state.pending]
        state.pending.extend(new_urls)
        state.total_enqueued = len(state.pending) + state.processed_count

        skipped = len(candidates) - len(new_urls)
        logger.info(f"Added {len(new_urls)} URLs to queue ({skipped} duplicates skipped)")
        return EnqueueResult(added=len(new_urls), skipped=skipped, queue_size=len(state.pending))

    def start(self) -> StartResult:
        """Kick off the drain loop in the background and return immediately."""
        state = self._state
        if state.processing:
            return StartResult(started=False, message="Queue already processing", queue_size=len(state.pending))
        if self.running:
            return StartResult(
                started=False,
                message="Queue is stopping, wait for the current URL to finish",
                queue_size=len(state.pending),
            )
        if not state.pending:
            return StartResult(started=False, message="Queue is empty", queue_size=0)

        state.processing = True
        state.started_at = self._clock()
        state.recent_errors.clear()
        logger.info(f"Starting queue processing: {len(state.pending)} URLs")
        self._task = asyncio.create_task(self._drain(state), name="scrape-queue")
        return StartResult(started=True, message="Queue processing started", queue_size=len(state.pending))

    def stop(self) -> StopResult:
        """Ask the loop to exit at its next iteration boundary."""
        self._state.processing = False
        logger.info("Queue processing stopped")
        return StopResult(
            message="Queue processing stopped",
            processed=self._state.processed_count,
            remaining=len(self._state.pending),
        )

    def status(self) -> QueueStatus:
        state = self._state
        errors = list(state.recent_errors)
        return QueueStatus(
            processing=state.processing,
            current=state.current if state.processing else None,
            processed=state.processed_count,
            failed=state.failed_count,
            remaining=len(state.pending),
            total=state.total_enqueued,
            started_at=state.started_at,
            errors=errors[-self._status_errors:] if self._status_errors else [],
        )

    def clear(self) -> None:
        """Forget everything. A loop still finishing its URL keeps the old state."""
        self._state.processing = False
        self._state = self._new_state()
        logger.info("Queue cleared")

    async def join(self) -> None:
        """Wait for the current drain loop, if any, to finish."""
        if self._task is not None:
            await self._task

    async def shutdown(self) -> None:
        """Stop and cancel the drain loop without waiting for the in-flight URL."""
        self.stop()
        if not self.running:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Queue worker cancelled on shutdown")

    def _record_failure(self, state: QueueState, url: str, error: Exception) -> None:
        state.failed_count += 1
        self._record_error(state, url, str(error))

    def _record_error(self, state: QueueState, url: str, message: str) -> None:
        state.recent_errors.append(QueueError(url=url, error=message, time=self._clock()))

    async def _drain(self, state: QueueState) -> None:
        consecutive_rate_limits = 0
        log_handler = self._attach_run_log(state)
        try:
            while state.processing and state.pending:
                url = state.pending.popleft()
                state.current = url

                try:
                    logger.info(f"Processing: {url}")
                    record = await self._scraper.scrape(url)
                    saved = await self._store.add(record)
                    state.processed_count += 1
                    consecutive_rate_limits = 0
                    logger.info(f"Saved: {saved.name}")

                except FetchError as e:
                    if not e.rate_limited:
                        logger.error(f"Failed: {url} - {e}")
                        self._record_failure(state, url, e)
                    else:
                        consecutive_rate_limits += 1
                        logger.warning(
                            f"Rate limit detected ({consecutive_rate_limits}/{self._max_rate_limits})"
                        )
                        # Retry this URL next, before anything else in the batch
                        state.pending.appendleft(url)

                        if consecutive_rate_limits >= self._max_rate_limits:
                            logger.error("Too many rate limits. Stopping queue to prevent blocking.")
                            self._record_error(
                                state,
                                url,
                                f"Rate limited {consecutive_rate_limits} times in a row. "
                                "Queue paused automatically.",
                            )
                            state.processing = False
                            break

                        logger.info(f"Pausing {self._rate_limit_pause:.0f}s after rate limit...")
                        await self._sleep(self._rate_limit_pause)
                        continue

                except ScrapeValidationError as e:
                    logger.warning(f"Skipping invalid data: {url} - {e}")
                    self._record_failure(state, url, e)
                    consecutive_rate_limits = 0

                except Exception as e:
                    logger.error(f"Failed: {url} - {e}", exc_info=True)
                    self._record_failure(state, url, e)

                if state.processing and state.pending:
                    await self._sleep(self._item_delay)
        finally:
            state.processing = False
            state.current = None
            logger.info(
                f"Queue processing complete. Processed: {state.processed_count}, "
                f"Failed: {state.failed_count}, Remaining: {len(state.pending)}"
            )
            self._detach_run_log(log_handler)

    def _attach_run_log(self, state: QueueState) -> Optional[logging.Handler]:
        if self._log_dir is None:
            return None
        started = state.started_at or self._clock()
        log_file = self._log_dir / f"queue_{started:%Y%m%dT%H%M%S}.log"
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_file)
        except OSError as e:
            logger.warning(f"Could not open run log {log_file}, continuing without it: {e}")
            return None
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        run_logger = logging.getLogger(RUN_LOGGER)
        run_logger.addHandler(handler)
        run_logger.setLevel(logging.INFO)
        return handler

    def _detach_run_log(self, handler: Optional[logging.Handler]) -> None:
        if handler is None:
            return
        logging.getLogger(RUN_LOGGER).removeHandler(handler)
        handler.close()
