#!/usr/bin/env python3
"""
PakWheels crawl orchestration.

Workers share one frontier of result pages. Each worker takes a page,
borrows an identity from the session pool, waits the rate-limit delay,
fetches, extracts listings in document order and enqueues the next page.
Run-level counters live in a single CrawlState guarded by one condition
variable so the results/pages limits are never evaluated on stale copies.
"""

import logging
import random
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Set

from bs4 import BeautifulSoup

from config.config import BLOCK_INDICATORS, CRAWL_CONFIG, LISTING_SELECTOR, PROXY_CONFIG, BATCH_SIZE
from services.network_requests import PakWheelsClient
from services.proxy_rotation import ProxyManager
from services.session_pool import SessionIdentity, SessionPool
from src.errors import BlockedError, SinkError, TransportError
from src.extractors import extract_listing
from src.models import CrawlSummary, FilterSpec, PageRequest
from src.normalizers import find_next_page
from src.output_manager import get_output_manager
from src.query_builder import build_search_url
from src.storage import BatchedEmitter

logger = logging.getLogger(__name__)


class PageOutcome(Enum):
    DONE = "done"
    BLOCKED = "blocked"
    TRANSPORT_FAILED = "transport_failed"
    NO_IDENTITY = "no_identity"


@dataclass
class RateLimitPolicy:
    """Random pause before each fetch."""
    min_delay: float = 1.0
    max_delay: float = 3.0

    def wait(self):
        if self.max_delay <= 0:
            return
        time.sleep(random.uniform(max(0.0, self.min_delay), self.max_delay))


@dataclass
class CrawlState:
    """Run-wide crawl progress. Only touched while holding ``cond``."""
    results_wanted: int
    max_pages: int
    saved: int = 0
    skipped: int = 0
    pages_visited: int = 0
    in_flight: int = 0
    frontier: Deque[PageRequest] = field(default_factory=deque)
    enqueued_urls: Set[str] = field(default_factory=set)
    abandoned_urls: List[str] = field(default_factory=list)
    terminal: bool = False
    stop_reason: str = ""
    cond: threading.Condition = field(default_factory=threading.Condition, repr=False)

    def check_stop(self) -> Optional[str]:
        if self.terminal:
            return self.stop_reason
        if self.saved >= self.results_wanted:
            return "results_wanted reached"
        if self.pages_visited >= self.max_pages:
            return "max_pages reached"
        if not self.frontier and self.in_flight == 0:
            return "frontier empty"
        return None

    def stop(self, reason: str):
        if not self.terminal:
            self.terminal = True
            self.stop_reason = reason


def looks_blocked(body: str) -> bool:
    lowered = (body or "").lower()
    return any(token in lowered for token in BLOCK_INDICATORS)


class CrawlOrchestrator:
    """
    Crawls PakWheels result pages until a stop condition holds:
    enough listings saved, max pages visited, frontier empty, or every identity blocked.
    """

    def __init__(self, filters: FilterSpec, emitter: BatchedEmitter,
                 client: Optional[PakWheelsClient] = None,
                 session_pool: Optional[SessionPool] = None,
                 max_concurrency: int = CRAWL_CONFIG['max_concurrency'],
                 max_request_retries: int = CRAWL_CONFIG['max_request_retries'],
                 rate_limit: Optional[RateLimitPolicy] = None):
        """
        Initialize orchestrator.

        Args:
            filters: Search filters and run limits
            emitter: Batched emitter receiving validated listings
            client: Fetch client (defaults to PakWheelsClient)
            session_pool: Identity pool (defaults to a direct-connection pool)
            max_concurrency: Pages in flight at once
            max_request_retries: Retries per URL after the first attempt
            rate_limit: Delay policy applied before each fetch
        """
        self.filters = filters
        self.emitter = emitter
        self.client = client or PakWheelsClient(timeout=CRAWL_CONFIG['request_timeout'])
        self.session_pool = session_pool or SessionPool(
            max_sessions=CRAWL_CONFIG['max_sessions'],
            verify_ssl=CRAWL_CONFIG['verify_ssl']
        )
        self.max_concurrency = max(1, max_concurrency)
        self.max_request_retries = max(0, max_request_retries)
        self.rate_limit = rate_limit or RateLimitPolicy(CRAWL_CONFIG['min_delay'], CRAWL_CONFIG['max_delay'])
        self.state = CrawlState(results_wanted=filters.results_wanted, max_pages=filters.max_pages)
        self.output = get_output_manager()

    # ──────────────────────────────────────────────────────────────────
    # Frontier
    # ──────────────────────────────────────────────────────────────────

    def enqueue(self, request: PageRequest) -> bool:
        """Add a page to the frontier unless it was already enqueued in this run."""
        state = self.state
        with state.cond:
            if request.url in state.enqueued_urls:
                logger.debug(f"Skipping already enqueued {request}")
                return False
            state.enqueued_urls.add(request.url)
            state.frontier.append(request)
            state.cond.notify_all()
        return True

    def _next_request(self) -> Optional[PageRequest]:
        """Block until there is a page to fetch or the crawl is over."""
        state = self.state
        with state.cond:
            while True:
                reason = state.check_stop()
                if reason:
                    state.stop(reason)
                    state.cond.notify_all()
                    return None
                if state.frontier:
                    state.in_flight += 1
                    return state.frontier.popleft()
                # Pages in flight may still enqueue a next page
                state.cond.wait()

    def _retry_or_abandon(self, request: PageRequest, error: str):
        state = self.state
        with state.cond:
            if request.attempt < self.max_request_retries and not state.terminal:
                retry = PageRequest(request.url, request.page_no, request.attempt + 1, request.referer)
                state.frontier.appendleft(retry)
                state.cond.notify_all()
                logger.warning(f"Retrying {request} (attempt {retry.attempt + 1}/{self.max_request_retries + 1}): {error}")
                return
            state.abandoned_urls.append(request.url)

        logger.error(f"Request {request.url} failed: {error}")
        self.output.error(f"Giving up on page {request.page_no}: {error}")

    # ──────────────────────────────────────────────────────────────────
    # Page processing
    # ──────────────────────────────────────────────────────────────────

    def _parse(self, body: str):
        """Parse a result page; raises BlockedError for an anti-bot page without listings."""
        soup = BeautifulSoup(body, "lxml")
        nodes = soup.select(LISTING_SELECTOR)
        if not nodes and looks_blocked(body):
            raise BlockedError("block page detected")
        return soup, nodes

    def _retire(self, identity: SessionIdentity, reason: str):
        self.session_pool.retire(identity, reason)
        self.output.identity_retired(identity.identity_id, reason)

    def process_request(self, request: PageRequest) -> PageOutcome:
        """Fetch and process one frontier entry."""
        identity = self.session_pool.acquire()
        if identity is None:
            with self.state.cond:
                self.state.abandoned_urls.append(request.url)
                self.state.stop("identities exhausted")
                self.state.cond.notify_all()
            logger.error(f"No usable identity left for {request.url}")
            self.output.error("All identities are blocked; stopping")
            return PageOutcome.NO_IDENTITY

        try:
            self.rate_limit.wait()
            result = self.client.fetch(request.url, identity, referer=request.referer)
        except TransportError as e:
            if e.taints_identity:
                self._retire(identity, f"HTTP {e.status_code}")
            else:
                self.session_pool.release(identity)
            self._retry_or_abandon(request, str(e))
            return PageOutcome.TRANSPORT_FAILED
        except Exception:
            self.session_pool.release(identity)
            raise

        try:
            soup, nodes = self._parse(result.text)
        except BlockedError as e:
            self._retire(identity, str(e))
            self._retry_or_abandon(request, str(e))
            return PageOutcome.BLOCKED

        self.session_pool.release(identity)
        self._handle_listings(request, soup, nodes)
        return PageOutcome.DONE

    def _handle_listings(self, request: PageRequest, soup, nodes):
        state = self.state

        for node in nodes:
            with state.cond:
                if state.saved >= state.results_wanted:
                    break

            try:
                record = extract_listing(node)
            except Exception as e:
                logger.exception(f"Failed to extract a listing on {request}: {e}")
                record = None

            if record is None:
                with state.cond:
                    state.skipped += 1
                continue

            with state.cond:
                if state.saved >= state.results_wanted:
                    break
                state.saved += 1
            try:
                self.emitter.add(record)
            except SinkError as e:
                # The record stays buffered and is pushed with the next batch
                logger.error(f"Sink push failed on {request}: {e}")
                self.output.error(f"Could not store batch, will retry: {e}")

        with state.cond:
            state.pages_visited += 1
            saved = state.saved
            has_more = (
                bool(nodes)
                and saved < state.results_wanted
                and request.page_no < state.max_pages
                and not state.terminal
            )

        if not nodes:
            logger.warning(f"No listings found on {request}. HTML structure may have changed.")
            self.output.warning(f"Page {request.page_no}: no listings found")
            return

        logger.info(f"Page {request.page_no}: Found {len(nodes)} car listings")
        self.output.page_result(request.page_no, len(nodes), saved)

        if has_more:
            next_url = find_next_page(soup, request.url, request.page_no)
            self.enqueue(PageRequest(next_url, request.page_no + 1, referer=request.url))

    # ──────────────────────────────────────────────────────────────────
    # Workers
    # ──────────────────────────────────────────────────────────────────

    def _worker(self, worker_id: int):
        """Worker thread that processes frontier entries until the crawl stops."""
        pages = 0
        while True:
            request = self._next_request()
            if request is None:
                break
            try:
                logger.debug(f"Worker {worker_id} processing {request}")
                self.process_request(request)
                pages += 1
            except Exception as e:
                logger.exception(f"Worker {worker_id} error processing {request}: {e}")
                with self.state.cond:
                    self.state.abandoned_urls.append(request.url)
            finally:
                with self.state.cond:
                    self.state.in_flight -= 1
                    self.state.cond.notify_all()
        logger.debug(f"Worker {worker_id} finished after {pages} pages")

    def _final_flush(self):
        """Push whatever is still buffered, retrying a failing sink up to the request retry cap."""
        for attempt in range(1, self.max_request_retries + 2):
            try:
                self.emitter.close()
                return
            except SinkError as e:
                logger.error(f"Final flush attempt {attempt} failed: {e}")

        lost = self.emitter.pending
        logger.error(f"{lost} listings could not be stored")
        self.output.error(f"{lost} listings could not be stored")

    def run(self, start_url: str) -> CrawlSummary:
        """
        Crawl from ``start_url`` until a stop condition holds.

        The emitter's final flush always runs, whichever way the crawl ends.
        """
        self.enqueue(PageRequest(start_url, 1))
        logger.info(f"Starting crawl with {self.max_concurrency} workers from {start_url}")

        try:
            with ThreadPoolExecutor(max_workers=self.max_concurrency) as executor:
                futures = [
                    executor.submit(self._worker, worker_id)
                    for worker_id in range(1, self.max_concurrency + 1)
                ]
                for future in as_completed(futures):
                    try:
                        future.result()
                    except Exception as e:
                        logger.error(f"Worker thread failed: {e}")
        finally:
            self._final_flush()

        state = self.state
        with state.cond:
            summary = CrawlSummary(
                saved=state.saved,
                skipped=state.skipped,
                pages_visited=state.pages_visited,
                abandoned_urls=list(state.abandoned_urls),
                batches_flushed=self.emitter.batches_flushed,
                stop_reason=state.stop_reason or "frontier empty",
                seed_failed=state.pages_visited == 0 and start_url in state.abandoned_urls,
                unflushed_records=self.emitter.pending,
            )

        logger.info(f"Scraping complete. Total cars saved: {summary.saved}")
        return summary


def run_crawl(filters: FilterSpec, sink, client: Optional[PakWheelsClient] = None,
              rate_limit: Optional[RateLimitPolicy] = None, **overrides) -> CrawlSummary:
    """
    Run one crawl for a set of search filters, writing listings to ``sink``.

    Keyword overrides: max_concurrency, max_request_retries, max_sessions, batch_size.
    """
    start_url = build_search_url(filters)
    output = get_output_manager()
    output.crawl_start(start_url, filters.results_wanted, filters.max_pages)

    proxy_manager = ProxyManager.from_configuration(filters.proxy_configuration, PROXY_CONFIG)
    session_pool = SessionPool(
        proxy_manager=proxy_manager,
        max_sessions=overrides.get('max_sessions', CRAWL_CONFIG['max_sessions']),
        verify_ssl=CRAWL_CONFIG['verify_ssl']
    )
    emitter = BatchedEmitter(
        sink,
        batch_size=overrides.get('batch_size', BATCH_SIZE),
        on_flush=output.batch_pushed
    )
    orchestrator = CrawlOrchestrator(
        filters,
        emitter,
        client=client,
        session_pool=session_pool,
        max_concurrency=overrides.get('max_concurrency', CRAWL_CONFIG['max_concurrency']),
        max_request_retries=overrides.get('max_request_retries', CRAWL_CONFIG['max_request_retries']),
        rate_limit=rate_limit,
    )

    try:
        return orchestrator.run(start_url)
    finally:
        session_pool.close()
