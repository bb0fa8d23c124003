#!/usr/bin/env python3
"""
Centralized Output Manager
Handles all user-facing console output to prevent scattered print statements.
"""

import threading
from typing import Optional, Dict, Any


class OutputManager:
    """
    Centralized output manager for clean, coordinated console output.
    Thread-safe singleton that prevents output conflicts between crawl workers.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, quiet_mode: bool = False):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, quiet_mode: bool = False):
        if self._initialized:
            return

        self.quiet_mode = quiet_mode
        self._output_lock = threading.Lock()
        self._initialized = True

    def _print(self, message: str, end: str = "\n", flush: bool = True):
        """Thread-safe print with optional quiet mode."""
        if self.quiet_mode:
            return

        with self._output_lock:
            print(message, end=end, flush=flush)

    def startup_banner(self):
        """Display startup banner."""
        self._print("============================================================")
        self._print("              🚗 Starting PakWheels Listing Crawler")
        self._print("============================================================")

    def crawl_start(self, start_url: str, results_wanted: int, max_pages: int):
        """Display crawl parameters."""
        self._print(f"\n🔍 Starting scrape from: {start_url}")
        self._print(f"   • Target: {results_wanted} listings, at most {max_pages} pages")
        self._print("------------------------------------------------------------")

    def page_result(self, page_no: int, listing_count: int, saved: int):
        """Display listings found on one page."""
        self._print(f"📄 Page {page_no}: Found {listing_count} car listings (saved so far: {saved})")

    def batch_pushed(self, batch_size: int, total: int):
        """Display a flushed batch."""
        self._print(f"💾 Pushed batch of {batch_size}. Total saved: {total}")

    def identity_retired(self, identity_id: int, reason: str):
        """Display an identity retirement."""
        self._print(f"🛑 Identity #{identity_id} retired ({reason}), rotating")

    def session_summary(self, summary_data: Dict[str, Any]):
        """Display final session summary."""
        self._print("\n" + "=" * 60)
        self._print(f"{'📈 Crawl Summary':^60}")
        self._print("=" * 60)
        self._print(f"   • Listings saved: {summary_data.get('saved', 0)}")
        self._print(f"   • Listings skipped (incomplete): {summary_data.get('skipped', 0)}")
        self._print(f"   • Pages visited: {summary_data.get('pages_visited', 0)}")
        self._print(f"   • Batches pushed: {summary_data.get('batches_flushed', 0)}")
        abandoned = summary_data.get('abandoned_urls') or []
        if abandoned:
            self._print(f"   • Abandoned URLs: {len(abandoned)}")
        unflushed = summary_data.get('unflushed_records') or 0
        if unflushed:
            self._print(f"   • Listings not stored (sink failure): {unflushed}")
        self._print(f"   • Stopped because: {summary_data.get('stop_reason', 'unknown')}")
        duration = summary_data.get('duration_seconds')
        if duration is not None:
            self._print("-" * 60)
            self._print(f"⏱️  Crawl completed in {duration:.1f} seconds")
        self._print("=" * 60)

    def error(self, message: str):
        """Display error message."""
        self._print(f"❌ {message}")

    def warning(self, message: str):
        """Display warning message."""
        self._print(f"⚠️ {message}")

    def success(self, message: str):
        """Display success message."""
        self._print(f"✅ {message}")

    def info(self, message: str):
        """Display info message."""
        self._print(f"ℹ️ {message}")


# Global instance
_output_manager: Optional[OutputManager] = None

def get_output_manager(quiet_mode: bool = False) -> OutputManager:
    """Get the global OutputManager instance."""
    global _output_manager
    if _output_manager is None:
        _output_manager = OutputManager(quiet_mode)
    return _output_manager
