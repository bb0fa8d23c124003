"""
Exception types shared by the crawler.
"""
from typing import Optional


class ScraperError(Exception):
    """Base error for the crawler."""


class ConfigError(ScraperError):
    """Invalid search input or configuration; the run cannot start."""


class TransportError(ScraperError):
    """A fetch failed before usable markup was received.

    ``kind`` is one of ``timeout``, ``connection``, ``http`` or ``other``.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, kind: str = "other") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.kind = kind

    @property
    def taints_identity(self) -> bool:
        """Status codes that mean the identity itself was rejected."""
        return self.status_code in (401, 403, 429)


class BlockedError(ScraperError):
    """The page was served but is an anti-bot interstitial."""


class CrawlSetupError(ScraperError):
    """The crawl could not get past its seed request."""


class SinkError(ScraperError):
    """The output sink rejected a batch; the records stay buffered."""
