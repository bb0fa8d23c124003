"""
HTTP fetch client for PakWheels result pages.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from services.session_pool import SessionIdentity
from src.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Raw markup returned for one URL."""
    url: str
    status_code: int
    text: str


class PakWheelsClient:
    """
    Fetches result pages under a given identity.

    Every call either returns a FetchResult for a 2xx response or raises
    TransportError describing what went wrong.
    """

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def fetch(self, url: str, identity: SessionIdentity, referer: Optional[str] = None) -> FetchResult:
        """
        GET a page with the identity's session.

        Args:
            url: Page URL
            identity: Identity whose session, proxy and headers are used
            referer: Previous page URL, sent as Referer

        Returns:
            FetchResult with the response body
        """
        headers = identity.fingerprint.get_page_headers(referer=referer)
        identity.requests_made += 1

        try:
            response = identity.session.get(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Timeout fetching {url}: {e}", kind="timeout") from e
        except (requests.exceptions.ProxyError, requests.exceptions.ConnectionError) as e:
            raise TransportError(f"Connection error fetching {url}: {e}", kind="connection") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request failed for {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
                kind="http"
            )

        logger.debug(f"Fetched {url} ({response.status_code}, {len(response.text)} chars) via identity #{identity.identity_id}")
        return FetchResult(url=response.url or url, status_code=response.status_code, text=response.text)
