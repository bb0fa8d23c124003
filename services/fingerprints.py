#!/usr/bin/env python3
"""
Request fingerprints.
Generates geo-consistent browser header sets so every crawl identity looks
like one real desktop browser for its whole lifetime.
"""

import random
import logging
from typing import Dict, Optional

from config.config import PAKWHEELS_BASE_URL

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# FINGERPRINTING CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

# Geographic profiles for consistent fingerprinting based on proxy location
GEO_PROFILES = {
    'pk': {
        'accept_languages': ['en-PK,en;q=0.9,ur;q=0.8', 'en-US,en;q=0.9,ur-PK;q=0.8', 'en-GB,en;q=0.9'],
        'user_agent_os': 'Windows NT 10.0; Win64; x64'
    },
    'ae': {
        'accept_languages': ['en-AE,en;q=0.9,ar;q=0.8', 'en-US,en;q=0.9'],
        'user_agent_os': 'Windows NT 10.0; Win64; x64'
    },
    'us': {
        'accept_languages': ['en-US,en;q=0.9', 'en-US,en-GB;q=0.9,en;q=0.8'],
        'user_agent_os': 'Macintosh; Intel Mac OS X 10_15_7'
    },
    'uk': {
        'accept_languages': ['en-GB,en;q=0.9', 'en-GB,en-US;q=0.9,en;q=0.8'],
        'user_agent_os': 'Windows NT 10.0; Win64; x64'
    }
}

CHROME_VERSIONS = ['122.0.6261.94', '123.0.6312.86', '124.0.6367.91', '125.0.6422.141', '126.0.6478.126']


def detect_geo_profile_from_proxy(proxy_url: Optional[str]) -> str:
    """Detect geographic profile from proxy URL"""
    if not proxy_url:
        return 'pk'  # Default to Pakistan for PakWheels

    # Simple geo detection from hostnames/usernames such as "user-country-ae"
    proxy_lower = proxy_url.lower()
    if any(x in proxy_lower for x in ['-pk', 'pakistan', 'karachi', 'lahore']):
        return 'pk'
    elif any(x in proxy_lower for x in ['-ae', 'uae', 'dubai']):
        return 'ae'
    elif any(x in proxy_lower for x in ['-us', 'usa', 'newyork']):
        return 'us'
    elif any(x in proxy_lower for x in ['-uk', 'london', 'britain']):
        return 'uk'
    else:
        return 'pk'


class HTTPFingerprint:
    """HTTP fingerprint for page requests with geo-consistency"""

    def __init__(self, proxy_url: Optional[str] = None, seed: Optional[int] = None):
        self.proxy_url = proxy_url
        self.seed = seed
        self.geo_profile_key = detect_geo_profile_from_proxy(proxy_url)
        self.geo_profile = GEO_PROFILES[self.geo_profile_key]
        self._generate_fingerprint()

    def _generate_fingerprint(self):
        """Generate consistent fingerprint for this identity"""
        # Use the seed for reproducible fingerprints if provided
        local_random = random.Random(self.seed) if self.seed is not None else random

        self.chrome_version = local_random.choice(CHROME_VERSIONS)
        self.browser_version = self.chrome_version.split(".")[0]
        self.user_agent = (
            f"Mozilla/5.0 ({self.geo_profile['user_agent_os']}) AppleWebKit/537.36 "
            f"(KHTML, like Gecko) Chrome/{self.chrome_version} Safari/537.36"
        )
        self.accept_language = local_random.choice(self.geo_profile['accept_languages'])
        self.device_memory = local_random.choice(["4", "8", "16"])
        self.viewport_width = local_random.choice(["1280", "1366", "1440", "1536", "1920"])
        self.dpr = local_random.choice(["1", "1.25", "1.5", "2"])

    @property
    def platform(self) -> str:
        if "Windows" in self.user_agent:
            return "Windows"
        elif "Macintosh" in self.user_agent:
            return "macOS"
        return "Linux"

    def get_page_headers(self, referer: Optional[str] = None) -> Dict[str, str]:
        """Get navigation headers for an HTML page request"""
        ua_brand = f'"Google Chrome";v="{self.browser_version}", "Chromium";v="{self.browser_version}", "Not=A?Brand";v="99"'

        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
            "Accept-Language": self.accept_language,
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "sec-ch-ua": ua_brand,
            "sec-ch-ua-mobile": "?0",
            "sec-ch-ua-platform": f'"{self.platform}"',
            "sec-fetch-site": "same-origin" if referer else "none",
            "sec-fetch-mode": "navigate",
            "sec-fetch-user": "?1",
            "sec-fetch-dest": "document",
            "device-memory": self.device_memory,
            "dpr": self.dpr,
            "viewport-width": self.viewport_width,
            "Referer": referer or f"{PAKWHEELS_BASE_URL}/",
            "Cache-Control": "max-age=0",
        }


class FingerprintGenerator:
    """Factory for request fingerprints"""

    @staticmethod
    def create_http_fingerprint(proxy_url: Optional[str] = None, seed: Optional[int] = None) -> HTTPFingerprint:
        """Create an HTTP fingerprint with geo-consistency"""
        return HTTPFingerprint(proxy_url=proxy_url, seed=seed)
