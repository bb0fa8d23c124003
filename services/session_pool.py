#!/usr/bin/env python3
"""
Session pool.
Hands out crawl identities (proxy + fingerprint + cookie jar) to workers,
one worker at a time, and retires identities that got blocked.
"""

import itertools
import logging
import threading
from typing import List, Optional

import requests
import requests.adapters
import urllib3

from services.fingerprints import FingerprintGenerator, HTTPFingerprint
from services.proxy_rotation import ProxyManager

logger = logging.getLogger(__name__)


class SessionIdentity:
    """One reusable set of request credentials: proxy, fingerprint headers and cookies."""

    def __init__(self, identity_id: int, proxy_url: Optional[str] = None, verify_ssl: bool = True,
                 connection_pool_size: int = 10):
        self.identity_id = identity_id
        self.proxy_url = proxy_url
        self.retired = False
        self.retire_reason: Optional[str] = None
        self.requests_made = 0

        # Generate fingerprint for this identity
        self.fingerprint: HTTPFingerprint = FingerprintGenerator.create_http_fingerprint(
            proxy_url=proxy_url,
            seed=identity_id
        )

        # Create session with connection pooling; retries are decided by the crawler
        self.session = requests.Session()
        self.session.verify = verify_ssl
        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        if proxy_url:
            self.session.proxies = {
                'http': proxy_url,
                'https': proxy_url
            }

        adapter = requests.adapters.HTTPAdapter(
            pool_connections=connection_pool_size,
            pool_maxsize=connection_pool_size,
            max_retries=0,
            pool_block=False
        )
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)
        self.session.headers.update(self.fingerprint.get_page_headers())

    def close(self):
        self.session.close()

    def __repr__(self):
        proxy = self.proxy_url.split('@')[-1] if self.proxy_url else 'direct'
        return f"<SessionIdentity #{self.identity_id} via {proxy}{' retired' if self.retired else ''}>"


class SessionPool:
    """
    Thread-safe pool of crawl identities.

    An identity is owned by exactly one worker between acquire() and
    release()/retire(). A retired identity is never handed out again.
    """

    def __init__(self, proxy_manager: Optional[ProxyManager] = None, max_sessions: int = 20,
                 verify_ssl: bool = True):
        self.proxy_manager = proxy_manager
        self.max_sessions = max(1, max_sessions)
        self.verify_ssl = verify_ssl
        self._idle: List[SessionIdentity] = []
        self._in_use = set()
        self._retired: List[SessionIdentity] = []
        self._created = 0
        self._ids = itertools.count(1)
        self._cond = threading.Condition()

    @property
    def retired_count(self) -> int:
        with self._cond:
            return len(self._retired)

    @property
    def created_count(self) -> int:
        with self._cond:
            return self._created

    def _proxy_blacklisted(self, identity: SessionIdentity) -> bool:
        if not self.proxy_manager or not identity.proxy_url:
            return False
        ip = self.proxy_manager.extract_ip(identity.proxy_url)
        return bool(ip) and self.proxy_manager.is_blacklisted(ip)

    def _create_identity(self) -> Optional[SessionIdentity]:
        """Create a new identity, or None if the pool may not grow any more."""
        if self._created >= self.max_sessions:
            return None

        proxy_url = None
        if self.proxy_manager is not None:
            proxy_url = self.proxy_manager.get_proxy()
            if proxy_url is None:
                # Proxies are configured but every one of them is blacklisted
                return None

        self._created += 1
        identity = SessionIdentity(next(self._ids), proxy_url=proxy_url, verify_ssl=self.verify_ssl)
        logger.debug(f"Created {identity!r}")
        return identity

    def _retire_locked(self, identity: SessionIdentity, reason: str):
        identity.retired = True
        identity.retire_reason = reason
        self._in_use.discard(identity)
        self._retired.append(identity)
        identity.close()

    def acquire(self) -> Optional[SessionIdentity]:
        """
        Get an identity for exclusive use.

        Blocks while every usable identity is lent out. Returns None when the
        pool is exhausted: nothing idle, nothing in use and no new identity can be created.
        """
        with self._cond:
            while True:
                while self._idle:
                    identity = self._idle.pop(0)
                    if self._proxy_blacklisted(identity):
                        self._retire_locked(identity, "proxy blacklisted")
                        continue
                    self._in_use.add(identity)
                    return identity

                identity = self._create_identity()
                if identity is not None:
                    self._in_use.add(identity)
                    return identity

                if not self._in_use:
                    return None

                self._cond.wait()

    def release(self, identity: SessionIdentity):
        """Give a healthy identity back for reuse."""
        with self._cond:
            if identity.retired:
                return
            self._in_use.discard(identity)
            self._idle.append(identity)
            self._cond.notify_all()

    def retire(self, identity: SessionIdentity, reason: str = "blocked"):
        """Permanently remove an identity and blacklist its proxy."""
        with self._cond:
            if identity.retired:
                return
            self._retire_locked(identity, reason)
            self._cond.notify_all()

        logger.warning(f"Retired {identity!r}: {reason}")
        if self.proxy_manager and identity.proxy_url:
            ip = self.proxy_manager.extract_ip(identity.proxy_url)
            if ip:
                self.proxy_manager.blacklist_ip(ip, reason=f"Identity #{identity.identity_id}: {reason}")

    def close(self):
        with self._cond:
            for identity in self._idle + list(self._in_use):
                identity.close()
            self._idle.clear()
            self._in_use.clear()
