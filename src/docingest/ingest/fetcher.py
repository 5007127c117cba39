"""Source fetcher. Downloads document bytes over HTTP(S).

Guards:
- Allowed URL schemes: https:// and http:// only.
- SSRF guard: the hostname is resolved and private/loopback/link-local/
  reserved addresses are refused before any connection is made
  (``FetchCfg.block_private_hosts``). Both guards run again on every
  redirect target.
- Timeout, redirect limit and body size cap from ``FetchCfg``.

No retries: any failure raises ``FetchError`` and ends the run.
"""

from __future__ import annotations

import http.client
import ipaddress
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from http.client import HTTPResponse

from docingest.config import FetchCfg
from docingest.errors import FetchError, SsrfError

logger = logging.getLogger(__name__)

_USER_AGENT = "docingest/0.1"
_ALLOWED_SCHEMES = {"https", "http"}


@dataclass
class FetchedDocument:
    url: str
    body: bytes
    content_type: str  # media type without parameters, lower-case


class Fetcher:
    """Download the raw bytes behind a source URL."""

    def __init__(self, config: FetchCfg | None = None) -> None:
        self._config = config or FetchCfg()

    def fetch(self, url: str) -> FetchedDocument:
        """Validate and download *url*.

        Raises:
            FetchError: On a bad scheme, blocked host, non-2xx status,
                transport failure, redirect loop or oversized body.
        """
        self._guard(url)
        body, content_type = self._fetch(url)
        logger.info("Fetched %s (%d bytes, %s)", url, len(body), content_type)
        return FetchedDocument(url=url, body=body, content_type=content_type)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _guard(self, url: str) -> None:
        """Run the scheme check and, when enabled, the SSRF guard on *url*."""
        self._validate_scheme(url)
        if self._config.block_private_hosts:
            self._check_ssrf(url)

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise FetchError(
                f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges.

        Raises SsrfError if any resolved address is private, loopback,
        link-local, or otherwise reserved.
        """
        hostname = urllib.parse.urlparse(url).hostname
        if not hostname:
            raise FetchError(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise FetchError(f"DNS resolution failed for '{hostname}': {exc}") from exc

        for addrinfo in addrinfos:
            try:
                ip = ipaddress.ip_address(addrinfo[4][0])
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Access to internal network addresses is not allowed."
                )

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def _fetch(self, url: str) -> tuple[bytes, str]:
        """Fetch *url* with timeout, redirect limit and size cap.

        Returns (body_bytes, content_type_without_params).
        """
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        opener = urllib.request.build_opener(
            _GuardedRedirectHandler(self._config.max_redirects, self._guard)
        )

        try:
            response: HTTPResponse = opener.open(request, timeout=self._config.timeout)
        except urllib.error.HTTPError as exc:
            raise FetchError(
                f"Source returned HTTP {exc.code} for '{url}'.", status_code=exc.code
            ) from exc
        except urllib.error.URLError as exc:
            raise FetchError(f"Failed to fetch '{url}': {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise FetchError(f"Failed to fetch '{url}': {exc}") from exc
        except (http.client.HTTPException, ValueError) as exc:
            # Non-HTTP responders, malformed ports and similar protocol errors
            raise FetchError(
                f"Failed to fetch '{url}': {type(exc).__name__}: {exc}"
            ) from exc

        with response:
            raw_ct = response.headers.get("Content-Type", "application/octet-stream")
            content_type = raw_ct.split(";")[0].strip().lower()

            limit = self._config.max_bytes
            try:
                body = response.read(limit + 1)
            except (TimeoutError, OSError, http.client.HTTPException, ValueError) as exc:
                raise FetchError(f"Transfer from '{url}' did not complete: {exc}") from exc

        if len(body) > limit:
            raise FetchError(
                f"Response body exceeds the {limit:,} byte limit for '{url}'."
            )
        return body, content_type


class _GuardedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Apply *guard* to every redirect target; fail after *max_redirects* hops."""

    def __init__(self, max_redirects: int, guard: Callable[[str], None]) -> None:
        self._max_redirects = max_redirects
        self._guard = guard
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise FetchError(
                f"Too many redirects (>{self._max_redirects}) for '{req.full_url}'."
            )
        self._guard(newurl)
        logger.debug("Following %d redirect %s -> %s", code, req.full_url, newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
