"""
Reverse proxy to the downstream clinic and files services.

One static target per path prefix; no retries, no load balancing.
"""
import logging

import requests
from flask import Response

from app.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

# RFC 7230 section 6.1
HOP_BY_HOP_HEADERS = {
    'connection',
    'keep-alive',
    'proxy-authenticate',
    'proxy-authorization',
    'te',
    'trailer',
    'trailers',
    'transfer-encoding',
    'upgrade',
}

CHUNK_SIZE = 8192


class ProxyRouter:
    def __init__(self, routes, timeout=30, session=None):
        # Longest prefix first so nested prefixes win
        self.routes = sorted(routes, key=lambda r: len(r.prefix), reverse=True)
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def prefixes(self):
        return [route.prefix for route in self.routes]

    def match(self, path):
        for route in self.routes:
            if path == route.prefix or path.startswith(route.prefix + '/'):
                return route
        return None

    def _upstream_headers(self, req):
        headers = {
            key: value for key, value in req.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS and key.lower() != 'host'
        }
        forwarded_for = req.headers.get('X-Forwarded-For')
        remote = req.remote_addr or ''
        headers['X-Forwarded-For'] = f"{forwarded_for}, {remote}" if forwarded_for else remote
        headers['X-Forwarded-Host'] = req.host
        headers['X-Forwarded-Proto'] = req.scheme
        return headers

    def forward(self, req) -> Response:
        """Forward a Flask request and stream the downstream response back."""
        route = self.match(req.path)
        if route is None:
            raise ValueError(f"No proxy route for {req.path}")

        url = route.target + req.path
        query = req.query_string.decode('latin-1')
        if query:
            url = f"{url}?{query}"

        try:
            upstream = self.session.request(
                req.method,
                url,
                headers=self._upstream_headers(req),
                data=req.get_data(),
                allow_redirects=False,
                stream=True,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f"{route.service.title()} service error: {e}")
            raise UpstreamUnavailableError(f"{route.service.title()} service unavailable") from e

        headers = [
            (key, value) for key, value in upstream.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
        ]

        def body():
            try:
                yield from upstream.raw.stream(CHUNK_SIZE, decode_content=False)
            finally:
                upstream.close()

        return Response(body(), status=upstream.status_code, headers=headers)
