"""Image URL rewriting.

Covers and chapter illustrations on the upstream site are hot-link
protected, so every image URL captured by the scraper is rewritten to go
through this service's ``/bili`` image proxy routes.
"""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit

BASE_URL = "https://www.linovelib.com"

_UPSTREAM_HOST = "www.linovelib.com"
_IMAGE_CDN_HOST = "img3.readpai.com"


class ImageProxy:
    """Rewrite upstream image URLs to this service's proxy routes.

    Parameters
    ----------
    origin:
        Public origin of this service, e.g. ``"https://feed.example.com"``.
        A trailing slash is ignored.

    Examples
    --------
    >>> proxy = ImageProxy("https://feed.example.com")
    >>> proxy.transform_url("https://img3.readpai.com/cover/1410/180624.jpg")
    'https://feed.example.com/bili/img3/cover/1410/180624.jpg'
    >>> proxy.transform_url("/files/article/image/1/1410/1410s.jpg?570722")
    'https://feed.example.com/bili/files/article/image/1/1410/1410s.jpg?570722'
    """

    def __init__(self, origin: str) -> None:
        self._origin = origin.rstrip("/")

    @property
    def origin(self) -> str:
        return self._origin

    def transform_url(self, original: str) -> str:
        """Return the proxied form of *original*, or *original* unchanged."""
        url = original
        if url.startswith("/files/"):
            url = urljoin(BASE_URL, url)

        try:
            parts = urlsplit(url)
        except ValueError:
            return original

        query = f"?{parts.query}" if parts.query else ""
        if parts.hostname == _IMAGE_CDN_HOST:
            return f"{self._origin}/bili/img3{parts.path}{query}"
        if parts.hostname == _UPSTREAM_HOST and parts.path.startswith("/files/"):
            return f"{self._origin}/bili{parts.path}{query}"
        return url

    __call__ = transform_url


def upstream_image_url(kind: str, path: str, query: str = "") -> str:
    """Map a proxy route back to the upstream image URL.

    ``kind`` is ``"img3"`` for the image CDN or ``"files"`` for site-hosted
    files; *path* is the remainder of the proxy path without a leading slash.
    """
    suffix = f"?{query}" if query else ""
    if kind == "img3":
        return f"https://{_IMAGE_CDN_HOST}/{path}{suffix}"
    if kind == "files":
        return f"{BASE_URL}/files/{path}{suffix}"
    raise ValueError(f"Unknown image route kind: {kind!r}")
