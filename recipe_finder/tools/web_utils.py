from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlsplit, urlunsplit

TRACKING_PARAMS = {"fbclid", "gclid", "ref", "mc_cid", "mc_eid", "igshid", "_ga"}
SUSPICIOUS_URL = re.compile(r"[<>{}\s]|^(?:javascript|data):", re.IGNORECASE)


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def extract_domain(url: str) -> str:
    """Lowercased host without a leading ``www.``."""
    try:
        host = (urlparse(url).hostname or "").lower().strip()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def canonical_url(url: str) -> str:
    parsed = urlsplit(url.strip())
    scheme = (parsed.scheme or "https").lower()
    netloc = parsed.netloc.lower()
    if netloc.startswith("www."):
        netloc = netloc[4:]
    path = parsed.path.rstrip("/") or "/"
    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def sanitize_url(url: str) -> str | None:
    """Strip tracking parameters and fragments; None for unusable URLs."""
    url = (url or "").strip()
    if not url or SUSPICIOUS_URL.search(url) or not is_valid_url(url):
        return None
    parsed = urlsplit(url)
    params = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if not key.lower().startswith("utm_") and key.lower() not in TRACKING_PARAMS
    ]
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, urlencode(params), ""))


def title_from_slug(url: str) -> str:
    """Best-effort human title from the last meaningful path segment."""
    segments = [s for s in urlparse(url).path.split("/") if s and not s.isdigit()]
    slug = segments[-1] if segments else extract_domain(url)
    slug = re.sub(r"\.(html?|php|aspx?)$", "", slug)
    words = [w for w in re.split(r"[-_+.]+", slug) if w and not w.isdigit()]
    if not words:
        return "Untitled Dish"
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)
