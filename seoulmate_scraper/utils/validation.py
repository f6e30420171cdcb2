from typing import Optional, Tuple
from urllib.parse import urlparse, quote

import validators


class ValidationError(Exception):
    """Raised when a caller-supplied value cannot be used"""
    pass


def validate_url(url: str) -> Tuple[bool, Optional[str]]:
    """Validate URL format; non-ASCII paths are percent-encoded before the check"""
    if not url or not isinstance(url, str):
        return False, "URL must be a non-empty string"

    url = url.strip()
    parsed = urlparse(url)

    if parsed.scheme not in ('http', 'https'):
        return False, "URL must use HTTP or HTTPS protocol"

    if not parsed.netloc:
        return False, "URL must have a valid domain"

    # Visit Seoul detail paths carry Hangul names
    encoded = quote(url, safe=":/?&=%#+,;@~")
    if not validators.url(encoded):
        return False, f"URL is not well formed: {url}"

    return True, None


def require_url(url: str) -> str:
    """Return the stripped URL or raise ValidationError"""
    is_valid, error = validate_url(url)
    if not is_valid:
        raise ValidationError(error)
    return url.strip()
