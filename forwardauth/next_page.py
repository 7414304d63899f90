"""Next page handling."""
import re
from typing import Iterable, Optional

import logging

logger = logging.getLogger(__name__)


def _pattern(domain: str) -> 're.Pattern[str]':
    return re.compile(rf'https?://{re.escape(domain.lower())}(:[0-9]+)?/.*')


def good_next_page(next_page: str, domains: Iterable[str]) -> bool:
    """True if ``next_page`` is an absolute URL on one of ``domains``."""
    candidate = next_page.lower()
    return any(_pattern(domain).fullmatch(candidate) for domain in domains)


def resolve_redirect(requested_uri: Optional[str], domains: Iterable[str],
                     default_path: str) -> str:
    """Checks if a requested URI is good and returns it.

    If not good, it will return the default.
    """
    if not requested_uri:
        return default_path
    if good_next_page(requested_uri, domains):
        return requested_uri
    logger.info('Refusing to redirect to %r', requested_uri)
    return default_path
