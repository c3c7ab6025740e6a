"""Personalized form links sent to investors."""

import logging
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


def build_form_link(base_url: str, email: str, name: str) -> str:
    """
    Build the tracked link for one investor.

    The widget reads ``email`` and ``name`` back from the query string, which
    is what makes a later submission "tracked" rather than anonymous.

    Example:
        >>> build_form_link("https://forms.example.com", "a@b.com", "Jane Doe")
        'https://forms.example.com?email=a%40b.com&name=Jane+Doe'
    """
    if not email or not name:
        raise ValueError("email and name are required")
    query = urlencode({"email": email, "name": name})
    separator = "&" if "?" in base_url else "?"
    link = f"{base_url}{separator}{query}"
    logger.debug(f"Generated form link for {email}")
    return link
