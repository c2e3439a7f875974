"""Markdown to display-safe HTML.

Sanitizing runs on the markdown output, never on the raw body, since
markdown itself can emit arbitrary inline HTML.
"""

from __future__ import annotations

import markdown
import nh3

MD_EXTENSIONS = [
    "extra",
    "sane_lists",
    "pymdownx.magiclink",
    "pymdownx.tilde",
]

# User-generated content policy: ammonia's default allow-list (no scripts,
# no event handlers, no style), with links marked nofollow.
_LINK_REL = "nofollow noopener noreferrer"
_URL_SCHEMES = {"http", "https", "mailto"}


def to_html(body: str) -> str:
    """Convert markdown to HTML without any filtering."""
    return markdown.markdown(body or "", extensions=MD_EXTENSIONS)


def sanitize(html: str) -> str:
    """Strip everything outside the user-generated content allow-list."""
    return nh3.clean(html, link_rel=_LINK_REL, url_schemes=_URL_SCHEMES)


def render(body: str) -> str:
    """Render a stored body to HTML that can be embedded verbatim."""
    return sanitize(to_html(body))
