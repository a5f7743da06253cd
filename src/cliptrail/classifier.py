"""
Heuristic classifier for Cliptrail.

Routes captured text into one of three capture types: link, code, text.
Runs on every clipboard tick, so it stays cheap (no parsing) and biased
toward plain text when unsure.
"""

import re
from urllib.parse import urlsplit

from cliptrail.models import CaptureType

# Line shapes that suggest source code when the text is also multi-line.
# Keywords count only where code puts them, so prose such as "returned",
# "first class service" or "let me know" stays text.
CODE_LINE_PATTERNS = (
    r"[;{}]\s*$",
    r"=>",
    r"^\s*#include\s*[<\"]",
    r"^\s*(?:async\s+)?def \w+\s*\(",
    r"^\s*class \w+\s*[:({]",
    r"^\s*from [\w.]+ import \w",
    r"^\s*import [\w.]+(?: as \w+)?\s*$",
    r"^\s*import .+ from [\"']",
    r"^\s*(?:export\s+)?(?:async\s+)?function\s*\w*\s*\(",
    r"^\s*(?:const|let|var) \w+\s*=",
    r"^\s*(?:pub\s+)?fn \w+\s*[<(]",
    r"^\s*pub (?:struct|enum|mod|use|trait)\b",
    r"^\s*public (?:class|static|void|final|interface)\b",
    r"^\s*SELECT\b.*\bFROM\b",
)

_CODE_LINE = re.compile("|".join(f"(?:{p})" for p in CODE_LINE_PATTERNS), re.MULTILINE)

# Well-known domains and their canonical short tags
KNOWN_DOMAIN_TAGS = {
    "github.com": "github",
    "gist.github.com": "github",
    "gitlab.com": "gitlab",
    "bitbucket.org": "bitbucket",
    "stackoverflow.com": "stackoverflow",
    "docs.python.org": "python-docs",
    "pypi.org": "pypi",
    "developer.mozilla.org": "mdn",
    "docs.rs": "rust-docs",
    "crates.io": "crates",
    "npmjs.com": "npm",
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "wikipedia.org": "wikipedia",
    "news.ycombinator.com": "hackernews",
    "reddit.com": "reddit",
}

# Schemes that mark an absolute URL worth treating as a link
URL_SCHEMES = ("http", "https", "ftp", "ftps", "file", "mailto")


def is_url(text: str) -> bool:
    """Check whether text is a single absolute URL."""
    candidate = text.strip()

    # Basic checks: single line, reasonable length, no spaces
    if "\n" in candidate or "\r" in candidate:
        return False
    if len(candidate) < 4 or len(candidate) > 2048:
        return False
    if " " in candidate:
        return False

    try:
        parts = urlsplit(candidate)
    except ValueError:
        return False

    if parts.scheme.lower() not in URL_SCHEMES:
        return False
    if parts.scheme.lower() == "mailto":
        return bool(parts.path)
    if parts.scheme.lower() == "file":
        return bool(parts.path)
    return bool(parts.netloc)


def classify(text: str) -> CaptureType:
    """
    Classify captured text.

    link: the text parses as an absolute URL.
    code: multi-line and at least one line looks like code.
    text: everything else.
    """
    trimmed = text.strip()
    if is_url(trimmed):
        return CaptureType.LINK

    if "\n" in trimmed and _CODE_LINE.search(trimmed):
        return CaptureType.CODE

    return CaptureType.TEXT


def extract_domain(url: str) -> str | None:
    """Return the hostname of a URL without a leading www., or None."""
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    if host.startswith("www."):
        host = host[4:]
    return host or None


def _known_tag(domain: str) -> str | None:
    # Walk up the labels so subdomains inherit the parent's tag
    labels = domain.split(".")
    for i in range(len(labels) - 1):
        tag = KNOWN_DOMAIN_TAGS.get(".".join(labels[i:]))
        if tag:
            return tag
    return None


def auto_tags(value: str | None) -> list[str]:
    """
    Derive tags from a URL.

    Known domains map to their canonical tag; anything else is tagged with
    the first label of its domain (blog.example.org -> blog).
    """
    if not value or not is_url(value):
        return []

    domain = extract_domain(value)
    if not domain:
        return []

    tag = _known_tag(domain)
    if tag:
        return [tag]

    first_label = domain.split(".")[0]
    return [first_label] if first_label else []
