"""HTML rewriting for cross-origin embedding.

``rewrite(html, source_url)`` applies a fixed sequence of text transforms:

1. strip artifacts injected by the Wayback Machine and unwrap archived URLs
2. drop meta directives that block framing (X-Frame-Options, CSP)
3. rebase root-relative attribute values and CSS ``url(/...)`` references
4. make sure exactly one ``<base href>`` follows ``<head>``
5. normalize or insert the responsive viewport meta tag

Each transform is independent and best-effort: one that raises is skipped and
the document continues through the rest. All transforms are idempotent, so
rewriting an already rewritten document is a no-op.

Only root-relative references (``/path``) are rebased. Document-relative
references such as ``../img.png`` are left to the browser, which resolves
them against the injected ``<base>``.
"""

import logging
import re
from typing import Callable
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

VIEWPORT_TAG = '<meta name="viewport" content="width=device-width, initial-scale=1">'

# ---------------------------------------------------------------------------
# Wayback Machine artifacts
# ---------------------------------------------------------------------------

_WAYBACK_TOOLBAR_RE = re.compile(
    r"<!-- BEGIN WAYBACK TOOLBAR INSERT -->.*?<!-- END WAYBACK TOOLBAR INSERT -->",
    re.DOTALL,
)
_ARCHIVE_COMMENT_RE = re.compile(
    r"<!--\s*(?:FILE ARCHIVED ON|playback timings|End Wayback Rewrite JS Include)"
    r".*?-->",
    re.DOTALL | re.IGNORECASE,
)
_ARCHIVE_SCRIPT_SRC_RE = re.compile(
    r"<script\b[^>]*\bsrc\s*=\s*[\"']?[^\"'>]*"
    r"(?:archive\.org|/_static/js/(?:wombat|bundle-playback|ruffle))"
    r"[^>]*>\s*</script>",
    re.IGNORECASE,
)
_ARCHIVE_INLINE_SCRIPT_RE = re.compile(
    r"<script\b[^>]*>(?:(?!</script>).)*?"
    r"(?:__wm\.|archive_analytics|RufflePlayer|wbhack)"
    r"(?:(?!</script>).)*?</script>",
    re.DOTALL | re.IGNORECASE,
)
_ARCHIVE_STYLESHEET_RE = re.compile(
    r"<link\b[^>]*\bhref\s*=\s*[\"']?[^\"'>]*"
    r"(?:archive\.org|/_static/css/(?:banner-styles|iconochive))"
    r"[^>]*>",
    re.IGNORECASE,
)
# https://web.archive.org/web/20240101000000id_/https://example.com/x
_ARCHIVE_ABSOLUTE_PREFIX_RE = re.compile(
    r"(?:https?:)?//web\.archive\.org/web/\d{8,14}(?:[a-z]{2}_)?/(?=(?:https?:)?//)",
    re.IGNORECASE,
)
# /web/20240101000000/https://example.com/x
_ARCHIVE_RELATIVE_PREFIX_RE = re.compile(
    r"(?<=[\"'(=\s])/web/\d{8,14}(?:[a-z]{2}_)?/(?=(?:https?:)?//)",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Framing directives
# ---------------------------------------------------------------------------

_FRAME_BLOCKING_META_RE = re.compile(
    r"<meta\b[^>]*\bhttp-equiv\s*=\s*[\"']?\s*"
    r"(?:x-frame-options|content-security-policy(?:-report-only)?)\b[^>]*>",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Root-relative references
# ---------------------------------------------------------------------------

_ROOT_RELATIVE_ATTR_RE = re.compile(
    r"(?P<prefix>\s(?:href|src|action|poster|data-src)\s*=\s*)"
    r"(?P<quote>[\"']?)/(?![/\\])",
    re.IGNORECASE,
)
_SRCSET_ATTR_RE = re.compile(
    r"(?P<prefix>\s(?:srcset|data-srcset)\s*=\s*)(?P<quote>[\"'])(?P<value>.*?)(?P=quote)",
    re.IGNORECASE | re.DOTALL,
)
_SRCSET_CANDIDATE_RE = re.compile(r"(^|,)(\s*)/(?![/\\])")
_CSS_URL_RE = re.compile(r"(url\(\s*)([\"']?)/(?![/\\])", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Document structure
# ---------------------------------------------------------------------------

_BASE_TAG_RE = re.compile(r"<base\b[^>]*>", re.IGNORECASE)
_BASE_HREF_RE = re.compile(r"\shref\s*=", re.IGNORECASE)
_HEAD_OPEN_RE = re.compile(r"<head(?:\s[^>]*)?>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html(?:\s[^>]*)?>", re.IGNORECASE)
_VIEWPORT_META_RE = re.compile(
    r"<meta\b[^>]*\bname\s*=\s*[\"']?viewport\b[^>]*>", re.IGNORECASE
)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
# BOM, whitespace, comments and the doctype that may precede the first element
_PROLOGUE_RE = re.compile(
    r"\ufeff?(?:\s+|<!--.*?-->|<!doctype\b[^>]*>)*", re.IGNORECASE | re.DOTALL
)


def _live_matches(pattern: re.Pattern, html: str) -> list[re.Match]:
    """Matches of *pattern* that are not inside an HTML comment."""
    comments = [m.span() for m in _COMMENT_RE.finditer(html)]
    return [
        m
        for m in pattern.finditer(html)
        if not any(start <= m.start() < end for start, end in comments)
    ]


def _first_live(pattern: re.Pattern, html: str) -> re.Match | None:
    matches = _live_matches(pattern, html)
    return matches[0] if matches else None


def base_origin(url: str) -> str | None:
    """scheme://host[:port] of *url*, or None if it is not an absolute http(s) URL."""
    try:
        parsed = urlparse(url.strip())
    except (ValueError, AttributeError):
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    netloc = parsed.netloc.rsplit("@", 1)[-1].lower()
    return f"{parsed.scheme}://{netloc}"


_ARCHIVE_MARKERS = (
    "BEGIN WAYBACK TOOLBAR INSERT",
    "FILE ARCHIVED ON",
    "End Wayback Rewrite JS Include",
    "__wm.init",
    "/_static/js/wombat",
)


def looks_archived(html: str) -> bool:
    """True if the document went through Wayback playback rewriting."""
    return any(marker in html for marker in _ARCHIVE_MARKERS)


def strip_archive_artifacts(html: str) -> str:
    """Remove the Wayback toolbar, playback scripts and archive URL prefixes.

    Pages that merely link to archived copies are left alone.
    """
    if not looks_archived(html):
        return html
    html = _WAYBACK_TOOLBAR_RE.sub("", html)
    html = _ARCHIVE_COMMENT_RE.sub("", html)
    html = _ARCHIVE_SCRIPT_SRC_RE.sub("", html)
    html = _ARCHIVE_INLINE_SCRIPT_RE.sub("", html)
    html = _ARCHIVE_STYLESHEET_RE.sub("", html)
    html = _ARCHIVE_ABSOLUTE_PREFIX_RE.sub("", html)
    html = _ARCHIVE_RELATIVE_PREFIX_RE.sub("", html)
    return html


def strip_frame_blocking_meta(html: str) -> str:
    return _FRAME_BLOCKING_META_RE.sub("", html)


def rebase_root_relative(html: str, origin: str) -> str:
    """Turn /path references into absolute URLs on *origin*."""

    def _attr(match: re.Match) -> str:
        return f"{match.group('prefix')}{match.group('quote')}{origin}/"

    def _srcset(match: re.Match) -> str:
        value = _SRCSET_CANDIDATE_RE.sub(
            lambda m: f"{m.group(1)}{m.group(2)}{origin}/", match.group("value")
        )
        quote = match.group("quote")
        return f"{match.group('prefix')}{quote}{value}{quote}"

    html = _ROOT_RELATIVE_ATTR_RE.sub(_attr, html)
    html = _SRCSET_ATTR_RE.sub(_srcset, html)
    html = _CSS_URL_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{origin}/", html)
    return html


def ensure_base_tag(html: str, origin: str) -> str:
    """Keep exactly one <base>; add <base href="{origin}/"> after <head> if missing."""
    base_tag = f'<base href="{origin}/">'
    existing = _live_matches(_BASE_TAG_RE, html)

    if existing:
        first = existing[0]
        for extra in reversed(existing[1:]):
            html = html[: extra.start()] + html[extra.end():]
        if not _BASE_HREF_RE.search(first.group(0)):
            tag = first.group(0)
            patched = f'{tag[:5]} href="{origin}/"{tag[5:]}'
            html = html[: first.start()] + patched + html[first.end():]
        return html

    head = _first_live(_HEAD_OPEN_RE, html)
    if head:
        return html[: head.end()] + base_tag + html[head.end():]

    root = _first_live(_HTML_OPEN_RE, html)
    if root:
        return html[: root.end()] + f"<head>{base_tag}</head>" + html[root.end():]

    # No <html> or <head>: keep the doctype first or the page drops into quirks mode
    start = _PROLOGUE_RE.match(html).end()
    return html[:start] + f"<head>{base_tag}</head>" + html[start:]


def ensure_viewport(html: str) -> str:
    """Normalize the viewport meta tag, inserting one after <base>/<head> if absent."""
    tags = _live_matches(_VIEWPORT_META_RE, html)
    if tags:
        for extra in reversed(tags[1:]):
            html = html[: extra.start()] + html[extra.end():]
        first = tags[0]
        return html[: first.start()] + VIEWPORT_TAG + html[first.end():]

    anchor = _first_live(_BASE_TAG_RE, html) or _first_live(_HEAD_OPEN_RE, html)
    if anchor is None:
        return html
    return html[: anchor.end()] + VIEWPORT_TAG + html[anchor.end():]


def _apply(name: str, transform: Callable[[str], str], html: str) -> str:
    try:
        return transform(html)
    except Exception as exc:
        logger.warning(f"HTML rewrite step '{name}' skipped: {exc}")
        return html


def rewrite(html: str, source_url: str) -> str:
    """Prepare a fetched document for embedding on another origin."""
    if not html:
        return html

    origin = base_origin(source_url)

    html = _apply("archive-artifacts", strip_archive_artifacts, html)
    html = _apply("frame-directives", strip_frame_blocking_meta, html)
    if origin:
        html = _apply("rebase", lambda h: rebase_root_relative(h, origin), html)
        html = _apply("base-tag", lambda h: ensure_base_tag(h, origin), html)
    else:
        logger.debug(f"No usable origin in {source_url!r}, skipping rebase")
    html = _apply("viewport", ensure_viewport, html)
    return html
