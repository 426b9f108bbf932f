# src/filters/text_cleaner.py

"""Plain-text and markup cleanup for CMS-rendered fields.

The CMS returns titles and excerpts as rendered HTML fragments with
HTML entities, editor artefacts and "continue reading" markers mixed
in. Plain-text cleanup is an ordered list of named rules so each
transformation can be tested on its own; rule order matters (tags go
before entity decoding, whitespace collapse always runs last).
"""

import html
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup, Comment

from src.config.settings import Settings


@dataclass(frozen=True)
class TextRule:
    """A named regex substitution applied to plain text."""

    name: str
    pattern: re.Pattern[str]
    replacement: str | Callable[[re.Match[str]], str]

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


PLAIN_TEXT_RULES: tuple[TextRule, ...] = (
    TextRule("strip_tags", re.compile(r"<[^>]*>"), ""),
    TextRule(
        "truncation_marker",
        re.compile(r"\[(?:&hellip;|…|\.\.\.)\]"),
        "...",
    ),
    TextRule("hellip", re.compile(r"&hellip;"), "..."),
    TextRule("nbsp", re.compile(r"&nbsp;"), " "),
    TextRule("quot", re.compile(r"&quot;"), '"'),
    TextRule("curly_double_quotes", re.compile(r"&#822[01];"), '"'),
    TextRule("curly_single_quote", re.compile(r"&#821[67];"), "'"),
    TextRule("amp", re.compile(r"&amp;"), "&"),
    TextRule(
        "other_entities",
        re.compile(r"&(?:#\d+|#x[0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);"),
        lambda m: html.unescape(m.group(0)),
    ),
    # More-link text runs to the end of the fragment
    TextRule(
        "continue_reading",
        re.compile(r"Continue reading.*$", re.IGNORECASE | re.DOTALL),
        "",
    ),
    TextRule(
        "read_more",
        re.compile(r"Read more.*$", re.IGNORECASE | re.DOTALL),
        "",
    ),
    TextRule(
        "leer_mas",
        re.compile(r"Leer más.*$", re.IGNORECASE | re.DOTALL),
        "",
    ),
    # Hangul filler separators pasted in by the page builder
    TextRule("filler_separator", re.compile(r"ㅤ-ㅤ"), ""),
    TextRule("collapse_whitespace", re.compile(r"\s+"), " "),
)


def clean_plain_text(
    text: str | None, rules: Sequence[TextRule] = PLAIN_TEXT_RULES,
) -> str:
    """Run *text* through *rules* in order and strip the result."""
    if not text:
        return ""
    for rule in rules:
        text = rule.apply(text)
    return text.strip()


# ── URLs ─────────────────────────────────────────────────


def _cms_host() -> str:
    return urlsplit(Settings.CMS_API_URL).netloc


def normalize_media_url(url: str | None) -> str:
    """Force https and move legacy-host uploads onto the CMS host.

    Protocol-relative and root-relative URLs are made absolute
    against the CMS host.
    """
    if not url:
        return ""
    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url
    elif url.startswith("/"):
        url = f"https://{_cms_host()}{url}"

    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return url

    legacy = Settings.CMS_LEGACY_HOST.lower()
    host = parts.netloc.lower()
    netloc = parts.netloc
    if host in (legacy, f"www.{legacy}"):
        netloc = _cms_host()
    return urlunsplit(
        ("https", netloc, parts.path, parts.query, parts.fragment)
    )


def is_content_image(url: str) -> bool:
    """True for CMS-hosted images that are not logos or icons."""
    lowered = url.lower()
    if any(word in lowered for word in ("logo", "icon", "favicon")):
        return False
    return Settings.CMS_LEGACY_HOST.lower() in lowered


# ── Markup ───────────────────────────────────────────────


def sanitize_html(markup: str | None) -> str:
    """Reduce CMS body markup to safe, minimal HTML.

    Drops scripts, styles and comments, strips inline ``style`` and
    ``class`` attributes, normalises image URLs and decodes entities
    (apart from the ones HTML itself needs).
    """
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        for attr in ("style", "class"):
            if attr in tag.attrs:
                del tag.attrs[attr]
        if tag.name == "img" and tag.get("src"):
            tag["src"] = normalize_media_url(str(tag["src"]))

    root = soup.body or soup
    cleaned = root.decode_contents(formatter="minimal")
    return re.sub(r"\s+", " ", cleaned).strip()


def content_images(markup: str | None) -> list[str]:
    """Normalised URLs of every content image in *markup*, in order."""
    if not markup:
        return []
    soup = BeautifulSoup(markup, "lxml")
    urls: list[str] = []
    for img in soup.find_all("img"):
        src = img.get("src")
        if src and is_content_image(str(src)):
            url = normalize_media_url(str(src))
            if url not in urls:
                urls.append(url)
    return urls


def first_content_image(markup: str | None) -> str | None:
    images = content_images(markup)
    return images[0] if images else None


def body_text(markup: str | None) -> str:
    """Visible text of *markup*, whitespace collapsed."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ")).strip()


def make_excerpt(
    excerpt: str | None,
    body: str | None,
    min_length: int | None = None,
    fallback_length: int | None = None,
) -> str:
    """Clean excerpt, rebuilt from the body when it is too short."""
    min_length = (
        min_length if min_length is not None else Settings.EXCERPT_MIN_LENGTH
    )
    fallback_length = (
        fallback_length
        if fallback_length is not None
        else Settings.EXCERPT_FALLBACK_LENGTH
    )
    cleaned = clean_plain_text(excerpt)
    if len(cleaned) >= min_length:
        return cleaned
    text = body_text(body)
    if not text:
        return cleaned
    return clean_plain_text(text[:fallback_length]) + "..."
