"""
Domain classification for browsing records.

Rules are tried in order and the first rule whose domain pattern matches is
authoritative: its extractor either yields a grouping key or filters the page
out (root, search, home and folder pages), and later rules are never asked.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence
from urllib.parse import SplitResult, urlsplit

from WorkTrail.models import Bucket, ClassificationResult

log = logging.getLogger(__name__)


class PageContext(NamedTuple):
    url: str
    parts: SplitResult
    title: str
    trusted_orgs: frozenset

    @property
    def segments(self) -> List[str]:
        return [s for s in self.parts.path.split("/") if s]

    @property
    def is_root(self) -> bool:
        return not self.segments


@dataclass(frozen=True)
class DomainRule:
    name: str
    pattern: re.Pattern
    bucket: Bucket
    extract: Callable[[PageContext], Optional[str]]
    make_title: Callable[[str], str] = lambda key: key

    def matches(self, domain: str) -> bool:
        return bool(self.pattern.match(domain))


def _strip_suffixes(title: str, *suffixes: str) -> str:
    for suffix in suffixes:
        title = re.sub(suffix, "", title)
    return title.strip()


# --- Code hosting ---

CODE_HOST_GENERIC_KEYS = {
    "github.com": "GitHub",
    "gitlab.com": "GitLab",
    "bitbucket.org": "Bitbucket",
}


def _code_host_key(page: PageContext) -> Optional[str]:
    if page.is_root:
        return None
    segments = page.segments
    org = segments[0]
    if org in page.trusted_orgs and len(segments) >= 2:
        return f"{org}/{segments[1]}"
    # Other people's repositories collapse into one block per platform
    host = (page.parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return CODE_HOST_GENERIC_KEYS.get(host)


# --- Collaborative documents ---

_DROPBOX_FILTERED_PREFIXES = ("/search", "/home", "/work")
_DROPBOX_GENERIC_TITLES = {"Dropbox Paper", "Dropbox", "Files", "Files - Dropbox", "Search - Dropbox"}


def _dropbox_key(page: PageContext) -> Optional[str]:
    if page.is_root or page.parts.path.startswith(_DROPBOX_FILTERED_PREFIXES):
        return None
    title = _strip_suffixes(page.title, r" [–—-] Dropbox Paper$", r" [–—-] Dropbox$")
    if not title or title in _DROPBOX_GENERIC_TITLES or title.startswith("Dropbox - "):
        return None
    return title


def _google_docs_key(page: PageContext) -> Optional[str]:
    if page.is_root:
        return None
    title = _strip_suffixes(page.title, r" - Google (Docs|Sheets|Slides)$")
    if not title or title.startswith("Untitled") or title in ("Google Docs", "Google Sheets", "Google Slides"):
        return None
    return title


def _monday_key(page: PageContext) -> Optional[str]:
    if page.is_root:
        return None
    path = page.parts.path
    board = re.search(r"/boards/(\d+)", path)
    if board:
        return page.title or f"Board {board.group(1)}"
    doc = re.search(r"/docs/(\d+)", path)
    if doc:
        title = _strip_suffixes(page.title, r" \| monday\.com$", r" - monday\.com$")
        return title or f"Doc {doc.group(1)}"
    if not page.title or page.title == "monday.com":
        return None
    return page.title


def _notion_key(page: PageContext) -> Optional[str]:
    if not page.title or page.title == "Notion":
        return None
    return page.title


def _figma_key(page: PageContext) -> Optional[str]:
    title = _strip_suffixes(page.title, r" [–—-] Figma$")
    if not title or title == "Figma" or title.startswith("Untitled"):
        return None
    return title


# --- Project tools ---

def _slack_key(page: PageContext) -> Optional[str]:
    workspace = (page.parts.hostname or "").split(".")[0]
    if not workspace:
        return None
    channel = re.search(r"/archives/([^/?#]+)", page.parts.path)
    if channel:
        return f"{workspace}#{channel.group(1)}"
    return workspace


def _jira_key(page: PageContext) -> Optional[str]:
    issue = re.search(r"/browse/([A-Z][A-Z0-9]*)-\d+", page.parts.path)
    if issue:
        return issue.group(1)
    project = re.search(r"/projects/([^/?#]+)", page.parts.path)
    if project:
        return project.group(1)
    return page.title or "Jira"


def _linear_key(page: PageContext) -> Optional[str]:
    team = re.search(r"/team/([^/?#]+)", page.parts.path)
    if team:
        return team.group(1)
    return page.title or "Linear"


def _prefixed_title(product: str) -> Callable[[str], str]:
    def make_title(key: str) -> str:
        return key if key == product else f"{product}: {key}"
    return make_title


# --- Research ---

def _stack_exchange_key(page: PageContext) -> Optional[str]:
    question = re.match(r"^/questions/(\d+)", page.parts.path)
    if not question:
        return None
    title = _strip_suffixes(page.title, r" - (Stack Overflow|Super User|Server Fault|Ask Ubuntu|[^-]+ Stack Exchange)$")
    return title or f"Question {question.group(1)}"


def _mdn_key(page: PageContext) -> Optional[str]:
    if "/docs/" not in page.parts.path:
        return None
    title = _strip_suffixes(page.title, r" \| MDN( Web Docs)?$", r" - MDN Web Docs$")
    return title or None


def _python_docs_key(page: PageContext) -> Optional[str]:
    path = page.parts.path
    if page.is_root or path.endswith(("/search.html", "/index.html")) or path.rstrip("/").count("/") < 2:
        return None
    title = _strip_suffixes(page.title, r" [—-] Python [\d.]+ documentation$")
    return title or None


def _wikipedia_key(page: PageContext) -> Optional[str]:
    article = re.match(r"^/wiki/([^?#]+)", page.parts.path)
    if not article:
        return None
    name = article.group(1)
    if name == "Main_Page" or name.startswith("Special:"):
        return None
    title = _strip_suffixes(page.title, r" - Wikipedia$")
    return title or name.replace("_", " ")


def _arxiv_key(page: PageContext) -> Optional[str]:
    paper = re.match(r"^/(?:abs|pdf)/([^/?#]+?)(?:\.pdf)?$", page.parts.path)
    if not paper:
        return None
    title = re.sub(r"^\[[^\]]+\]\s*", "", page.title).strip()
    return title or f"arXiv {paper.group(1)}"


DOMAIN_RULES: Sequence[DomainRule] = (
    # Code hosting must stay first: a trusted org/repo page is a repository,
    # never the platform's generic block.
    DomainRule("code_host", re.compile(r"^(www\.)?(github\.com|gitlab\.com|bitbucket\.org)$"), Bucket.REPOSITORY, _code_host_key),
    DomainRule("dropbox", re.compile(r"^(paper\.dropbox\.com|www\.dropbox\.com)$"), Bucket.COLLABORATIVE_DOC, _dropbox_key),
    DomainRule("google_docs", re.compile(r"^docs\.google\.com$"), Bucket.COLLABORATIVE_DOC, _google_docs_key),
    DomainRule("monday", re.compile(r"^.*\.monday\.com$"), Bucket.COLLABORATIVE_DOC, _monday_key),
    DomainRule("notion", re.compile(r"^([^.]+\.)?notion\.(so|site)$"), Bucket.COLLABORATIVE_DOC, _notion_key),
    DomainRule("slack", re.compile(r"^[^.]+\.slack\.com$"), Bucket.PROJECT_TOOL, _slack_key, lambda key: f"Slack: {key}"),
    DomainRule("jira", re.compile(r"^.*\.atlassian\.net$"), Bucket.PROJECT_TOOL, _jira_key, _prefixed_title("Jira")),
    DomainRule("linear", re.compile(r"^linear\.app$"), Bucket.PROJECT_TOOL, _linear_key, _prefixed_title("Linear")),
    DomainRule("figma", re.compile(r"^([^.]+\.)?figma\.com$"), Bucket.COLLABORATIVE_DOC, _figma_key),
    DomainRule("stack_exchange", re.compile(r"^(stackoverflow\.com|superuser\.com|serverfault\.com|askubuntu\.com|[^.]+\.stackexchange\.com)$"), Bucket.RESEARCH, _stack_exchange_key),
    DomainRule("mdn", re.compile(r"^developer\.mozilla\.org$"), Bucket.RESEARCH, _mdn_key),
    DomainRule("python_docs", re.compile(r"^docs\.python\.org$"), Bucket.RESEARCH, _python_docs_key),
    DomainRule("wikipedia", re.compile(r"^([a-z-]+\.)?(m\.)?wikipedia\.org$"), Bucket.RESEARCH, _wikipedia_key),
    DomainRule("arxiv", re.compile(r"^(www\.)?arxiv\.org$"), Bucket.RESEARCH, _arxiv_key),
)


def classify(
    domain: Optional[str],
    url: Optional[str],
    title: Optional[str],
    trusted_orgs: Iterable[str] = (),
    rules: Sequence[DomainRule] = DOMAIN_RULES,
) -> Optional[ClassificationResult]:
    """
    Classify one visited page.

    Returns None when no rule knows the domain (or the URL cannot be parsed),
    a result with bucket None when the matching rule filtered the page out,
    and otherwise the bucket with its grouping key and display title.
    """
    domain = (domain or "").strip().lower()
    if not domain or not url:
        return None
    try:
        parts = urlsplit(url.strip())
        parts.hostname  # raises on a malformed netloc
    except ValueError:
        log.debug(f"Unparseable URL not classified: {url!r}")
        return None
    if not parts.scheme or not parts.netloc:
        return None

    page = PageContext(url=url, parts=parts, title=(title or "").strip(), trusted_orgs=frozenset(trusted_orgs or ()))
    for rule in rules:
        if not rule.matches(domain):
            continue
        key = rule.extract(page)
        if not key:
            return ClassificationResult(bucket=None, grouping_key=None, rule=rule.name)
        return ClassificationResult(bucket=rule.bucket, grouping_key=key, rule=rule.name, title=rule.make_title(key))
    return None


class DomainClassifier:
    """Holds an ordered rule list; the trusted-org allowlist comes with every call."""

    def __init__(self, rules: Sequence[DomainRule] = DOMAIN_RULES):
        self.rules = tuple(rules)

    def classify(
        self,
        domain: Optional[str],
        url: Optional[str],
        title: Optional[str],
        trusted_orgs: Iterable[str] = (),
    ) -> Optional[ClassificationResult]:
        return classify(domain, url, title, trusted_orgs, rules=self.rules)
