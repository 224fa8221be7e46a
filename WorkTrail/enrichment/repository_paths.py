import re
from typing import Iterable, List, Optional
from urllib.parse import urlsplit


CODE_HOST_DOMAINS = ("github.com", "gitlab.com", "bitbucket.org")

# Path segments where the repository part of a code-host URL ends
_NON_REPO_SEGMENTS = frozenset({
    "issues", "pull", "pulls", "pull-requests", "merge_requests", "tree", "blob",
    "commit", "commits", "releases", "actions", "wiki", "-",
})

_SCP_REMOTE = re.compile(r"^[\w.+-]+@[\w.-]+:(?P<path>[^/].*)$")
_URL_SCHEMES = ("http://", "https://", "ssh://", "git://")


def _strip_git_suffix(path: str) -> str:
    path = path.strip("/")
    while path.endswith(".git"):
        path = path[:-4]
    return path


def parse_repository_path(origin_url: Optional[str]) -> Optional[str]:
    """
    Canonical repository path from a remote origin URL.

    git@github.com:facebook/react.git          -> facebook/react
    https://gitlab.com/group/subgroup/project  -> group/subgroup/project
    """
    if not origin_url:
        return None
    url = origin_url.strip()

    match = _SCP_REMOTE.match(url)
    if match:
        path = match.group("path")
    elif url.lower().startswith(_URL_SCHEMES):
        try:
            path = urlsplit(url).path
        except ValueError:
            return None
    else:
        return None

    return _strip_git_suffix(path) or None


def extract_domain(url: Optional[str]) -> Optional[str]:
    if not url or "://" not in url:
        return None
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    return host or None


def is_code_host(domain: Optional[str]) -> bool:
    if not domain:
        return False
    domain = domain.lower()
    return any(domain == host or domain.endswith("." + host) for host in CODE_HOST_DOMAINS)


def extract_repository_path_from_url(url: Optional[str]) -> Optional[str]:
    """
    Repository path of a GitHub/GitLab/Bitbucket page URL.

    https://github.com/facebook/react/issues/123   -> facebook/react
    https://bitbucket.org/atlassian/jira/pull-requests/1 -> atlassian/jira
    """
    if not is_code_host(extract_domain(url)):
        return None
    try:
        path = urlsplit(url.strip()).path
    except ValueError:
        return None

    repo_segments: List[str] = []
    for segment in path.split("/")[1:]:
        if not segment or segment in _NON_REPO_SEGMENTS:
            break
        repo_segments.append(segment)

    if len(repo_segments) < 2:
        return None
    return "/".join(repo_segments)


def is_tracked_repository(path: str, trusted_orgs: Iterable[str] = (), known_paths: Iterable[str] = ()) -> bool:
    """True when the path is a discovered repository or sits under a trusted organization."""
    if path in set(known_paths):
        return True
    return any(path.startswith(f"{org}/") for org in trusted_orgs if org)
