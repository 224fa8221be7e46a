import re

import pytest

from WorkTrail.enrichment.domain_classifier import DOMAIN_RULES, DomainClassifier, DomainRule, classify
from WorkTrail.models import Bucket


def test_trusted_org_repo_page_is_a_repository():
    result = classify("github.com", "https://github.com/acme/widgets/pull/3", "Fix parser", ["acme"])
    assert result.bucket == Bucket.REPOSITORY
    assert result.grouping_key == "acme/widgets"
    assert result.rule == "code_host"


def test_untrusted_repo_collapses_to_platform_key():
    result = classify("github.com", "https://github.com/facebook/react", "React", ["acme"])
    assert result.bucket == Bucket.REPOSITORY
    assert result.grouping_key == "GitHub"

    gitlab = classify("gitlab.com", "https://gitlab.com/group/project", "", [])
    assert gitlab.grouping_key == "GitLab"


def test_trusted_org_without_repo_segment_is_generic():
    result = classify("github.com", "https://github.com/acme", "acme", ["acme"])
    assert result.grouping_key == "GitHub"


def test_code_host_root_is_filtered():
    result = classify("github.com", "https://github.com/", "GitHub", ["acme"])
    assert result is not None
    assert result.bucket is None
    assert result.rule == "code_host"


def test_first_matching_rule_is_authoritative():
    catch_all = DomainRule("catch_all", re.compile(r".*"), Bucket.RESEARCH, lambda page: "anything")
    classifier = DomainClassifier(rules=tuple(DOMAIN_RULES) + (catch_all,))

    # code_host filters the root page; the catch-all is never asked
    result = classifier.classify("github.com", "https://github.com/", "GitHub", ["acme"])
    assert result.rule == "code_host"
    assert result.bucket is None

    other = classifier.classify("example.com", "https://example.com/x", "Example")
    assert other.rule == "catch_all"


@pytest.mark.parametrize("domain,url,title,bucket,key", [
    ("docs.google.com", "https://docs.google.com/document/d/1a/edit", "Roadmap - Google Docs", Bucket.COLLABORATIVE_DOC, "Roadmap"),
    ("paper.dropbox.com", "https://paper.dropbox.com/doc/Plan--abc", "Q3 Plan - Dropbox Paper", Bucket.COLLABORATIVE_DOC, "Q3 Plan"),
    ("acme.monday.com", "https://acme.monday.com/boards/123", "Sprint board", Bucket.COLLABORATIVE_DOC, "Sprint board"),
    ("www.figma.com", "https://www.figma.com/file/abc/Onboarding", "Onboarding – Figma", Bucket.COLLABORATIVE_DOC, "Onboarding"),
    ("acme.slack.com", "https://acme.slack.com/archives/C123", "general", Bucket.PROJECT_TOOL, "acme#C123"),
    ("acme.atlassian.net", "https://acme.atlassian.net/browse/WID-12", "WID-12 Crash", Bucket.PROJECT_TOOL, "WID"),
    ("linear.app", "https://linear.app/acme/team/ENG/active", "Active issues", Bucket.PROJECT_TOOL, "ENG"),
    ("stackoverflow.com", "https://stackoverflow.com/questions/123/how-to", "How to parse dates - Stack Overflow", Bucket.RESEARCH, "How to parse dates"),
    ("en.wikipedia.org", "https://en.wikipedia.org/wiki/Interval_scheduling", "Interval scheduling - Wikipedia", Bucket.RESEARCH, "Interval scheduling"),
    ("arxiv.org", "https://arxiv.org/abs/2101.00001", "[2101.00001] Attention again", Bucket.RESEARCH, "Attention again"),
])
def test_known_pages(domain, url, title, bucket, key):
    result = classify(domain, url, title)
    assert result.bucket == bucket
    assert result.grouping_key == key


def test_project_tool_titles_are_prefixed():
    assert classify("acme.slack.com", "https://acme.slack.com/archives/C123", "").title == "Slack: acme#C123"
    assert classify("acme.atlassian.net", "https://acme.atlassian.net/browse/WID-1", "").title == "Jira: WID"


def test_python_docs_title_suffix_stripped():
    result = classify(
        "docs.python.org",
        "https://docs.python.org/3/library/zoneinfo.html",
        "zoneinfo — IANA time zone support — Python 3.12.1 documentation",
    )
    assert result.bucket == Bucket.RESEARCH
    assert result.grouping_key == "zoneinfo — IANA time zone support"


@pytest.mark.parametrize("domain,url,title", [
    ("docs.google.com", "https://docs.google.com/", "Google Docs"),
    ("docs.google.com", "https://docs.google.com/document/d/1/edit", "Untitled document - Google Docs"),
    ("www.dropbox.com", "https://www.dropbox.com/home/Projects", "Files - Dropbox"),
    ("stackoverflow.com", "https://stackoverflow.com/", "Stack Overflow"),
    ("en.wikipedia.org", "https://en.wikipedia.org/wiki/Main_Page", "Wikipedia"),
    ("developer.mozilla.org", "https://developer.mozilla.org/en-US/", "MDN Web Docs"),
])
def test_generic_pages_are_filtered(domain, url, title):
    result = classify(domain, url, title)
    assert result is not None
    assert result.bucket is None
    assert not result.is_grouped


def test_unknown_domain_is_unclassified():
    assert classify("example.com", "https://example.com/page", "Example") is None


@pytest.mark.parametrize("url", ["http://[::1", "not a url", "", None])
def test_malformed_urls_never_raise(url):
    assert classify("github.com", url, "x", ["acme"]) is None


def test_domain_case_is_ignored():
    result = classify("GitHub.com", "https://github.com/acme/widgets", "", ["acme"])
    assert result.grouping_key == "acme/widgets"
