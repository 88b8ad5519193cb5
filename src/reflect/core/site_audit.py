"""Accessibility/SEO audit of a running site.

Fetches a page's HTML, runs a fixed list of marker checks grouped by
category, scores the result and writes JSON, HTML and plain-text reports.

Scoring:
    score = round(passed / total * 100)
    >= 95 Excellent (AAA), >= 85 Good (AA), >= 75 Fair (A), else Needs Improvement

A failing check flagged `warning` counts as a warning rather than a failure
(it still does not count towards `passed`).
"""

from __future__ import annotations

import html as html_lib
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import httpx
import structlog
from bs4 import BeautifulSoup

from reflect.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

REPORT_JSON = "audit-report.json"
REPORT_HTML = "audit-report.html"
REPORT_TEXT = "audit-summary.txt"

RECOMMENDATIONS = [
    "Test with screen readers (NVDA, JAWS, VoiceOver)",
    "Verify color contrast ratios",
    "Test keyboard navigation flow",
    "Validate with axe DevTools",
    "Test on various devices",
]


class AuditFetchError(Exception):
    """Raised when the page cannot be fetched after all retries."""

    def __init__(self, url: str, attempts: int, cause: Exception):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Could not fetch {url} after {attempts} attempt(s): {cause}")


# =============================================================================
# FETCHING
# =============================================================================


def fetch_html(
    url: str,
    retries: int | None = None,
    client: httpx.Client | None = None,
    retry_delay: float | None = None,
) -> str:
    """GET a page, retrying transport errors.

    HTTP error statuses are not retried; their body is returned like any other.

    Args:
        url: Page to fetch
        retries: Extra attempts after the first (default from config)
        client: httpx client to use (one is created if omitted)
        retry_delay: Seconds to wait between attempts (default from config)

    Raises:
        AuditFetchError: If every attempt fails
    """
    cfg = load_app_config().audit
    retries = cfg.retries if retries is None else retries
    retry_delay = cfg.retry_delay_seconds if retry_delay is None else retry_delay

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=cfg.timeout_seconds, follow_redirects=True)

    try:
        attempt = 0
        while True:
            try:
                response = client.get(url)
            except httpx.TransportError as e:
                if attempt >= retries:
                    raise AuditFetchError(url, attempt + 1, e) from e
                attempt += 1
                logger.warning("audit.fetch_retry", url=url, attempt=attempt, retries=retries)
                if retry_delay > 0:
                    time.sleep(retry_delay)
            else:
                if response.is_error:
                    logger.warning("audit.fetch_status", url=url, status=response.status_code)
                return response.text
    finally:
        if owns_client:
            client.close()


# =============================================================================
# CHECKS
# =============================================================================


@dataclass
class AuditPage:
    """Raw HTML plus its parsed tree."""

    url: str
    html: str
    soup: BeautifulSoup

    @classmethod
    def parse(cls, html: str, url: str) -> AuditPage:
        return cls(url=url, html=html, soup=BeautifulSoup(html, "lxml"))

    def has_meta(self, name: str | None = None, prop: str | None = None) -> bool:
        attrs = {"name": name} if name else {"property": prop}
        return self.soup.find("meta", attrs=attrs) is not None

    def has_landmark(self, tag: str, role: str) -> bool:
        return (
            self.soup.find(tag) is not None
            or self.soup.find(attrs={"role": role}) is not None
        )


@dataclass(frozen=True)
class AuditCheck:
    name: str
    category: str
    test: Callable[[AuditPage], bool]
    wcag: str = "N/A"
    level: str = "N/A"
    warning: bool = False


def _lang_en(page: AuditPage) -> bool:
    root = page.soup.find("html")
    lang = root.get("lang", "") if root is not None else ""
    return str(lang).lower().startswith("en")


def _title(page: AuditPage) -> bool:
    return page.soup.title is not None and bool(page.soup.title.get_text(strip=True))


def _skip_link(page: AuditPage) -> bool:
    return "Skip to main content" in page.html or "skip-link" in page.html


def _aria_labels(page: AuditPage) -> bool:
    return (
        page.soup.find(attrs={"aria-label": True}) is not None
        or page.soup.find(attrs={"aria-labelledby": True}) is not None
    )


def _link_rel(page: AuditPage, rel: str) -> bool:
    for link in page.soup.find_all("link"):
        if rel in (link.get("rel") or []):
            return True
    return False


AUDIT_CHECKS: list[AuditCheck] = [
    # Document
    AuditCheck("HTML lang attribute", "Document", _lang_en, "3.1.1", "A"),
    AuditCheck("Viewport meta tag", "Document", lambda p: p.has_meta(name="viewport")),
    # SEO
    AuditCheck("Meta description", "SEO", lambda p: p.has_meta(name="description")),
    AuditCheck("Title tag", "SEO", _title, "2.4.2", "A"),
    # Accessibility
    AuditCheck("Skip to main content link", "Accessibility", _skip_link, "2.4.1", "A"),
    AuditCheck(
        "Main landmark", "Accessibility", lambda p: p.has_landmark("main", "main"), "1.3.1", "A"
    ),
    AuditCheck(
        "Navigation landmark",
        "Accessibility",
        lambda p: p.has_landmark("nav", "navigation"),
        "1.3.1",
        "A",
    ),
    AuditCheck(
        "Header landmark",
        "Accessibility",
        lambda p: p.has_landmark("header", "banner"),
        "1.3.1",
        "A",
    ),
    AuditCheck(
        "Footer landmark",
        "Accessibility",
        lambda p: p.has_landmark("footer", "contentinfo"),
        "1.3.1",
        "A",
    ),
    AuditCheck("ARIA labels", "Accessibility", _aria_labels, "4.1.2", "A"),
    AuditCheck(
        "Focus indicators",
        "Accessibility",
        lambda p: "focus:" in p.html or ":focus" in p.html,
        "2.4.7",
        "AA",
    ),
    # Components
    AuditCheck("Search functionality", "Components", lambda p: "search" in p.html.lower()),
    AuditCheck("Help widget", "Components", lambda p: "help" in p.html.lower()),
    # Branding
    AuditCheck("Favicon SVG", "Branding", lambda p: "favicon.svg" in p.html),
    AuditCheck("Apple touch icon", "Branding", lambda p: _link_rel(p, "apple-touch-icon")),
    # PWA
    AuditCheck("Web manifest", "PWA", lambda p: _link_rel(p, "manifest")),
    AuditCheck("Theme color", "PWA", lambda p: p.has_meta(name="theme-color")),
    # Social
    AuditCheck("Open Graph title", "Social", lambda p: p.has_meta(prop="og:title")),
    AuditCheck("Open Graph description", "Social", lambda p: p.has_meta(prop="og:description")),
    AuditCheck("Twitter card", "Social", lambda p: p.has_meta(name="twitter:card")),
    # Performance
    AuditCheck(
        "CSS variables for theming", "Performance", lambda p: "--" in p.html or "var(" in p.html
    ),
    AuditCheck(
        "Responsive design",
        "Performance",
        lambda p: "responsive" in p.html or "@media" in p.html,
    ),
    # Security
    AuditCheck(
        "HTTPS recommendation",
        "Security",
        lambda p: p.url.startswith("https://"),
        warning=True,
    ),
]


# =============================================================================
# REPORT
# =============================================================================


@dataclass
class CheckResult:
    name: str
    wcag: str
    level: str
    status: str  # passed | warning | failed

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "wcag": self.wcag, "level": self.level, "status": self.status}


@dataclass
class AuditReport:
    url: str
    timestamp: str
    score: int
    compliance_level: str
    passed: int
    warnings: int
    failed: int
    categories: dict[str, list[CheckResult]] = field(default_factory=dict)
    issues: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "timestamp": self.timestamp,
            "score": self.score,
            "complianceLevel": self.compliance_level,
            "summary": {
                "passed": self.passed,
                "warnings": self.warnings,
                "failed": self.failed,
            },
            "categories": {
                cat: [r.to_dict() for r in results] for cat, results in self.categories.items()
            },
            "issues": self.issues,
        }


def compliance_level(score: int) -> str:
    if score >= 95:
        return "Excellent (AAA)"
    if score >= 85:
        return "Good (AA)"
    if score >= 75:
        return "Fair (A)"
    return "Needs Improvement"


def run_audit(
    html: str,
    url: str,
    checks: list[AuditCheck] | None = None,
    now: datetime | None = None,
) -> AuditReport:
    """Run every check against a page and score it."""
    checks = checks if checks is not None else AUDIT_CHECKS
    page = AuditPage.parse(html, url)

    categories: dict[str, list[CheckResult]] = {}
    issues: list[dict[str, str]] = []
    passed = warnings = failed = 0

    for check in checks:
        if check.test(page):
            status = "passed"
            passed += 1
        elif check.warning:
            status = "warning"
            warnings += 1
        else:
            status = "failed"
            failed += 1

        if status != "passed":
            issues.append(
                {
                    "level": check.level,
                    "wcag": check.wcag,
                    "issue": check.name,
                    "severity": "warning" if status == "warning" else "error",
                }
            )
        categories.setdefault(check.category, []).append(
            CheckResult(check.name, check.wcag, check.level, status)
        )

    score = round(passed / len(checks) * 100) if checks else 0
    report = AuditReport(
        url=url,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
        score=score,
        compliance_level=compliance_level(score),
        passed=passed,
        warnings=warnings,
        failed=failed,
        categories=categories,
        issues=issues,
    )
    logger.info("audit.completed", url=url, score=score, failed=failed, warnings=warnings)
    return report


def render_text_summary(report: AuditReport) -> str:
    errors = [i for i in report.issues if i["severity"] == "error"]
    warns = [i for i in report.issues if i["severity"] == "warning"]

    lines = [
        "InterpretReflect Audit Summary",
        "==============================",
        f"Date: {report.timestamp}",
        f"URL: {report.url}",
        "",
        "RESULTS",
        "-------",
        f"Passed: {report.passed}",
        f"Warnings: {report.warnings}",
        f"Failed: {report.failed}",
        "",
        f"Overall Score: {report.score}% ({report.compliance_level})",
        "",
        "FAILED CHECKS",
        "-------------",
    ]
    lines += [f"- {i['issue']} (WCAG {i['wcag']})" for i in errors] or ["None"]
    lines += ["", "WARNINGS", "--------"]
    lines += [f"- {i['issue']}" for i in warns] or ["None"]
    lines += ["", "RECOMMENDATIONS", "---------------"]
    lines += [f"{n}. {rec}" for n, rec in enumerate(RECOMMENDATIONS, start=1)]
    return "\n".join(lines) + "\n"


def render_html_report(report: AuditReport) -> str:
    esc = html_lib.escape
    icons = {"passed": "&#x2705;", "warning": "&#x26A0;&#xFE0F;", "failed": "&#x274C;"}

    category_blocks = []
    for category, results in report.categories.items():
        items = []
        for r in results:
            wcag = f' <span class="check-wcag">WCAG {esc(r.wcag)}</span>' if r.wcag != "N/A" else ""
            items.append(
                f'<li class="check-item {r.status}">{icons[r.status]} '
                f'<span class="check-name">{esc(r.name)}</span>{wcag}</li>'
            )
        category_blocks.append(
            f'<div class="category"><h3>{esc(category)}</h3>'
            f'<ul class="check-list">{"".join(items)}</ul></div>'
        )

    issues_block = ""
    if report.issues:
        issue_items = "".join(
            f"<li>{esc(i['issue'])} (WCAG {esc(i['wcag'])} - Level {esc(i['level'])})</li>"
            for i in report.issues
        )
        issues_block = f'<div class="section"><h2>Issues to Address</h2><ul>{issue_items}</ul></div>'

    recs = "".join(f"<li>{esc(r)}</li>" for r in RECOMMENDATIONS)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>InterpretReflect Audit Report - {esc(report.timestamp)}</title>
<style>
body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; margin: 2rem; color: #333; }}
.summary {{ display: flex; gap: 2rem; }}
.passed {{ color: #4CAF50; }} .warning {{ color: #B8860B; }} .failed {{ color: #F44336; }}
.check-list {{ list-style: none; padding: 0; }}
.check-wcag {{ font-size: 0.8rem; color: #666; }}
</style>
</head>
<body>
<h1>InterpretReflect Audit Report</h1>
<p>{esc(report.url)} | {esc(report.timestamp)}</p>
<div class="summary">
<div class="passed"><strong>{report.passed}</strong> Passed</div>
<div class="warning"><strong>{report.warnings}</strong> Warnings</div>
<div class="failed"><strong>{report.failed}</strong> Failed</div>
<div><strong>{report.score}%</strong> Score ({esc(report.compliance_level)})</div>
</div>
<div class="section"><h2>Test Results by Category</h2>{"".join(category_blocks)}</div>
{issues_block}
<div class="recommendations"><h3>Recommendations for Improvement</h3><ul>{recs}</ul></div>
</body>
</html>
"""


def write_reports(
    report: AuditReport,
    out_dir: Path | None = None,
    now: datetime | None = None,
) -> Path:
    """Write JSON, HTML and text reports into a timestamped subdirectory.

    Returns:
        The directory the reports were written to
    """
    base = out_dir if out_dir is not None else load_app_config().audit.reports_dir
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    target = base / stamp
    target.mkdir(parents=True, exist_ok=True)

    (target / REPORT_JSON).write_text(
        json.dumps(report.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    (target / REPORT_HTML).write_text(render_html_report(report), encoding="utf-8")
    (target / REPORT_TEXT).write_text(render_text_summary(report), encoding="utf-8")

    logger.info("audit.reports_written", path=str(target))
    return target
