"""
Performance budget gate for Lighthouse results.

Reads Lighthouse JSON reports (or the CLI's text summary), compares scores and
metrics against the budget for an environment and decides whether a deploy
may go ahead. Only critical violations block.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

log = logging.getLogger("site.perf")

PERFORMANCE_GATES: Dict[str, float] = {
    # lighthouse category scores, 0-100
    "performance": 95,
    "accessibility": 95,
    "bestPractices": 90,
    "seo": 90,
    # core web vitals, ms except cls
    "lcp": 2500,
    "fcp": 1800,
    "cls": 0.1,
    "tbt": 200,
    "si": 3400,
    "tti": 5000,
    # budgets
    "ttfb": 600,
    "totalSize": 1_600_000,
    "unusedCSS": 20_000,
    "unusedJS": 50_000,
}

RELAXED_GATES: Dict[str, float] = {
    **PERFORMANCE_GATES,
    "performance": 80,
    "accessibility": 90,
    "bestPractices": 80,
    "seo": 80,
    "lcp": 3000,
    "fcp": 2200,
    "cls": 0.15,
    "tbt": 300,
    "si": 4000,
    "tti": 6000,
    "ttfb": 800,
    "totalSize": 2_000_000,
    "unusedCSS": 30_000,
    "unusedJS": 75_000,
}

DEFAULT_BASE_URL = "http://localhost:8000"
TEST_PATHS = ("/", "/portfolio", "/blog", "/flights")

ENV_CONFIG = {
    "development": {"paths": ("/",), "relaxed_thresholds": True, "skip_on_error": True},
    "staging": {"paths": TEST_PATHS, "relaxed_thresholds": False, "skip_on_error": False},
    "production": {"paths": TEST_PATHS, "relaxed_thresholds": False, "skip_on_error": False},
}

SCORE_CATEGORIES = {
    "performance": "performance",
    "accessibility": "accessibility",
    "bestPractices": "best-practices",
    "seo": "seo",
}

AUDIT_IDS = {
    "lcp": "largest-contentful-paint",
    "fcp": "first-contentful-paint",
    "cls": "cumulative-layout-shift",
    "tbt": "total-blocking-time",
    "si": "speed-index",
    "tti": "interactive",
    "ttfb": "server-response-time",
    "totalSize": "total-byte-weight",
    "unusedCSS": "unused-css-rules",
    "unusedJS": "unused-javascript",
}

SCORE_CHECKS = (
    ("performance", "Performance"),
    ("accessibility", "Accessibility"),
    ("bestPractices", "Best Practices"),
    ("seo", "SEO"),
)
# (key, label, unit, only checked when > 0)
METRIC_CHECKS = (
    ("lcp", "LCP", "ms", False),
    ("fcp", "FCP", "ms", False),
    ("cls", "CLS", "", False),
    ("tbt", "TBT", "ms", False),
    ("si", "Speed Index", "ms", False),
    ("tti", "TTI", "ms", False),
    ("ttfb", "TTFB", "ms", False),
    ("totalSize", "Total Size", "bytes", False),
    ("unusedCSS", "Unused CSS", "bytes", True),
    ("unusedJS", "Unused JS", "bytes", True),
)

SEVERITIES = ("critical", "high", "medium", "low")


@dataclass
class PageResult:
    url: str
    scores: Dict[str, int] = field(default_factory=dict)
    audits: Dict[str, float] = field(default_factory=dict)
    fetched_at: Optional[str] = None


@dataclass
class Violation:
    type: str  # "score" or "metric"
    metric: str
    actual: float
    threshold: float
    url: str
    unit: str = ""
    severity: str = "low"

    def describe(self) -> str:
        return (
            f"{self.metric}: {format_value(self.actual, self.unit)} "
            f"(threshold: {format_value(self.threshold, self.unit)})"
        )


def thresholds_for(environment: str) -> Dict[str, float]:
    config = ENV_CONFIG.get(environment, ENV_CONFIG["staging"])
    return RELAXED_GATES if config["relaxed_thresholds"] else PERFORMANCE_GATES


def parse_lighthouse_result(lhr: dict) -> PageResult:
    """Turn one Lighthouse result object (lhr) into a PageResult."""
    categories = lhr.get("categories") or {}
    audits = lhr.get("audits") or {}
    url = lhr.get("finalUrl") or lhr.get("finalDisplayedUrl") or lhr.get("requestedUrl") or "unknown"

    scores = {}
    for key, category_id in SCORE_CATEGORIES.items():
        score = (categories.get(category_id) or {}).get("score")
        scores[key] = round(score * 100) if isinstance(score, (int, float)) else 0

    values = {}
    for key, audit_id in AUDIT_IDS.items():
        value = (audits.get(audit_id) or {}).get("numericValue")
        values[key] = float(value) if isinstance(value, (int, float)) else 0.0

    return PageResult(url=url, scores=scores, audits=values, fetched_at=lhr.get("fetchTime"))


def load_results(directory) -> List[PageResult]:
    """
    Load every Lighthouse JSON report in `directory`, newest file first. When the
    same URL appears more than once, only the newest report for it is kept.
    """
    path = Path(directory)
    if not path.is_dir():
        raise FileNotFoundError(f"Lighthouse results directory not found: {path}")

    files = sorted(path.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)
    results: List[PageResult] = []
    seen = set()
    for file in files:
        try:
            data = json.loads(file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Skipping unreadable report %s: %s", file, exc)
            continue
        reports = data if isinstance(data, list) else [data]
        for lhr in reports:
            if not isinstance(lhr, dict) or "categories" not in lhr:
                continue
            result = parse_lighthouse_result(lhr)
            if result.url in seen:
                continue
            seen.add(result.url)
            results.append(result)

    if not results:
        raise FileNotFoundError(f"No Lighthouse results found in {path}")
    return results


def severity(actual: float, threshold: float) -> str:
    if not threshold:
        return "critical" if actual else "low"
    diff = abs(actual - threshold) / threshold
    if diff > 0.5:
        return "critical"
    if diff > 0.25:
        return "high"
    if diff > 0.1:
        return "medium"
    return "low"


def evaluate(results: Iterable[PageResult], thresholds: Dict[str, float] = PERFORMANCE_GATES) -> List[Violation]:
    violations: List[Violation] = []
    for result in results:
        for key, label in SCORE_CHECKS:
            actual, threshold = result.scores.get(key, 0), thresholds[key]
            if actual < threshold:
                violations.append(
                    Violation("score", label, actual, threshold, result.url, severity=severity(actual, threshold))
                )
        for key, label, unit, only_when_present in METRIC_CHECKS:
            actual, threshold = result.audits.get(key, 0), thresholds[key]
            if only_when_present and actual <= 0:
                continue
            if actual > threshold:
                violations.append(
                    Violation("metric", label, actual, threshold, result.url, unit, severity(actual, threshold))
                )
    return violations


def format_value(value, unit: str = "") -> str:
    if unit == "ms":
        return f"{round(value)}ms" if value < 1000 else f"{value / 1000:.1f}s"
    if unit == "bytes":
        if value < 1024:
            return f"{int(value)}B"
        if value < 1024 * 1024:
            return f"{round(value / 1024)}KB"
        return f"{value / (1024 * 1024):.1f}MB"
    return str(value)


def group_by_severity(violations: Iterable[Violation]) -> Dict[str, List[Violation]]:
    grouped: Dict[str, List[Violation]] = {s: [] for s in SEVERITIES}
    for violation in violations:
        grouped[violation.severity].append(violation)
    return grouped


def should_allow_deployment(violations: Iterable[Violation], environment: str = "staging") -> bool:
    violations = list(violations)
    grouped = group_by_severity(violations)
    if grouped["critical"]:
        log.error("Deployment blocked: %s critical performance violation(s)", len(grouped["critical"]))
        return False
    if grouped["high"] and environment == "production":
        log.warning("%s high-severity performance violation(s) in production", len(grouped["high"]))
    return True


def build_report(
    results: List[PageResult],
    violations: List[Violation],
    environment: str,
    duration_ms: int = 0,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now(timezone.utc)
    grouped = group_by_severity(violations)
    return {
        "timestamp": now.isoformat(),
        "environment": environment,
        "duration": duration_ms,
        "results": [asdict(r) for r in results],
        "violations": [asdict(v) for v in violations],
        "summary": {
            "urlsTested": len(results),
            "totalViolations": len(violations),
            "criticalViolations": len(grouped["critical"]),
            "highViolations": len(grouped["high"]),
            "passed": not violations,
        },
    }


_TEXT_SCORE_RE = re.compile(r"(Performance|Accessibility|Best Practices|SEO)\s*:\s*(\d{1,3})", re.IGNORECASE)
_TEXT_METRIC_RE = re.compile(
    r"(First Contentful Paint|Largest Contentful Paint|Total Blocking Time|Cumulative Layout Shift|"
    r"Speed Index|Time to Interactive)\s*[:\-]?\s*([\d.,]+)\s*(ms|s)?",
    re.IGNORECASE,
)
_TEXT_METRIC_KEYS = {
    "first contentful paint": "fcp",
    "largest contentful paint": "lcp",
    "total blocking time": "tbt",
    "cumulative layout shift": "cls",
    "speed index": "si",
    "time to interactive": "tti",
}
_TEXT_SCORE_KEYS = {
    "performance": "performance",
    "accessibility": "accessibility",
    "best practices": "bestPractices",
    "seo": "seo",
}


def parse_lighthouse_text(output: str, url: str = "unknown") -> PageResult:
    """Pull scores and metrics out of Lighthouse CLI text output ("Performance: 97", "Speed Index 1.2 s")."""
    result = PageResult(url=url)
    for name, value in _TEXT_SCORE_RE.findall(output or ""):
        result.scores.setdefault(_TEXT_SCORE_KEYS[name.lower()], int(value))
    for name, value, unit in _TEXT_METRIC_RE.findall(output or ""):
        key = _TEXT_METRIC_KEYS[name.lower()]
        number = float(value.replace(",", ""))
        if unit.lower() == "s":
            number *= 1000
        result.audits.setdefault(key, number)
    return result


__all__ = [
    "PERFORMANCE_GATES",
    "RELAXED_GATES",
    "ENV_CONFIG",
    "TEST_PATHS",
    "DEFAULT_BASE_URL",
    "PageResult",
    "Violation",
    "thresholds_for",
    "parse_lighthouse_result",
    "load_results",
    "severity",
    "evaluate",
    "format_value",
    "group_by_severity",
    "should_allow_deployment",
    "build_report",
    "parse_lighthouse_text",
]
