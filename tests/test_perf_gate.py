import json
import os
import types

import pytest

from core.perf.gate import (
    PERFORMANCE_GATES,
    RELAXED_GATES,
    PageResult,
    build_report,
    evaluate,
    format_value,
    load_results,
    parse_lighthouse_result,
    parse_lighthouse_text,
    severity,
    should_allow_deployment,
    thresholds_for,
)
from scripts import performance_gate


def _lhr(url="http://localhost:8000/", perf=0.98, lcp=1200.0, unused_js=0):
    return {
        "finalUrl": url,
        "fetchTime": "2025-03-01T12:00:00Z",
        "categories": {
            "performance": {"score": perf},
            "accessibility": {"score": 1.0},
            "best-practices": {"score": 0.95},
            "seo": {"score": 0.92},
        },
        "audits": {
            "largest-contentful-paint": {"numericValue": lcp},
            "first-contentful-paint": {"numericValue": 900},
            "cumulative-layout-shift": {"numericValue": 0.01},
            "total-blocking-time": {"numericValue": 50},
            "speed-index": {"numericValue": 1500},
            "interactive": {"numericValue": 2000},
            "server-response-time": {"numericValue": 120},
            "total-byte-weight": {"numericValue": 500_000},
            "unused-javascript": {"numericValue": unused_js},
        },
    }


def test_thresholds_per_environment():
    assert thresholds_for("production") is PERFORMANCE_GATES
    assert thresholds_for("staging") is PERFORMANCE_GATES
    assert thresholds_for("development") is RELAXED_GATES
    assert thresholds_for("nonsense") is PERFORMANCE_GATES


def test_parse_lighthouse_result():
    result = parse_lighthouse_result(_lhr())
    assert result.url == "http://localhost:8000/"
    assert result.scores == {"performance": 98, "accessibility": 100, "bestPractices": 95, "seo": 92}
    assert result.audits["lcp"] == 1200.0
    assert result.audits["unusedCSS"] == 0.0
    assert result.fetched_at == "2025-03-01T12:00:00Z"


def test_parse_lighthouse_result_tolerates_missing_sections():
    result = parse_lighthouse_result({"requestedUrl": "http://x/"})
    assert result.url == "http://x/"
    assert result.scores["performance"] == 0
    assert result.audits["lcp"] == 0.0


@pytest.mark.parametrize(
    "actual, threshold, expected",
    [(96, 95, "low"), (83, 95, "medium"), (70, 95, "high"), (40, 95, "critical"), (5000, 2500, "critical")],
)
def test_severity_bands(actual, threshold, expected):
    assert severity(actual, threshold) == expected


def test_evaluate_passing_page_has_no_violations():
    assert evaluate([parse_lighthouse_result(_lhr())]) == []


def test_evaluate_flags_scores_and_metrics():
    result = parse_lighthouse_result(_lhr(perf=0.4, lcp=3500))
    violations = evaluate([result])
    by_metric = {v.metric: v for v in violations}
    assert by_metric["Performance"].severity == "critical"
    assert by_metric["Performance"].type == "score"
    assert by_metric["LCP"].severity == "high"
    assert by_metric["LCP"].describe() == "LCP: 3.5s (threshold: 2.5s)"


def test_unused_bytes_only_checked_when_reported():
    result = parse_lighthouse_result(_lhr(unused_js=60_000))
    assert [v.metric for v in evaluate([result])] == ["Unused JS"]


def test_deployment_blocked_only_by_critical():
    low = evaluate([parse_lighthouse_result(_lhr(lcp=2600))])
    assert low and should_allow_deployment(low, "production")
    critical = evaluate([parse_lighthouse_result(_lhr(perf=0.3))])
    assert not should_allow_deployment(critical, "staging")


def test_format_value():
    assert format_value(850, "ms") == "850ms"
    assert format_value(2500, "ms") == "2.5s"
    assert format_value(512, "bytes") == "512B"
    assert format_value(20_480, "bytes") == "20KB"
    assert format_value(2 * 1024 * 1024, "bytes") == "2.0MB"
    assert format_value(0.12) == "0.12"


def test_build_report_summary():
    results = [parse_lighthouse_result(_lhr(perf=0.3))]
    violations = evaluate(results)
    report = build_report(results, violations, "staging", duration_ms=42)
    assert report["environment"] == "staging"
    assert report["duration"] == 42
    assert report["summary"]["urlsTested"] == 1
    assert report["summary"]["criticalViolations"] == 1
    assert report["summary"]["passed"] is False
    assert report["results"][0]["scores"]["performance"] == 30


def test_load_results_keeps_newest_report_per_url(tmp_path):
    old = tmp_path / "old.json"
    old.write_text(json.dumps(_lhr(perf=0.5)))
    os.utime(old, (1_000, 1_000))
    (tmp_path / "new.json").write_text(json.dumps([_lhr(perf=0.99), _lhr(url="http://localhost:8000/blog")]))
    (tmp_path / "broken.json").write_text("{not json")
    (tmp_path / "manifest.json").write_text(json.dumps({"not": "a report"}))

    results = load_results(tmp_path)
    assert sorted(r.url for r in results) == ["http://localhost:8000/", "http://localhost:8000/blog"]
    home = next(r for r in results if r.url.endswith(":8000/"))
    assert home.scores["performance"] == 99


def test_load_results_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_results(tmp_path / "missing")
    with pytest.raises(FileNotFoundError):
        load_results(tmp_path)


def test_parse_lighthouse_text():
    output = """
    Performance: 97
    Accessibility: 100
    Best Practices: 92
    SEO: 90
    First Contentful Paint 0.8 s
    Largest Contentful Paint 1,250 ms
    Cumulative Layout Shift 0.02
    """
    result = parse_lighthouse_text(output, url="http://site/")
    assert result.scores == {"performance": 97, "accessibility": 100, "bestPractices": 92, "seo": 90}
    assert result.audits["fcp"] == pytest.approx(800)
    assert result.audits["lcp"] == 1250
    assert result.audits["cls"] == pytest.approx(0.02)


def test_gate_script_approves_and_writes_report(tmp_path, capsys):
    results = tmp_path / "lhci"
    results.mkdir()
    (results / "lhr.json").write_text(json.dumps(_lhr()))
    report = tmp_path / "report.json"

    code = performance_gate.main(["production", "--results-dir", str(results), "--report", str(report)])

    assert code == 0
    assert "DEPLOYMENT APPROVED" in capsys.readouterr().out
    assert json.loads(report.read_text())["summary"]["passed"] is True


def test_gate_script_blocks_on_critical(tmp_path):
    results = tmp_path / "lhci"
    results.mkdir()
    (results / "lhr.json").write_text(json.dumps(_lhr(perf=0.2)))
    code = performance_gate.main(["staging", "--results-dir", str(results), "--report", str(tmp_path / "r.json")])
    assert code == 1


def test_gate_script_missing_results(tmp_path):
    missing = str(tmp_path / "none")
    assert performance_gate.main(["staging", "--results-dir", missing]) == 1
    assert performance_gate.main(["development", "--results-dir", missing]) == 0


def _fake_lighthouse(monkeypatch, reports, stdout=""):
    """Stand in for the CLI: write the queued JSON report, or only print `stdout` when none is queued."""
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        report = reports.pop(0) if reports else None
        if report is not None:
            target = next(arg for arg in cmd if arg.startswith("--output-path=")).split("=", 1)[1]
            with open(target, "w", encoding="utf-8") as fh:
                json.dump(report, fh)
        return types.SimpleNamespace(returncode=0, stdout=stdout, stderr="")

    monkeypatch.setattr(performance_gate.shutil, "which", lambda name: "/usr/bin/lighthouse")
    monkeypatch.setattr(performance_gate.subprocess, "run", fake_run)
    return calls


TEXT_OUTPUT = """
Performance: 97
Accessibility: 100
Best Practices: 92
SEO: 90
Largest Contentful Paint 1.1 s
"""


def test_gate_falls_back_to_cli_text_output(tmp_path, monkeypatch):
    calls = _fake_lighthouse(monkeypatch, [_lhr(url="http://site/"), None], stdout=TEXT_OUTPUT)
    report = tmp_path / "report.json"

    code = performance_gate.main(
        ["production", "--results-dir", str(tmp_path / "lhci"), "--report", str(report),
         "--url", "http://site/", "--url", "http://site/blog"]
    )

    assert code == 0
    assert len(calls) == 2
    results = {r["url"]: r for r in json.loads(report.read_text())["results"]}
    assert set(results) == {"http://site/", "http://site/blog"}
    assert results["http://site/blog"]["scores"]["performance"] == 97
    assert results["http://site/blog"]["audits"]["lcp"] == pytest.approx(1100)


def test_gate_fails_when_cli_output_has_no_scores(tmp_path, monkeypatch):
    _fake_lighthouse(monkeypatch, [None], stdout="Chrome crashed")
    args = ["--results-dir", str(tmp_path / "lhci"), "--url", "http://site/"]
    assert performance_gate.main(["staging", *args]) == 1
    assert performance_gate.main(["development", *args]) == 0


def test_missing_lighthouse_binary(tmp_path, monkeypatch):
    monkeypatch.setattr(performance_gate.shutil, "which", lambda name: None)
    with pytest.raises(RuntimeError):
        performance_gate.run_lighthouse(["http://site/"], tmp_path)
