import itertools
import json
from datetime import date

import pytest

from conftest import ScriptedHttpClient, json_response, make_zip
from mp_sync.utils.api_client import ApiResponse, MarketplaceClient
from mp_sync.utils.dates import PeriodWindow
from mp_sync.utils.reports import (
    DownloadError,
    JobStatus,
    ReportGenerationError,
    ReportJob,
    ReportJobOrchestrator,
    ReportTimeoutError,
    WBStockReportEndpoints,
)

PERIOD = PeriodWindow(date(2026, 2, 1), date(2026, 2, 7))


def status_response(job_id, status, **extra):
    return json_response({"data": [dict(id=job_id, status=status, **extra)]})


def build(http, config, fake_sleep, ids=None, **kwargs):
    ids = iter(ids or ["job-1", "job-2"])
    return ReportJobOrchestrator(
        MarketplaceClient(http, max_attempts=1, sleep=fake_sleep),
        http,
        config,
        WBStockReportEndpoints(),
        sleep=fake_sleep,
        id_factory=lambda: next(ids),
        **kwargs
    )


@pytest.mark.parametrize("raw, expected", [
    ("pending", JobStatus.PENDING),
    ("PROCESSING", JobStatus.PROCESSING),
    ("SUCCESS", JobStatus.READY),
    ("done", JobStatus.READY),
    ("FAILED", JobStatus.ERROR),
    ("something-new", JobStatus.PROCESSING),
    (None, JobStatus.PROCESSING),
])
def test_status_parsing(raw, expected):
    assert JobStatus.parse(raw) == expected


def test_job_status_is_monotonic():
    job = ReportJob(id="j", period=PERIOD)
    assert job.advance(JobStatus.PENDING)
    assert job.advance(JobStatus.PROCESSING)
    assert not job.advance(JobStatus.PENDING)
    assert job.status == JobStatus.PROCESSING
    assert job.advance(JobStatus.READY)

    with pytest.raises(ValueError):
        job.advance(JobStatus.ERROR)


def test_create_job_payload(config, fake_sleep):
    http = ScriptedHttpClient([json_response({"data": "started"})])
    orchestrator = build(http, config, fake_sleep)

    job = orchestrator.create_job(PERIOD)

    assert job.id == "job-1"
    assert job.status == JobStatus.PENDING
    call = http.calls[0]
    assert call["url"].endswith("/api/v2/nm-report/downloads")
    body = json.loads(call["payload"])
    assert body["id"] == "job-1"
    assert body["reportType"] == "STOCK_HISTORY_REPORT_CSV"
    assert body["params"]["currentPeriod"] == {"start": "2026-02-01", "end": "2026-02-07"}
    assert body["params"]["stockType"] == "wb"


def test_poll_ready_after_three_checks(config, fake_sleep):
    http = ScriptedHttpClient([
        status_response("job-1", "PROCESSING"),
        status_response("job-1", "PROCESSING"),
        status_response("job-1", "SUCCESS"),
    ])
    orchestrator = build(http, config, fake_sleep, poll_interval=5.0)
    job = ReportJob(id="job-1", period=PERIOD, status=JobStatus.PENDING)

    orchestrator.poll_until_ready(job)

    assert job.status == JobStatus.READY
    assert len(http.calls) == 3
    assert fake_sleep.calls == [5.0, 5.0, 5.0]


def test_poll_times_out(config, fake_sleep):
    http = ScriptedHttpClient([status_response("job-1", "PROCESSING") for _ in range(5)])
    orchestrator = build(http, config, fake_sleep, max_poll_attempts=5)
    job = ReportJob(id="job-1", period=PERIOD, status=JobStatus.PENDING)

    with pytest.raises(ReportTimeoutError):
        orchestrator.poll_until_ready(job)
    assert len(http.calls) == 5


def test_poll_surfaces_remote_error(config, fake_sleep):
    http = ScriptedHttpClient([status_response("job-1", "FAILED", error="bad period")])
    orchestrator = build(http, config, fake_sleep)
    job = ReportJob(id="job-1", period=PERIOD, status=JobStatus.PENDING)

    with pytest.raises(ReportGenerationError) as exc:
        orchestrator.poll_until_ready(job)
    assert "bad period" in str(exc.value)
    assert job.status == JobStatus.ERROR


def test_unlisted_job_keeps_polling(config, fake_sleep):
    http = ScriptedHttpClient([
        json_response({"data": []}),
        status_response("job-1", "SUCCESS"),
    ])
    orchestrator = build(http, config, fake_sleep)
    job = ReportJob(id="job-1", period=PERIOD, status=JobStatus.PENDING)

    orchestrator.poll_until_ready(job)
    assert job.status == JobStatus.READY


def test_download_error(config, fake_sleep):
    http = ScriptedHttpClient([ApiResponse(404, b"gone")])
    orchestrator = build(http, config, fake_sleep)

    with pytest.raises(DownloadError) as exc:
        orchestrator.download_artifact(ReportJob(id="job-1", period=PERIOD))
    assert exc.value.status == 404
    assert http.calls[0]["url"].endswith("/api/v2/nm-report/downloads/file/job-1")


def test_acquire_report_decodes_csv(config, fake_sleep):
    blob = make_zip({"report.csv": 'VendorCode,Name\nA-1,"Pan, 24cm"\n'})
    http = ScriptedHttpClient([
        json_response({"data": "started"}),
        status_response("job-1", "SUCCESS"),
        ApiResponse(200, blob),
    ])
    orchestrator = build(http, config, fake_sleep)

    header, rows = orchestrator.acquire_report(PERIOD)

    assert header == ["VendorCode", "Name"]
    assert rows == [["A-1", "Pan, 24cm"]]


def test_acquire_report_with_no_rows(config, fake_sleep):
    http = ScriptedHttpClient([
        json_response({"data": "started"}),
        status_response("job-1", "SUCCESS"),
        ApiResponse(200, make_zip({"report.csv": "VendorCode,Name\n"})),
    ])
    header, rows = build(http, config, fake_sleep).acquire_report(PERIOD)
    assert header == ["VendorCode", "Name"]
    assert rows == []


def test_acquire_reports_sequences_creations_and_keeps_order(config, fake_sleep):
    polls = {"job-1": itertools.count(), "job-2": itertools.count()}
    files = {
        "job-1": make_zip({"a.csv": "k\nseven\n"}),
        "job-2": make_zip({"b.csv": "k\ntwenty-eight\n"}),
    }

    def respond(method, url, headers, payload):
        if method == "POST":
            return json_response({"data": "started"})
        if "/file/" in url:
            return ApiResponse(200, files[url.rsplit("/", 1)[1]])
        job_id = url.rsplit("=", 1)[1]
        # job-1 needs two checks, job-2 is ready at once
        ready = next(polls[job_id]) >= (1 if job_id == "job-1" else 0)
        return status_response(job_id, "SUCCESS" if ready else "PROCESSING")

    http = ScriptedHttpClient(respond)
    orchestrator = build(http, config, fake_sleep, creation_delay=20.0, poll_interval=5.0)
    enrich = PeriodWindow(date(2026, 1, 11), date(2026, 2, 7))

    results = orchestrator.acquire_reports([PERIOD, enrich])

    assert results == [(["k"], [["seven"]]), (["k"], [["twenty-eight"]])]
    posts = [c for c in http.calls if c["method"] == "POST"]
    assert [json.loads(c["payload"])["id"] for c in posts] == ["job-1", "job-2"]
    assert fake_sleep.calls.count(20.0) == 1
    assert fake_sleep.calls.count(5.0) == 3


def test_acquire_reports_propagates_failure(config, fake_sleep):
    def respond(method, url, headers, payload):
        if method == "POST":
            return json_response({"data": "started"})
        if "/file/" in url:
            return ApiResponse(200, make_zip({"a.csv": "k\n1\n"}))
        job_id = url.rsplit("=", 1)[1]
        return status_response(job_id, "FAILED" if job_id == "job-2" else "SUCCESS")

    orchestrator = build(ScriptedHttpClient(respond), config, fake_sleep)

    with pytest.raises(ReportGenerationError):
        orchestrator.acquire_reports([PERIOD, PERIOD])
