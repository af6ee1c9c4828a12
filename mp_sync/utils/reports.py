"""
Report Job Module
Handles report job creation, polling, and downloading for asynchronous marketplace reports.

Each job moves PENDING -> PROCESSING -> READY | ERROR and is never reused.
Sleeping and id generation are injectable so tests run without real delays.
"""

import time
import uuid
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from mp_sync.utils.api_client import (
    ApiRequestConfig,
    HttpClient,
    MarketplaceClient,
    MarketplaceError,
)
from mp_sync.utils.archive import extract_text
from mp_sync.utils.csv_codec import COMMA, decode_document_with_header
from mp_sync.utils.dates import PeriodWindow

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class ReportGenerationError(MarketplaceError):
    """The marketplace reported the job as failed."""
    pass


class ReportTimeoutError(MarketplaceError):
    """The job did not finish within the poll budget. Safe to retry later."""
    pass


class DownloadError(MarketplaceError):
    """Artifact download returned a non-2xx status."""
    def __init__(self, status: int, path: str, body: Any = None):
        self.status = status
        self.path = path
        super().__init__(f"Report download failed with HTTP {status} on {path}",
                         status_code=status, response_body=body)


# =============================================================================
# Job model
# =============================================================================

class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Optional[str]) -> "JobStatus":
        """Map a remote status string; anything unrecognized is still in progress."""
        text = (value or "").strip().lower()
        aliases = {
            "pending": cls.PENDING,
            "waiting": cls.PENDING,
            "new": cls.PENDING,
            "processing": cls.PROCESSING,
            "in_progress": cls.PROCESSING,
            "ready": cls.READY,
            "success": cls.READY,
            "done": cls.READY,
            "error": cls.ERROR,
            "failed": cls.ERROR,
            "fatal": cls.ERROR,
        }
        return aliases.get(text, cls.PROCESSING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.READY, JobStatus.ERROR)


_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.READY: 2,
    JobStatus.ERROR: 2,
}


@dataclass
class ReportJob:
    id: str
    period: PeriodWindow
    status: Optional[JobStatus] = None  # None until the creation call succeeds
    artifact_ref: Optional[str] = None
    error: Optional[str] = None

    def advance(self, status: JobStatus) -> bool:
        """
        Move the job forward.

        Returns False (and keeps the current status) when the remote reports
        an earlier state than the one already seen.

        Raises:
            ValueError: If the job is already in a terminal state
        """
        if self.status is not None and self.status.is_terminal:
            if status == self.status:
                return False
            raise ValueError(f"Job {self.id} is already {self.status.value}, cannot move to {status.value}")

        if self.status is not None and _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            logger.debug(f"Job {self.id}: ignoring {status.value} after {self.status.value}")
            return False

        self.status = status
        return True


# =============================================================================
# Marketplace-specific endpoints
# =============================================================================

class ReportJobEndpoints:
    """Paths and payloads of one marketplace's report job API."""

    report_type: str = ""
    create_path: str = ""

    def create_payload(self, job_id: str, period: PeriodWindow) -> Dict[str, Any]:
        raise NotImplementedError

    def status_path(self, job_id: str) -> str:
        raise NotImplementedError

    def parse_status(self, job_id: str, body: Any) -> Tuple[JobStatus, Optional[str], Optional[str]]:
        """Return (status, artifact_ref, error message) from a status response."""
        raise NotImplementedError

    def download_path(self, job: ReportJob) -> str:
        raise NotImplementedError


class WBStockReportEndpoints(ReportJobEndpoints):
    """Wildberries seller analytics CSV report: stock history by warehouse."""

    report_type = "STOCK_HISTORY_REPORT_CSV"
    create_path = "/api/v2/nm-report/downloads"

    availability_filters = ["deficient", "actual", "balanced", "nonActual", "nonLiquid", "invalidData"]

    def create_payload(self, job_id, period):
        return {
            "id": job_id,
            "reportType": self.report_type,
            "params": {
                "currentPeriod": period.iso(),
                "stockType": "wb",
                "skipDeletedNm": False,
                "availabilityFilters": list(self.availability_filters),
                "orderBy": {"field": "ordersCount", "mode": "asc"},
            },
        }

    def status_path(self, job_id):
        return f"/api/v2/nm-report/downloads?filter[downloadIds]={job_id}"

    def parse_status(self, job_id, body):
        entries = body.get("data") if isinstance(body, dict) else None
        if isinstance(entries, dict):
            entries = [entries]

        for entry in entries or []:
            if entry.get("id") == job_id:
                status = JobStatus.parse(entry.get("status"))
                error = entry.get("error") or entry.get("errorText")
                if status == JobStatus.ERROR and not error:
                    error = f"report status {entry.get('status')}"
                return status, entry.get("fileUrl"), error

        # Freshly created jobs may not be listed yet
        return JobStatus.PROCESSING, None, None

    def download_path(self, job):
        return f"/api/v2/nm-report/downloads/file/{job.id}"


# =============================================================================
# Orchestrator
# =============================================================================

ReportTable = Tuple[List[str], List[List[str]]]


class ReportJobOrchestrator:
    """
    Drives one report job type to a decoded table.

    Usage:
        orchestrator = ReportJobOrchestrator(client, http_client, config, WBStockReportEndpoints())
        header, rows = orchestrator.acquire_report(PeriodWindow(start, end))
    """

    def __init__(
        self,
        client: MarketplaceClient,
        http_client: HttpClient,
        config: ApiRequestConfig,
        endpoints: ReportJobEndpoints,
        poll_interval: float = 5.0,
        max_poll_attempts: int = 5,
        creation_delay: float = 20.0,
        sleep: Callable[[float], None] = time.sleep,
        id_factory: Callable[[], Any] = uuid.uuid4,
        delimiter: str = COMMA
    ):
        self.client = client
        self.http_client = http_client
        self.config = config
        self.endpoints = endpoints
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.creation_delay = creation_delay
        self.sleep = sleep
        self.id_factory = id_factory
        self.delimiter = delimiter

    def create_job(self, period: PeriodWindow) -> ReportJob:
        """Submit a new job with a fresh uuid for the period."""
        job = ReportJob(id=str(self.id_factory()), period=period)
        payload = self.endpoints.create_payload(job.id, period)

        self.client.post(self.config, self.endpoints.create_path, body=payload)
        job.advance(JobStatus.PENDING)

        logger.info(f"Created report job {job.id} ({self.endpoints.report_type}) for {period}")
        print(f"✓ Created report job {job.id} for {period}")
        return job

    def poll_until_ready(self, job: ReportJob) -> Optional[str]:
        """
        Poll the job status until it reaches a terminal state.

        Sleeps poll_interval before every check.

        Returns:
            Artifact reference from the status response (may be None when the
            artifact is addressed by job id)

        Raises:
            ReportGenerationError: The remote side failed the job
            ReportTimeoutError: No terminal state after max_poll_attempts checks
        """
        path = self.endpoints.status_path(job.id)

        for attempt in range(1, self.max_poll_attempts + 1):
            self.sleep(self.poll_interval)
            body = self.client.get(self.config, path)
            status, artifact_ref, error = self.endpoints.parse_status(job.id, body)
            job.advance(status)

            if job.status == JobStatus.READY:
                job.artifact_ref = artifact_ref
                logger.info(f"Report job {job.id} ready after {attempt} check(s)")
                print(f"✓ Report job {job.id} ready")
                return artifact_ref

            if job.status == JobStatus.ERROR:
                job.error = error
                raise ReportGenerationError(
                    f"Report job {job.id} failed: {error}",
                    response_body=body
                )

            logger.info(f"Report job {job.id}: {job.status.value} (check {attempt}/{self.max_poll_attempts})")
            print(f"  Report status: {job.status.value}, waiting {self.poll_interval:.0f}s...")

        raise ReportTimeoutError(
            f"Report job {job.id} not ready after {self.max_poll_attempts} checks "
            f"({self.max_poll_attempts * self.poll_interval:.0f}s)"
        )

    def download_artifact(self, job: ReportJob) -> bytes:
        """
        Fetch the raw artifact once (no retry).

        Raises:
            DownloadError: On any non-2xx response
        """
        path = self.endpoints.download_path(job)
        response = self.http_client.request(self.config, path, method="GET", headers={"Accept": "*/*"})
        if not response.ok:
            raise DownloadError(response.status, path, response.text[:500])

        logger.info(f"Downloaded report job {job.id} ({len(response.content)} bytes)")
        return response.content

    def _complete(self, job: ReportJob) -> ReportTable:
        self.poll_until_ready(job)
        blob = self.download_artifact(job)
        text = extract_text(blob, ".csv")
        header, rows = decode_document_with_header(text, self.delimiter)

        logger.info(f"Report job {job.id}: {len(rows)} data rows")
        print(f"✓ Downloaded report with {len(rows)} rows for {job.period}")
        return header, rows

    def acquire_report(self, period: PeriodWindow) -> ReportTable:
        """
        Create, poll, download and decode a report for a single period.

        Returns:
            (header, rows); rows may be empty, which is a valid result
        """
        job = self.create_job(period)
        return self._complete(job)

    def acquire_reports(self, periods: Sequence[PeriodWindow]) -> List[ReportTable]:
        """
        Acquire several periods with overlapping polls.

        Job creations are strictly sequential with creation_delay between
        them; polling and download for each job run on a worker thread.

        Returns:
            One (header, rows) per period, in input order
        """
        futures = []
        with ThreadPoolExecutor(max_workers=max(len(periods), 1)) as executor:
            for i, period in enumerate(periods):
                if i > 0:
                    logger.info(f"Waiting {self.creation_delay:.0f}s before creating the next report job")
                    self.sleep(self.creation_delay)
                job = self.create_job(period)
                futures.append(executor.submit(self._complete, job))

            return [future.result() for future in futures]
