# Marketplace Sync Utilities
# This package contains the transport, report, join and sink modules shared by the features

from .api_client import MarketplaceClient, RequestsHttpClient, HostedHttpClient, ApiRequestConfig, MarketplaceError
from .reports import ReportJobOrchestrator, WBStockReportEndpoints, JobStatus
from .sinks import CsvFileSink, SheetsSink, SinkWriteRequest, KeyMatch, WriteMode
