"""Moderation boundary: where match reports go once they are filed."""

from typing import Iterable, Protocol

import sentry_sdk

from glimpse.models.report import MatchReport
from glimpse.utils.logging import get_logger, log_error

logger = get_logger(__name__)


class ReportSink(Protocol):
    """Moderation queue capability."""

    def submit(self, report: MatchReport) -> None: ...


class LoggingReportSink:
    """Sink that writes each report to the structured log for the moderation tooling to pick up."""

    def submit(self, report: MatchReport) -> None:
        logger.warning(
            "Match reported",
            report_id=report.id,
            match_id=report.match_id,
            reporter_id=report.reporter_id,
            reported_id=report.reported_id,
            group_id=report.group_id,
            reason=report.reason,
            description=report.description,
        )


def submit_reports(sink: ReportSink, reports: Iterable[MatchReport]) -> None:
    """Hand committed reports to the sink; a failing sink is logged, not raised."""
    for report in reports:
        try:
            sink.submit(report)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            log_error(logger, e, "Failed to submit match report", extra={"match_id": report.match_id})
