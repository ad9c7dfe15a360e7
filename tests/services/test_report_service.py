from unittest.mock import MagicMock, patch

from glimpse.models import MatchReport
from glimpse.services import report_service
from glimpse.services.report_service import LoggingReportSink, submit_reports


def _report(**overrides):
    values = {
        "match_id": "m1",
        "reporter_id": "alice",
        "reported_id": "bob",
        "group_id": "g1",
        "reason": "harassment",
    }
    values.update(overrides)
    return MatchReport(**values)


def test_logging_sink_writes_a_warning():
    report = _report(description="rude")

    with patch.object(report_service, "logger") as mock_logger:
        LoggingReportSink().submit(report)

    mock_logger.warning.assert_called_once()
    args, kwargs = mock_logger.warning.call_args
    assert args[0] == "Match reported"
    assert kwargs["match_id"] == "m1"
    assert kwargs["reason"] == "harassment"


def test_submit_reports_hands_each_report_to_the_sink():
    sink = MagicMock()
    reports = [_report(), _report(match_id="m2")]

    submit_reports(sink, reports)

    assert [c.args[0].match_id for c in sink.submit.call_args_list] == ["m1", "m2"]


def test_submit_reports_survives_a_failing_sink():
    sink = MagicMock()
    sink.submit.side_effect = RuntimeError("queue down")

    with patch.object(report_service, "log_error") as mock_log_error:
        submit_reports(sink, [_report()])

    mock_log_error.assert_called_once()
    assert mock_log_error.call_args[1]["extra"] == {"match_id": "m1"}
