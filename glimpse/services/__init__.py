"""Services package for the Glimpse matching service."""

from glimpse.services.group_service import MembershipDirectory, SqlMembershipDirectory
from glimpse.services.like_service import LikeService
from glimpse.services.match_service import MatchService
from glimpse.services.notification_service import LoggingNotifier, NotificationDispatcher, Notifier
from glimpse.services.recommendation_service import RecommendationService
from glimpse.services.report_service import LoggingReportSink, ReportSink

__all__ = [
    "LikeService",
    "LoggingNotifier",
    "LoggingReportSink",
    "MatchService",
    "MembershipDirectory",
    "NotificationDispatcher",
    "Notifier",
    "RecommendationService",
    "ReportSink",
    "SqlMembershipDirectory",
]
