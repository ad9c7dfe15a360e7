"""Models package for the Glimpse matching service."""

from glimpse.models.like import LikeResult, LikeStats, ReceivedLike, SentLike
from glimpse.models.match import (
    GroupSummary,
    LastMessage,
    Match,
    MatchStatus,
    MutualConnections,
    UserMatch,
    canonical_pair,
)
from glimpse.models.notification import NotificationIntent, NotificationKind
from glimpse.models.recommendation import Candidate, Recommendation
from glimpse.models.report import ALLOWED_REPORT_REASONS, MatchReport
from glimpse.models.user import User, UserSummary

__all__ = [
    "ALLOWED_REPORT_REASONS",
    "Candidate",
    "GroupSummary",
    "LastMessage",
    "LikeResult",
    "LikeStats",
    "Match",
    "MatchReport",
    "MatchStatus",
    "MutualConnections",
    "NotificationIntent",
    "NotificationKind",
    "ReceivedLike",
    "Recommendation",
    "SentLike",
    "User",
    "UserMatch",
    "UserSummary",
    "canonical_pair",
]
