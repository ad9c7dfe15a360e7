"""Discovery ranking for the Glimpse matching service."""

import random
from datetime import datetime
from typing import Callable, List, Optional

import sentry_sdk
from sqlalchemy import select
from sqlalchemy.orm import Session

from glimpse.config import MatchingConfig
from glimpse.models.recommendation import Candidate, Recommendation
from glimpse.services.group_service import ACTIVE_MEMBERSHIP, MembershipDirectory
from glimpse.utils.database import GroupMembershipDB, LikeDB, SessionFactory, UserDB, read_with_retry, utcnow
from glimpse.utils.errors import NotInGroupError, UserNotFoundError, ValidationError
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)

BASE_SCORE = 50.0
AGE_WEIGHT = 25.0
JITTER_RANGE = 10.0

# (max age difference in years, compatibility percentage)
AGE_COMPATIBILITY_TIERS = [
    (2, 100),
    (5, 80),
    (8, 60),
    (12, 40),
    (16, 20),
]

# (activity within hours, points)
RECENCY_STEPS = [
    (1, 20),
    (6, 15),
    (24, 10),
    (72, 5),
]


def age_compatibility(age_a: Optional[int], age_b: Optional[int]) -> int:
    """
    Compatibility percentage of two ages.

    Symmetric, and never increases as the age gap widens.

    Args:
        age_a (Optional[int]): First age.
        age_b (Optional[int]): Second age.

    Returns:
        int: 0-100; 0 when either age is unknown.
    """
    if age_a is None or age_b is None:
        return 0
    diff = abs(age_a - age_b)
    for max_diff, percent in AGE_COMPATIBILITY_TIERS:
        if diff <= max_diff:
            return percent
    return 0


def recency_points(last_active: Optional[datetime], now: datetime) -> int:
    """Points for how recently the candidate was active."""
    if last_active is None:
        return 0
    hours = (now - last_active).total_seconds() / 3600
    for within, points in RECENCY_STEPS:
        if hours < within:
            return points
    return 0


def completeness_points(candidate: Candidate) -> int:
    """Five points each for a profile image, a bio over 20 characters and a nickname over 2."""
    points = 0
    if candidate.profile_image:
        points += 5
    if candidate.bio and len(candidate.bio) > 20:
        points += 5
    if candidate.nickname and len(candidate.nickname) > 2:
        points += 5
    return points


def mask_nickname(nickname: Optional[str]) -> str:
    """Keep the first character and replace the rest with asterisks."""
    if not nickname:
        return ""
    return nickname[0] + "*" * (len(nickname) - 1)


class RecommendationService:
    """
    Compatibility scorer for discovery.

    Args:
        session_factory (SessionFactory): Factory for database sessions.
        config (MatchingConfig): Pool size and sentinel configuration.
        membership (MembershipDirectory): Group membership lookups.
        rng (Optional[random.Random]): Source of the score jitter.
        clock (Callable): Returns the current naive UTC time.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: MatchingConfig,
        membership: MembershipDirectory,
        rng: Optional[random.Random] = None,
        clock: Callable = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.membership = membership
        self.rng = rng or random.Random()
        self.clock = clock

    def score_candidate(self, requester_age: Optional[int], candidate: Candidate, now: datetime) -> int:
        """
        Score one candidate for the requester.

        Args:
            requester_age (Optional[int]): Age of the user asking for recommendations.
            candidate (Candidate): Candidate to score.
            now (datetime): Current time (naive UTC).

        Returns:
            int: Score clamped to 0-100 and rounded.
        """
        score = BASE_SCORE
        score += age_compatibility(requester_age, candidate.age) / 100 * AGE_WEIGHT
        score += recency_points(candidate.last_active, now)
        score += completeness_points(candidate)
        score += self.rng.random() * JITTER_RANGE
        return round(min(100.0, max(0.0, score)))

    def _candidate_pool(self, session: Session, user_id: str, group_id: str, limit: int) -> List[Candidate]:
        liked = select(LikeDB.to_user_id).where(LikeDB.from_user_id == user_id)
        stmt = (
            select(UserDB)
            .join(GroupMembershipDB, GroupMembershipDB.user_id == UserDB.id)
            .where(
                GroupMembershipDB.group_id == group_id,
                GroupMembershipDB.status == ACTIVE_MEMBERSHIP,
                UserDB.id != user_id,
                UserDB.id.not_in(liked),
                UserDB.age.is_not(None),
                UserDB.gender.is_not(None),
                UserDB.nickname.is_distinct_from(self.config.deleted_user_nickname),
            )
            .order_by(UserDB.last_active.desc())
            .limit(limit)
        )
        return [
            Candidate(
                id=row.id,
                nickname=row.nickname,
                bio=row.bio,
                profile_image=row.profile_image,
                age=row.age,
                gender=row.gender,
                last_active=row.last_active,
            )
            for row in session.scalars(stmt)
        ]

    def recommend(self, user_id: str, group_id: str, count: int = 10) -> List[Recommendation]:
        """
        Rank group members the user has not liked yet.

        Args:
            user_id (str): Requesting user.
            group_id (str): Group to recommend from.
            count (int): Maximum number of recommendations.

        Returns:
            List[Recommendation]: Highest scores first, with identity redacted.

        Raises:
            ValidationError: If count is not positive.
            UserNotFoundError: If the requester does not exist.
            NotInGroupError: If the requester is not an active member of the group.
        """
        if count < 1:
            raise ValidationError("count must be positive", details={"count": count})

        with sentry_sdk.start_span(op="recommendation.recommend", name=group_id) as span:

            def _read(session: Session):
                requester = session.get(UserDB, user_id)
                if requester is None:
                    raise UserNotFoundError(f"User not found: {user_id}", details={"user_id": user_id})
                if not self.membership.is_active_member(session, user_id, group_id):
                    raise NotInGroupError(
                        "User is not an active member of the group",
                        details={"user_id": user_id, "group_id": group_id},
                    )
                pool = self._candidate_pool(
                    session, user_id, group_id, count * self.config.recommendation_pool_factor
                )
                return requester.age, pool

            requester_age, pool = read_with_retry(self.session_factory, _read)
            now = self.clock()

            scored = [(self.score_candidate(requester_age, candidate, now), candidate) for candidate in pool]
            scored.sort(key=lambda item: item[0], reverse=True)

            recommendations = [
                Recommendation(
                    id=candidate.id,
                    nickname=mask_nickname(candidate.nickname),
                    profile_image=candidate.profile_image,
                    age=candidate.age,
                    gender=candidate.gender,
                    last_active=candidate.last_active,
                    compatibility_score=score,
                )
                for score, candidate in scored[:count]
            ]

            span.set_data("pool_size", len(pool))
            logger.info(
                "Recommendations generated",
                user_id=user_id,
                group_id=group_id,
                pool_size=len(pool),
                returned=len(recommendations),
            )
            return recommendations
