"""Like service for the Glimpse matching service."""

from datetime import timedelta
from typing import Callable, List, Optional

import sentry_sdk
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from glimpse.config import MatchingConfig
from glimpse.models.like import LikeResult, LikeStats, ReceivedLike, SentLike
from glimpse.models.match import MatchStatus, canonical_pair
from glimpse.models.notification import NotificationIntent
from glimpse.models.user import User, UserSummary
from glimpse.services import like_policy
from glimpse.services.group_service import MembershipDirectory
from glimpse.services.match_service import MatchService
from glimpse.services.notification_service import NotificationDispatcher, like_received_intent
from glimpse.utils.cache import (
    LIKE_STATS_CACHE_KEY,
    LIKE_STATS_CACHE_TTL,
    get_cache_model,
    invalidate_like_stats,
    set_cache,
)
from glimpse.utils.database import (
    GroupDB,
    LikeDB,
    MatchDB,
    SessionFactory,
    UserDB,
    new_id,
    read_with_retry,
    transaction,
    utcnow,
)
from glimpse.utils.errors import (
    CooldownActiveError,
    DailyLimitExceededError,
    DuplicateLikeError,
    ForbiddenError,
    InsufficientCreditsError,
    LikeNotFoundError,
    NotInGroupError,
    UserNotFoundError,
    ValidationError,
)
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)


class LikeService:
    """
    Like registry: records directed likes and turns mutual ones into matches.

    Args:
        session_factory (SessionFactory): Factory for database sessions.
        config (MatchingConfig): Like policy configuration.
        dispatcher (NotificationDispatcher): Delivers intents after commit.
        membership (MembershipDirectory): Group membership lookups.
        match_service (MatchService): Match factory used for mutual likes.
        clock (Callable): Returns the current naive UTC time.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: MatchingConfig,
        dispatcher: NotificationDispatcher,
        membership: MembershipDirectory,
        match_service: MatchService,
        clock: Callable = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.dispatcher = dispatcher
        self.membership = membership
        self.match_service = match_service
        self.clock = clock

    def _lock_users(self, session: Session, user_a: str, user_b: str) -> dict:
        """Lock both user rows in canonical id order and return them by id."""
        first, second = canonical_pair(user_a, user_b)
        rows = session.scalars(
            select(UserDB).where(UserDB.id.in_([first, second])).order_by(UserDB.id).with_for_update()
        ).all()
        return {row.id: row for row in rows}

    def _find_like(
        self, session: Session, from_user_id: str, to_user_id: str, group_id: str, lock: bool = False
    ) -> Optional[LikeDB]:
        stmt = select(LikeDB).where(
            LikeDB.from_user_id == from_user_id,
            LikeDB.to_user_id == to_user_id,
            LikeDB.group_id == group_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()

    def _likes_since(self, session: Session, user_id: str, since) -> int:
        stmt = select(func.count(LikeDB.id)).where(LikeDB.from_user_id == user_id, LikeDB.created_at >= since)
        return session.scalar(stmt) or 0

    def send_like(self, from_user_id: str, to_user_id: str, group_id: str) -> LikeResult:
        """
        Send a like from one user to another within a group.

        Checks run in a fixed order and stop at the first failure: group
        membership, duplicate like, per-target cooldown, sender credits, then
        the daily cap. When the target already likes the sender in this group,
        both likes are flagged and a match is created in the same transaction.

        Args:
            from_user_id (str): Sender.
            to_user_id (str): Target.
            group_id (str): Group both users belong to.

        Returns:
            LikeResult: The new like ID, whether it is mutual, and the match ID.

        Raises:
            ValidationError: If a user tries to like themselves.
            NotInGroupError: If either user is not an active member of the group.
            DuplicateLikeError: If the like already exists.
            CooldownActiveError: If the sender liked the target recently.
            UserNotFoundError: If the sender does not exist.
            InsufficientCreditsError: If the sender has no credits and is not premium.
            DailyLimitExceededError: If the sender used up today's likes.
        """
        if from_user_id == to_user_id:
            raise ValidationError("Users cannot like themselves", details={"user_id": from_user_id})

        with sentry_sdk.start_span(op="like.send", name=f"{from_user_id} -> {to_user_id}") as span:
            span.set_data("group_id", group_id)
            intents: List[NotificationIntent] = []

            with transaction(self.session_factory) as session:
                now = self.clock()
                users = self._lock_users(session, from_user_id, to_user_id)

                for user_id in (from_user_id, to_user_id):
                    if not self.membership.is_active_member(session, user_id, group_id):
                        logger.warning("User not in group", user_id=user_id, group_id=group_id)
                        raise NotInGroupError(
                            "Both users must be active members of the group",
                            details={"user_id": user_id, "group_id": group_id},
                        )

                if self._find_like(session, from_user_id, to_user_id, group_id) is not None:
                    raise DuplicateLikeError(
                        "Like already sent",
                        details={"to_user_id": to_user_id, "group_id": group_id},
                    )

                last_like_at = session.scalar(
                    select(func.max(LikeDB.created_at)).where(
                        LikeDB.from_user_id == from_user_id,
                        LikeDB.to_user_id == to_user_id,
                    )
                )
                if like_policy.is_cooldown_active(last_like_at, now, self.config):
                    retry_after = last_like_at + timedelta(days=self.config.like_cooldown_days)
                    raise CooldownActiveError(
                        "Cooldown active for this user",
                        details={"to_user_id": to_user_id, "retry_after": retry_after.isoformat()},
                    )

                sender_row = users.get(from_user_id)
                if sender_row is None:
                    raise UserNotFoundError(f"User not found: {from_user_id}", details={"user_id": from_user_id})
                sender = User.model_validate(sender_row)

                if not like_policy.can_send_like(sender):
                    raise InsufficientCreditsError("Not enough credits", details={"credits": sender.credits})

                likes_today = self._likes_since(session, from_user_id, like_policy.day_start(now, self.config))
                if like_policy.has_reached_daily_limit(likes_today, sender.is_premium, self.config):
                    raise DailyLimitExceededError(
                        "Daily like limit reached",
                        details={"max_daily_likes": self.config.max_daily_likes},
                    )

                reciprocal = self._find_like(session, to_user_id, from_user_id, group_id, lock=True)
                is_match = reciprocal is not None

                like = LikeDB(
                    id=new_id(),
                    from_user_id=from_user_id,
                    to_user_id=to_user_id,
                    group_id=group_id,
                    is_match=is_match,
                    created_at=now,
                )
                session.add(like)
                try:
                    session.flush()
                except IntegrityError as e:
                    logger.warning("Concurrent duplicate like rejected", error=str(e))
                    raise DuplicateLikeError(
                        "Like already sent",
                        details={"to_user_id": to_user_id, "group_id": group_id},
                    ) from e

                sender_row.credits -= like_policy.calculate_like_cost(sender.is_premium)

                match_id: Optional[str] = None
                if is_match:
                    reciprocal.is_match = True
                    match_row, match_intents = self.match_service.create_match_in_session(
                        session, from_user_id, to_user_id, group_id
                    )
                    match_id = match_row.id
                    intents.extend(match_intents)
                else:
                    intents.append(like_received_intent(to_user_id, from_user_id, group_id))

                result = LikeResult(like_id=like.id, is_match=is_match, match_id=match_id)

            logger.info(
                "Like sent",
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                group_id=group_id,
                is_match=is_match,
                match_id=match_id,
            )
            span.set_data("is_match", is_match)
            invalidate_like_stats(from_user_id, to_user_id)
            self.dispatcher.dispatch(intents)
            return result

    def unlike_user(self, from_user_id: str, to_user_id: str, group_id: str) -> None:
        """
        Withdraw a like. Credits spent on it are not refunded.

        If the like was mutual, every open match of the pair in the group is
        deleted and the reciprocal like goes back to unmatched.

        Args:
            from_user_id (str): User withdrawing the like.
            to_user_id (str): Target of the like.
            group_id (str): Group ID.

        Raises:
            LikeNotFoundError: If no such like exists.
        """
        with sentry_sdk.start_span(op="like.unlike", name=f"{from_user_id} -> {to_user_id}"):
            with transaction(self.session_factory) as session:
                like = self._find_like(session, from_user_id, to_user_id, group_id, lock=True)
                if like is None:
                    raise LikeNotFoundError(
                        "Like not found",
                        details={"to_user_id": to_user_id, "group_id": group_id},
                    )

                if like.is_match:
                    user1_id, user2_id = canonical_pair(from_user_id, to_user_id)
                    now = self.clock()
                    session.execute(
                        update(MatchDB)
                        .where(
                            MatchDB.user1_id == user1_id,
                            MatchDB.user2_id == user2_id,
                            MatchDB.group_id == group_id,
                            MatchDB.status != MatchStatus.DELETED.value,
                        )
                        .values(status=MatchStatus.DELETED.value, updated_at=now)
                        .execution_options(synchronize_session=False)
                    )
                    session.execute(
                        update(LikeDB)
                        .where(
                            LikeDB.from_user_id == to_user_id,
                            LikeDB.to_user_id == from_user_id,
                            LikeDB.group_id == group_id,
                        )
                        .values(is_match=False)
                        .execution_options(synchronize_session=False)
                    )

                session.execute(delete(LikeDB).where(LikeDB.id == like.id))
                was_match = like.is_match

            logger.info(
                "Like withdrawn",
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                group_id=group_id,
                was_match=was_match,
            )
            invalidate_like_stats(from_user_id, to_user_id)

    def get_like_stats(self, user_id: str) -> LikeStats:
        """
        Count likes sent and received, mutual likes, active matches, and likes sent today.

        Args:
            user_id (str): User ID.

        Returns:
            LikeStats: The counts, served from cache when available.
        """
        cache_key = LIKE_STATS_CACHE_KEY.format(user_id=user_id)
        cached = get_cache_model(cache_key, LikeStats)
        if cached is not None:
            logger.debug("Like stats retrieved from cache", user_id=user_id)
            return cached

        def _read(session: Session) -> LikeStats:
            sent = session.scalar(select(func.count(LikeDB.id)).where(LikeDB.from_user_id == user_id)) or 0
            received = session.scalar(select(func.count(LikeDB.id)).where(LikeDB.to_user_id == user_id)) or 0
            matches = (
                session.scalar(
                    select(func.count(LikeDB.id)).where(LikeDB.from_user_id == user_id, LikeDB.is_match.is_(True))
                )
                or 0
            )
            active_matches = (
                session.scalar(
                    select(func.count(MatchDB.id)).where(
                        or_(MatchDB.user1_id == user_id, MatchDB.user2_id == user_id),
                        MatchDB.status == MatchStatus.ACTIVE.value,
                    )
                )
                or 0
            )
            today_likes = self._likes_since(session, user_id, like_policy.day_start(self.clock(), self.config))
            return LikeStats(
                sent=sent,
                received=received,
                matches=matches,
                active_matches=active_matches,
                today_likes=today_likes,
            )

        stats = read_with_retry(self.session_factory, _read)
        set_cache(cache_key, stats, expiration=LIKE_STATS_CACHE_TTL)
        return stats

    def get_sent_likes(
        self, user_id: str, group_id: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> List[SentLike]:
        """
        List likes the user sent that are still waiting for an answer, newest first.

        Args:
            user_id (str): User ID.
            group_id (Optional[str]): Restrict to one group.
            page (int): 1-based page number.
            limit (int): Page size.

        Returns:
            List[SentLike]: Likes with the target's card and group.
        """

        def _read(session: Session) -> List[SentLike]:
            stmt = (
                select(LikeDB, UserDB, GroupDB.name)
                .join(UserDB, UserDB.id == LikeDB.to_user_id)
                .outerjoin(GroupDB, GroupDB.id == LikeDB.group_id)
                .where(LikeDB.from_user_id == user_id, LikeDB.is_match.is_(False))
            )
            if group_id:
                stmt = stmt.where(LikeDB.group_id == group_id)
            rows = session.execute(
                stmt.order_by(LikeDB.created_at.desc()).offset((max(page, 1) - 1) * limit).limit(limit)
            ).all()
            return [
                SentLike(
                    id=like.id,
                    user=UserSummary.model_validate(target),
                    group_id=like.group_id,
                    group_name=group_name,
                    created_at=like.created_at,
                )
                for like, target, group_name in rows
            ]

        return read_with_retry(self.session_factory, _read)

    def get_who_likes_you(self, user_id: str, page: int = 1, limit: int = 20) -> List[ReceivedLike]:
        """
        List unanswered likes a user received, newest first. Premium only.

        Args:
            user_id (str): User ID.
            page (int): 1-based page number.
            limit (int): Page size.

        Returns:
            List[ReceivedLike]: Likes with the sender's card and group.

        Raises:
            UserNotFoundError: If the user does not exist.
            ForbiddenError: If the user is not premium.
        """

        def _read(session: Session) -> List[ReceivedLike]:
            user = session.get(UserDB, user_id)
            if user is None:
                raise UserNotFoundError(f"User not found: {user_id}", details={"user_id": user_id})
            if not user.is_premium:
                raise ForbiddenError("Seeing who likes you requires premium", details={"user_id": user_id})

            rows = session.execute(
                select(LikeDB, UserDB, GroupDB.name)
                .join(UserDB, UserDB.id == LikeDB.from_user_id)
                .outerjoin(GroupDB, GroupDB.id == LikeDB.group_id)
                .where(LikeDB.to_user_id == user_id, LikeDB.is_match.is_(False))
                .order_by(LikeDB.created_at.desc())
                .offset((max(page, 1) - 1) * limit)
                .limit(limit)
            ).all()
            return [
                ReceivedLike(
                    id=like.id,
                    user=UserSummary.model_validate(sender),
                    group_id=like.group_id,
                    group_name=group_name,
                    created_at=like.created_at,
                )
                for like, sender, group_name in rows
            ]

        return read_with_retry(self.session_factory, _read)

    def get_daily_likes_remaining(self, user_id: str) -> Optional[int]:
        """
        Likes the user can still send today.

        Args:
            user_id (str): User ID.

        Returns:
            Optional[int]: Remaining likes, or None for premium users.

        Raises:
            UserNotFoundError: If the user does not exist.
        """

        def _read(session: Session) -> Optional[int]:
            user = session.get(UserDB, user_id)
            if user is None:
                raise UserNotFoundError(f"User not found: {user_id}", details={"user_id": user_id})
            now = self.clock()
            likes_today = self._likes_since(session, user_id, like_policy.day_start(now, self.config))
            return like_policy.daily_likes_remaining(likes_today, user.is_premium, self.config)

        return read_with_retry(self.session_factory, _read)
