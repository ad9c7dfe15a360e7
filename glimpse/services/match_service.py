"""Match service for the Glimpse matching service.

Creates matches from mutual likes and drives their lifecycle: un-match,
report, and the periodic expiry sweep.
"""

from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import sentry_sdk
from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from glimpse.config import MatchingConfig
from glimpse.models.match import (
    GroupSummary,
    LastMessage,
    Match,
    MatchStatus,
    MutualConnections,
    UserMatch,
    canonical_pair,
)
from glimpse.models.notification import NotificationIntent
from glimpse.models.report import ALLOWED_REPORT_REASONS, MatchReport
from glimpse.models.user import UserSummary
from glimpse.services.group_service import MembershipDirectory
from glimpse.services.notification_service import NotificationDispatcher, match_created_intents
from glimpse.services.report_service import LoggingReportSink, ReportSink, submit_reports
from glimpse.utils.cache import invalidate_like_stats
from glimpse.utils.database import (
    GroupDB,
    LikeDB,
    MatchDB,
    MessageDB,
    SessionFactory,
    UserDB,
    new_id,
    read_with_retry,
    transaction,
    utcnow,
)
from glimpse.utils.errors import ForbiddenError, MatchNotFoundError, UserNotFoundError, ValidationError
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)


class MatchService:
    """
    Match factory and lifecycle manager.

    Args:
        session_factory (SessionFactory): Factory for database sessions.
        config (MatchingConfig): Policy configuration (expiry window).
        dispatcher (NotificationDispatcher): Delivers intents after commit.
        membership (MembershipDirectory): Group membership lookups.
        report_sink (Optional[ReportSink]): Moderation queue for match reports.
        clock (Callable): Returns the current naive UTC time.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: MatchingConfig,
        dispatcher: NotificationDispatcher,
        membership: MembershipDirectory,
        report_sink: Optional[ReportSink] = None,
        clock: Callable = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.dispatcher = dispatcher
        self.membership = membership
        self.report_sink = report_sink or LoggingReportSink()
        self.clock = clock

    # --- Match factory ---

    def _find_open_match(
        self, session: Session, user1_id: str, user2_id: str, group_id: str, lock: bool = False
    ) -> Optional[MatchDB]:
        """Return the non-deleted match of a canonical pair in a group, if any."""
        stmt = select(MatchDB).where(
            MatchDB.user1_id == user1_id,
            MatchDB.user2_id == user2_id,
            MatchDB.group_id == group_id,
            MatchDB.status != MatchStatus.DELETED.value,
        )
        if lock:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()

    def create_match_in_session(
        self, session: Session, user_a: str, user_b: str, group_id: str
    ) -> Tuple[MatchDB, List[NotificationIntent]]:
        """
        Create (or reuse) the match of a pair inside an open transaction.

        An ACTIVE match is returned as is. An EXPIRED one is recycled back to
        ACTIVE with a fresh creation time. Otherwise a new row is inserted
        under a savepoint; if a concurrent transaction inserted the same pair
        first, the unique index rejects ours and the winner is returned.

        Args:
            session (Session): Session of the calling transaction.
            user_a (str): One participant.
            user_b (str): The other participant.
            group_id (str): Group the match belongs to.

        Returns:
            Tuple[MatchDB, List[NotificationIntent]]: The match row and the
            intents to dispatch after commit (empty when nothing was created).

        Raises:
            ValidationError: If both IDs are the same user.
        """
        if user_a == user_b:
            raise ValidationError("A user cannot match with themselves", details={"user_id": user_a})

        user1_id, user2_id = canonical_pair(user_a, user_b)
        now = self.clock()

        existing = self._find_open_match(session, user1_id, user2_id, group_id, lock=True)
        if existing is not None:
            if existing.status == MatchStatus.ACTIVE.value:
                logger.info("Match already exists", match_id=existing.id, group_id=group_id)
                return existing, []

            logger.info("Recycling expired match", match_id=existing.id, group_id=group_id)
            existing.status = MatchStatus.ACTIVE.value
            existing.created_at = now
            existing.updated_at = now
            existing.expired_at = None
            existing.extended_until = None
            return existing, match_created_intents(user1_id, user2_id, existing.id)

        match = MatchDB(
            id=new_id(),
            user1_id=user1_id,
            user2_id=user2_id,
            group_id=group_id,
            status=MatchStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        try:
            with session.begin_nested():
                session.add(match)
        except IntegrityError as e:
            winner = self._find_open_match(session, user1_id, user2_id, group_id)
            if winner is None:
                raise
            logger.info("Concurrent match creation resolved to existing match", match_id=winner.id, error=str(e))
            return winner, []

        logger.info("Match created", match_id=match.id, user1_id=user1_id, user2_id=user2_id, group_id=group_id)
        return match, match_created_intents(user1_id, user2_id, match.id)

    def create_match(self, user_a: str, user_b: str, group_id: str) -> Match:
        """
        Create a match between two users in a group.

        Idempotent per canonical pair and group; notifications go out only
        when a match was actually created.

        Args:
            user_a (str): One participant.
            user_b (str): The other participant.
            group_id (str): Group ID.

        Returns:
            Match: The active match of the pair.

        Raises:
            UserNotFoundError: If either user does not exist.
        """
        with sentry_sdk.start_span(op="match.create", name=f"{user_a} <-> {user_b}") as span:
            with transaction(self.session_factory) as session:
                for user_id in (user_a, user_b):
                    if session.get(UserDB, user_id) is None:
                        raise UserNotFoundError(f"User not found: {user_id}", details={"user_id": user_id})
                row, intents = self.create_match_in_session(session, user_a, user_b, group_id)
                match = Match.model_validate(row)

            span.set_data("created", bool(intents))
            self.dispatcher.dispatch(intents)
            return match

    # --- Lifecycle ---

    def _load_for_participant(self, session: Session, match_id: str, user_id: str, lock: bool = False) -> MatchDB:
        row = session.get(MatchDB, match_id, with_for_update=lock)
        if row is None:
            logger.warning("Match not found", match_id=match_id)
            raise MatchNotFoundError(f"Match not found: {match_id}", details={"match_id": match_id})
        if not row.has_participant(user_id):
            logger.warning("User not part of match", match_id=match_id, user_id=user_id)
            raise ForbiddenError("User is not a participant of this match", details={"match_id": match_id})
        return row

    def _close_match(self, session: Session, row: MatchDB) -> None:
        """Mark a match deleted and clear the mutual flag on both likes of the pair."""
        now = self.clock()
        row.status = MatchStatus.DELETED.value
        row.updated_at = now
        session.execute(
            update(LikeDB)
            .where(
                LikeDB.group_id == row.group_id,
                or_(
                    and_(LikeDB.from_user_id == row.user1_id, LikeDB.to_user_id == row.user2_id),
                    and_(LikeDB.from_user_id == row.user2_id, LikeDB.to_user_id == row.user1_id),
                ),
            )
            .values(is_match=False)
            .execution_options(synchronize_session=False)
        )

    def delete_match(self, match_id: str, requester_id: str) -> Match:
        """
        Un-match: delete a match on behalf of one of its participants.

        The like rows of the pair are kept so cooldown and duplicate history
        survive; only their ``is_match`` flags are cleared. Deleting a match
        that is already deleted changes nothing, since the pair may have
        matched again since and the likes now belong to the newer match.

        Args:
            match_id (str): Match ID.
            requester_id (str): User asking for the deletion.

        Returns:
            Match: The match in DELETED state.

        Raises:
            MatchNotFoundError: If the match does not exist.
            ForbiddenError: If the requester is not a participant.
        """
        with sentry_sdk.start_span(op="match.delete", name=match_id):
            with transaction(self.session_factory) as session:
                row = self._load_for_participant(session, match_id, requester_id, lock=True)
                closed = row.status != MatchStatus.DELETED.value
                if closed:
                    self._close_match(session, row)
                match = Match.model_validate(row)

            if not closed:
                logger.info("Match already deleted", match_id=match_id, requester_id=requester_id)
                return match

            logger.info("Match deleted", match_id=match_id, requester_id=requester_id)
            invalidate_like_stats(match.user1_id, match.user2_id)
            return match

    def report_match(
        self, match_id: str, reporter_id: str, reason: str, description: Optional[str] = None
    ) -> MatchReport:
        """
        Report a match: close it and send the report to moderation.

        A match that is already deleted is reported without being touched.

        Args:
            match_id (str): Match ID.
            reporter_id (str): Participant filing the report.
            reason (str): One of ``ALLOWED_REPORT_REASONS``.
            description (Optional[str]): Free-text details.

        Returns:
            MatchReport: The report handed to the moderation sink.

        Raises:
            ValidationError: If the reason is not allowed.
            MatchNotFoundError: If the match does not exist.
            ForbiddenError: If the reporter is not a participant.
        """
        if reason not in ALLOWED_REPORT_REASONS:
            raise ValidationError(
                "Invalid report reason",
                details={"reason": reason, "allowed": ALLOWED_REPORT_REASONS},
            )

        with sentry_sdk.start_span(op="match.report", name=match_id):
            with transaction(self.session_factory) as session:
                row = self._load_for_participant(session, match_id, reporter_id, lock=True)
                report = MatchReport(
                    match_id=row.id,
                    reporter_id=reporter_id,
                    reported_id=row.other_participant(reporter_id),
                    group_id=row.group_id,
                    reason=reason,
                    description=description,
                    created_at=self.clock(),
                )
                closed = row.status != MatchStatus.DELETED.value
                if closed:
                    self._close_match(session, row)

            if closed:
                invalidate_like_stats(report.reporter_id, report.reported_id)
            submit_reports(self.report_sink, [report])
            return report

    def extend_match(self, match_id: str, user_id: str) -> Match:
        """
        Push back the expiry of an active match by one expiry window. Premium only.

        Extensions stack: each call adds ``match_expiry_days`` to the current
        deadline, which starts out as ``created_at`` plus that window.

        Args:
            match_id (str): Match ID.
            user_id (str): Participant asking for the extension.

        Returns:
            Match: The match with its new ``extended_until``.

        Raises:
            UserNotFoundError: If the user does not exist.
            ForbiddenError: If the user is not premium or not a participant.
            MatchNotFoundError: If the match does not exist.
            ValidationError: If the match is not active.
        """
        with sentry_sdk.start_span(op="match.extend", name=match_id):
            with transaction(self.session_factory) as session:
                user = session.get(UserDB, user_id)
                if user is None:
                    raise UserNotFoundError(f"User not found: {user_id}", details={"user_id": user_id})
                if not user.is_premium:
                    raise ForbiddenError("Extending a match requires premium", details={"user_id": user_id})

                row = self._load_for_participant(session, match_id, user_id, lock=True)
                if row.status != MatchStatus.ACTIVE.value:
                    raise ValidationError(
                        "Only active matches can be extended",
                        details={"match_id": match_id, "status": row.status},
                    )

                window = timedelta(days=self.config.match_expiry_days)
                row.extended_until = (row.extended_until or row.created_at + window) + window
                row.updated_at = self.clock()
                match = Match.model_validate(row)

            logger.info("Match extended", match_id=match_id, user_id=user_id, extended_until=match.extended_until.isoformat())
            return match

    def cleanup_expired_matches(self) -> int:
        """
        Expire active matches that never exchanged a message.

        A match is due once it is older than the expiry window, or, when it
        was extended, once ``extended_until`` has passed.

        Runs as one conditional bulk UPDATE so a message sent concurrently
        either lands before the statement (and keeps the match) or after it.

        Returns:
            int: Number of matches moved to EXPIRED.
        """
        with sentry_sdk.start_span(op="match.cleanup_expired", name="cleanup_expired_matches") as span:
            now = self.clock()
            cutoff = now - timedelta(days=self.config.match_expiry_days)
            has_messages = exists().where(MessageDB.match_id == MatchDB.id)

            with transaction(self.session_factory) as session:
                result = session.execute(
                    update(MatchDB)
                    .where(
                        MatchDB.status == MatchStatus.ACTIVE.value,
                        or_(
                            and_(MatchDB.extended_until.is_(None), MatchDB.created_at < cutoff),
                            MatchDB.extended_until < now,
                        ),
                        ~has_messages,
                    )
                    .values(status=MatchStatus.EXPIRED.value, expired_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                count = result.rowcount or 0

            span.set_data("expired_count", count)
            logger.info("Expired inactive matches", count=count, cutoff=cutoff.isoformat())
            return count

    # --- Views ---

    def _views(self, session: Session, rows: Sequence[MatchDB], viewer_id: str) -> List[UserMatch]:
        """Build participant views for a batch of matches."""
        counterpart_ids = {row.other_participant(viewer_id) for row in rows}
        group_ids = {row.group_id for row in rows}

        users: Dict[str, UserDB] = {}
        if counterpart_ids:
            users = {u.id: u for u in session.scalars(select(UserDB).where(UserDB.id.in_(counterpart_ids)))}
        groups: Dict[str, GroupDB] = {}
        if group_ids:
            groups = {g.id: g for g in session.scalars(select(GroupDB).where(GroupDB.id.in_(group_ids)))}

        views = []
        for row in rows:
            other = users.get(row.other_participant(viewer_id))
            group = groups.get(row.group_id)
            latest = session.scalars(
                select(MessageDB).where(MessageDB.match_id == row.id).order_by(MessageDB.created_at.desc()).limit(1)
            ).first()
            views.append(
                UserMatch(
                    id=row.id,
                    user=UserSummary.model_validate(other) if other else None,
                    group=GroupSummary.model_validate(group) if group else None,
                    status=MatchStatus(row.status),
                    last_message=(
                        LastMessage(
                            content=latest.content,
                            is_from_me=latest.sender_id == viewer_id,
                            created_at=latest.created_at,
                        )
                        if latest
                        else None
                    ),
                    created_at=row.created_at,
                )
            )
        return views

    def get_match(self, match_id: str, user_id: str) -> UserMatch:
        """
        Get a match as seen by one of its participants.

        Raises:
            MatchNotFoundError: If the match does not exist.
            ForbiddenError: If the user is not a participant.
        """

        def _read(session: Session) -> UserMatch:
            row = self._load_for_participant(session, match_id, user_id)
            return self._views(session, [row], user_id)[0]

        return read_with_retry(self.session_factory, _read)

    def get_user_matches(
        self,
        user_id: str,
        status: MatchStatus = MatchStatus.ACTIVE,
        page: int = 1,
        limit: int = 20,
    ) -> List[UserMatch]:
        """
        List a user's matches with a given status, newest first.

        Args:
            user_id (str): User ID.
            status (MatchStatus): Status filter (default ACTIVE).
            page (int): 1-based page number.
            limit (int): Page size.

        Returns:
            List[UserMatch]: Match views with last message previews.
        """

        def _read(session: Session) -> List[UserMatch]:
            rows = session.scalars(
                select(MatchDB)
                .where(
                    or_(MatchDB.user1_id == user_id, MatchDB.user2_id == user_id),
                    MatchDB.status == status.value,
                )
                .order_by(MatchDB.created_at.desc())
                .offset((max(page, 1) - 1) * limit)
                .limit(limit)
            ).all()
            return self._views(session, rows, user_id)

        return read_with_retry(self.session_factory, _read)

    def get_matching_history(
        self, user_id: str, page: int = 1, limit: int = 20, group_id: Optional[str] = None
    ) -> List[UserMatch]:
        """List every match of a user regardless of status, optionally within one group."""

        def _read(session: Session) -> List[UserMatch]:
            stmt = select(MatchDB).where(or_(MatchDB.user1_id == user_id, MatchDB.user2_id == user_id))
            if group_id:
                stmt = stmt.where(MatchDB.group_id == group_id)
            rows = session.scalars(
                stmt.order_by(MatchDB.created_at.desc()).offset((max(page, 1) - 1) * limit).limit(limit)
            ).all()
            return self._views(session, rows, user_id)

        return read_with_retry(self.session_factory, _read)

    def _active_counterparts(self, session: Session, user_id: str) -> Set[str]:
        rows = session.execute(
            select(MatchDB.user1_id, MatchDB.user2_id).where(
                or_(MatchDB.user1_id == user_id, MatchDB.user2_id == user_id),
                MatchDB.status == MatchStatus.ACTIVE.value,
            )
        ).all()
        return {u2 if u1 == user_id else u1 for u1, u2 in rows}

    def get_mutual_connections(self, match_id: str, user_id: str) -> MutualConnections:
        """
        Groups and active matches the two participants of a match share.

        Raises:
            MatchNotFoundError: If the match does not exist.
            ForbiddenError: If the user is not a participant.
        """

        def _read(session: Session) -> MutualConnections:
            row = self._load_for_participant(session, match_id, user_id)
            other_id = row.other_participant(user_id)

            shared_group_ids = set(self.membership.active_group_ids(session, user_id)) & set(
                self.membership.active_group_ids(session, other_id)
            )
            groups = []
            if shared_group_ids:
                groups = [
                    GroupSummary.model_validate(g)
                    for g in session.scalars(
                        select(GroupDB).where(GroupDB.id.in_(shared_group_ids)).order_by(GroupDB.name)
                    )
                ]

            mutual = self._active_counterparts(session, user_id) & self._active_counterparts(session, other_id)
            mutual -= {user_id, other_id}
            return MutualConnections(mutual_groups=groups, mutual_match_count=len(mutual))

        return read_with_retry(self.session_factory, _read)

    def can_view_user_details(self, requester_id: str, target_id: str) -> bool:
        """Full profiles are visible only between users with an active match."""
        user1_id, user2_id = canonical_pair(requester_id, target_id)

        def _read(session: Session) -> bool:
            stmt = (
                select(MatchDB.id)
                .where(
                    MatchDB.user1_id == user1_id,
                    MatchDB.user2_id == user2_id,
                    MatchDB.status == MatchStatus.ACTIVE.value,
                )
                .limit(1)
            )
            return session.scalar(stmt) is not None

        return read_with_retry(self.session_factory, _read)
