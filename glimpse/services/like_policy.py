"""Credit, cooldown and daily-cap rules for sending likes.

Everything here is a pure function of its arguments; the like service gathers
the facts from the store and asks these functions for a decision.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from glimpse.config import MatchingConfig
from glimpse.models.user import User


def can_send_like(user: User) -> bool:
    """
    Check whether a user has the means to send a like.

    Args:
        user (User): The sender.

    Returns:
        bool: True if the user has credits left or is premium.
    """
    return user.is_premium or user.credits > 0


def calculate_like_cost(is_premium: bool) -> int:
    """Credits charged for one like: free for premium users, one otherwise."""
    return 0 if is_premium else 1


def cooldown_cutoff(now: datetime, config: MatchingConfig) -> datetime:
    """Earliest ``created_at`` of a previous like that still blocks a new one (exclusive)."""
    return now - timedelta(days=config.like_cooldown_days)


def is_cooldown_active(last_like_at: Optional[datetime], now: datetime, config: MatchingConfig) -> bool:
    """
    Check whether the sender is still cooling down for a target.

    A like created at ``T`` blocks new likes to the same target until
    ``T + like_cooldown_days``; from that instant on it no longer counts.

    Args:
        last_like_at (Optional[datetime]): Most recent like to the target, any group.
        now (datetime): Current time (naive UTC).
        config (MatchingConfig): Policy configuration.

    Returns:
        bool: True if a new like must be refused.
    """
    if last_like_at is None:
        return False
    return last_like_at > cooldown_cutoff(now, config)


def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def day_start(now: datetime, config: MatchingConfig) -> datetime:
    """
    Start of the sender's local day, as naive UTC.

    Args:
        now (datetime): Current time (naive UTC).
        config (MatchingConfig): Policy configuration holding the day timezone.

    Returns:
        datetime: Local midnight converted back to naive UTC.
    """
    local_now = now.replace(tzinfo=timezone.utc).astimezone(_zone(config.day_timezone))
    local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def has_reached_daily_limit(likes_today: int, is_premium: bool, config: MatchingConfig) -> bool:
    """Premium users are never capped; everyone else gets ``max_daily_likes`` per local day."""
    if is_premium:
        return False
    return likes_today >= config.max_daily_likes


def daily_likes_remaining(likes_today: int, is_premium: bool, config: MatchingConfig) -> Optional[int]:
    """Likes left today, or None when the user is not capped."""
    if is_premium:
        return None
    return max(0, config.max_daily_likes - likes_today)
