from glimpse.config import MatchingConfig, Settings


def test_matching_config_defaults():
    config = MatchingConfig()

    assert config.max_daily_likes == 1
    assert config.like_cooldown_days == 14
    assert config.match_expiry_days == 30
    assert config.deleted_user_nickname == "deleted_user"


def test_settings_build_matching_config(monkeypatch):
    monkeypatch.setenv("MAX_DAILY_LIKES", "3")
    monkeypatch.setenv("LIKE_COOLDOWN_DAYS", "7")
    monkeypatch.setenv("LIKE_DAY_TIMEZONE", "Asia/Seoul")

    config = Settings(_env_file=None).matching_config()

    assert config.max_daily_likes == 3
    assert config.like_cooldown_days == 7
    assert config.day_timezone == "Asia/Seoul"
    assert config.match_expiry_days == 30


def test_debug_follows_environment(monkeypatch):
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.setenv("ENVIRONMENT", "production")

    assert Settings(_env_file=None).DEBUG is False


def test_debug_explicit_string(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("DEBUG", "yes")

    assert Settings(_env_file=None).DEBUG is True
