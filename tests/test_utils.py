"""Unit tests for configuration, validators, sanitisation, tokens and the rate limiter."""

from datetime import datetime, timedelta, timezone

import pytest
from helpers import make_settings

from tourhub.config import INSECURE_SECRET_KEY, Settings
from tourhub.errors import AuthenticationError
from tourhub.rate_limiter import RateLimiter
from tourhub.responses import envelope, error_envelope, paginate
from tourhub.security_utils import (
    check_password_strength,
    constant_time_compare,
    create_jwt_token,
    create_token_pair,
    decode_jwt_token,
    hash_password,
    parse_user_agent,
    verify_password,
)
from tourhub.shared.validators import (
    is_valid_coordinates,
    is_valid_time,
    validate_email,
    validate_phone,
    validate_url,
)
from tourhub.utils.dates import hours_until, to_naive_utc, utcnow
from tourhub.utils.sanitization import sanitize_keys, sanitize_list, sanitize_string


class TestSettings:
    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SECRET_KEY", "from-the-environment")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://tours.example.com, https://admin.example.com")
        monkeypatch.setenv("BOOKING_TAX_RATE", "0.08")
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.delenv("REDIS_URL", raising=False)

        settings = Settings.from_env(tmp_path / ".env")

        assert settings.secret_key == "from-the-environment"
        assert settings.allowed_origins == ["https://tours.example.com", "https://admin.example.com"]
        assert settings.booking_tax_rate == 0.08
        assert settings.rate_limit_enabled is False
        assert settings.redis_url is None

    def test_missing_secret_warns(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        with pytest.warns(RuntimeWarning):
            settings = Settings.from_env(tmp_path / ".env")
        assert settings.secret_key == INSECURE_SECRET_KEY

    def test_production_requires_a_secret(self):
        with pytest.raises(RuntimeError):
            Settings(environment="production").validate()

    def test_overrides(self):
        settings = make_settings().with_overrides(default_city="Santa Marta")
        assert settings.default_city == "Santa Marta"
        assert settings.environment == "test"


class TestValidators:
    def test_email(self):
        assert validate_email("  Ana@Example.COM ") == "ana@example.com"
        with pytest.raises(ValueError):
            validate_email("ana@example")

    @pytest.mark.parametrize("phone", ["+57 300 123 4567", "(605) 664-1234"])
    def test_valid_phone(self, phone):
        assert validate_phone(phone) == phone

    @pytest.mark.parametrize("phone", ["12345", "call me", "+1 234 567 890 123 456"])
    def test_invalid_phone(self, phone):
        with pytest.raises(ValueError):
            validate_phone(phone)

    def test_url(self):
        assert validate_url(" https://example.com/a ") == "https://example.com/a"
        with pytest.raises(ValueError):
            validate_url("ftp://example.com")

    def test_time_and_coordinates(self):
        assert is_valid_time("07:30")
        assert not is_valid_time("24:00")
        assert is_valid_coordinates(10.39, -75.51)
        assert not is_valid_coordinates(91, 0)
        assert not is_valid_coordinates("north", 0)


class TestSanitization:
    def test_strips_markup_and_control_characters(self):
        assert sanitize_string("<b>Hola</b>\x07 mundo ") == "Hola mundo"
        assert sanitize_string(None) is None

    def test_list(self):
        assert sanitize_list(["<i>a</i>", 3]) == ["a", 3]

    def test_keys(self):
        cleaned = sanitize_keys({"$gt": 1, "a.b": [{"$ne": "<b>x</b>"}]})
        assert cleaned == {"_gt": 1, "a_b": [{"_ne": "x"}]}


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Traveler123", rounds=4)
        assert hashed.startswith("$2")
        assert verify_password("Traveler123", hashed, rounds=4)
        assert not verify_password("traveler123", hashed, rounds=4)
        assert not verify_password("Traveler123", None)
        assert not verify_password("Traveler123", "not-a-hash")

    @pytest.mark.parametrize(
        "password, expected",
        [
            ("Traveler123", []),
            ("short1", ["Password must be at least 8 characters long"]),
            ("onlyletters", ["Password must contain at least one number"]),
            (
                "12345678",
                [
                    "Password must contain at least one letter",
                    "This is a commonly used password - choose something unique",
                ],
            ),
        ],
    )
    def test_strength(self, password, expected):
        assert check_password_strength(password) == expected


class TestTokens:
    def test_token_pair_round_trip(self):
        settings = make_settings()
        tokens = create_token_pair(settings, user_id=7, role="user", session_id=3)
        assert tokens["tokenType"] == "Bearer"
        assert tokens["expiresIn"] == settings.access_token_expire_minutes * 60

        claims = decode_jwt_token(settings, tokens["accessToken"], "access")
        assert (claims["sub"], claims["sid"], claims["role"]) == (7, 3, "user")

    def test_wrong_type(self):
        settings = make_settings()
        tokens = create_token_pair(settings, user_id=7, role="user", session_id=3)
        with pytest.raises(AuthenticationError, match="Invalid token type"):
            decode_jwt_token(settings, tokens["refreshToken"], "access")

    def test_expired(self):
        settings = make_settings()
        token = create_jwt_token(settings, {"sub": "1", "sid": 1}, timedelta(seconds=-5), "access")
        with pytest.raises(AuthenticationError, match="expired"):
            decode_jwt_token(settings, token, "access")

    def test_wrong_secret(self):
        token = create_token_pair(make_settings(), 1, "user", 1)["accessToken"]
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_jwt_token(make_settings(secret_key="another-secret"), token, "access")

    def test_constant_time_compare(self):
        assert constant_time_compare("abc", "abc")
        assert not constant_time_compare("abc", "abd")


class TestUserAgent:
    def test_mobile_safari(self):
        ua = (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
            "AppleWebKit/605.1.15 Version/17.0 Mobile Safari/604.1"
        )
        parsed = parse_user_agent(ua)
        assert parsed["browser"] == "Safari"
        assert parsed["os"] == "iOS"
        assert parsed["isMobile"] is True

    def test_missing(self):
        assert parse_user_agent(None) == {"userAgent": "", "browser": "Unknown", "os": "Unknown", "isMobile": False}


class TestRateLimiter:
    def test_fixed_window(self):
        limiter = RateLimiter()
        results = [limiter.check("auth:1.2.3.4", limit=2, window_seconds=60)[0] for _ in range(3)]
        assert results == [True, True, False]

        allowed, count, ttl = limiter.check("auth:5.6.7.8", limit=2, window_seconds=60)
        assert (allowed, count) == (True, 1)
        assert 0 < ttl <= 60

    def test_reset(self):
        limiter = RateLimiter()
        limiter.check("k", limit=1, window_seconds=60)
        limiter.reset()
        assert limiter.check("k", limit=1, window_seconds=60)[0] is True


class TestResponses:
    def test_paginate(self):
        assert paginate(2, 10, 25, "totalPlans") == {
            "currentPage": 2,
            "totalPages": 3,
            "totalPlans": 25,
            "limit": 10,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    def test_envelopes(self):
        assert envelope("ok") == {"success": True, "message": "ok"}
        assert error_envelope("nope", "CONFLICT_ERROR", {"field": "email"}) == {
            "success": False,
            "message": "nope",
            "error": {"code": "CONFLICT_ERROR", "details": {"field": "email"}},
        }


class TestDates:
    def test_hours_until(self):
        now = utcnow()
        assert hours_until(now + timedelta(hours=30), now) == 30

    def test_to_naive_utc(self):
        bogota = timezone(timedelta(hours=-5))
        assert to_naive_utc(datetime(2026, 1, 1, 7, tzinfo=bogota)) == datetime(2026, 1, 1, 12)
