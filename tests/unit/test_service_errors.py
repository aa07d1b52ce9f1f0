from __future__ import annotations

import pytest
from datetime import datetime, timedelta, timezone

from src.services.dates import as_utc, from_epoch_seconds, parse_datetime
from src.services.errors import (
    GenerationAPIError,
    GenerationConfigurationError,
    PaymentProviderError,
    ServiceError,
)


class TestGenerationAPIError:
    def test_attributes(self) -> None:
        error = GenerationAPIError(429, "Gemini API request failed: RESOURCE_EXHAUSTED", {"code": 429})

        assert error.status_code == 429
        assert error.message == "Gemini API request failed: RESOURCE_EXHAUSTED"
        assert error.details == {"code": 429}
        assert isinstance(error, ServiceError)

    def test_details_default_to_none(self) -> None:
        assert GenerationAPIError(500, "boom").details is None


class TestGenerationConfigurationError:
    def test_is_service_error(self) -> None:
        assert isinstance(GenerationConfigurationError("Missing key"), ServiceError)


class TestPaymentProviderError:
    def test_message_includes_provider(self) -> None:
        error = PaymentProviderError("Paddle", 422, "price not found")

        assert str(error) == "Paddle error: price not found"
        assert error.provider == "Paddle"
        assert error.status_code == 422
        assert error.message == "price not found"


class TestDates:
    def test_parse_trailing_z(self) -> None:
        assert parse_datetime("2024-02-01T00:00:00Z") == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_parse_offset(self) -> None:
        parsed = parse_datetime("2024-02-01T02:00:00+02:00")
        assert parsed is not None
        assert as_utc(parsed) == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_parse_invalid_returns_none(self) -> None:
        assert parse_datetime("not a date") is None
        assert parse_datetime(None) is None
        assert parse_datetime(12345) is None  # type: ignore[arg-type]

    def test_parse_passes_datetimes_through(self) -> None:
        value = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_datetime(value) is value

    def test_as_utc_converts_offsets(self) -> None:
        value = datetime(2024, 1, 1, 3, 0, tzinfo=timezone(timedelta(hours=3)))
        assert as_utc(value) == datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
        assert as_utc(value).tzinfo == timezone.utc

    def test_as_utc_assumes_naive_is_utc(self) -> None:
        assert as_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc

    def test_from_epoch_seconds(self) -> None:
        assert from_epoch_seconds(1706745600) == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert from_epoch_seconds("1706745600") == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_from_epoch_seconds_rejects_junk(self) -> None:
        assert from_epoch_seconds(None) is None
        assert from_epoch_seconds(True) is None
        assert from_epoch_seconds("soon") is None

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-01-15T08:00:00.12345+00:00", datetime(2024, 1, 15, 8, 0, 0, 123450, tzinfo=timezone.utc)),
            ("2024-01-15T08:00:00.1+00:00", datetime(2024, 1, 15, 8, 0, 0, 100000, tzinfo=timezone.utc)),
            ("2024-01-15T08:00:00.123456Z", datetime(2024, 1, 15, 8, 0, 0, 123456, tzinfo=timezone.utc)),
        ],
    )
    def test_parse_trimmed_fractional_seconds(self, value: str, expected: datetime) -> None:
        assert parse_datetime(value) == expected
