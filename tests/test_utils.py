from datetime import datetime, timedelta, timezone

import pytest

from app.services.settings_service import tier_key_for
from app.utils.commission import (
    calculate_commission,
    calculate_earnings,
    earnings_preview,
    format_clp,
    round_half_up,
)
from app.utils.countdown import (
    format_countdown,
    is_critical_state,
    is_warning_state,
    time_remaining_ms,
)
from app.utils.formatting import (
    document_expiration_status,
    format_liters,
    format_phone_for_whatsapp,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestCommission:
    def test_commission_is_percent_of_amount(self):
        assert calculate_commission(20000, 15) == 3000
        assert calculate_earnings(20000, 15) == 17000

    def test_exact_half_rounds_up(self):
        # 4999 * 10% = 499.9 ; 5005 * 10% = 500.5
        assert calculate_commission(4999, 10) == 500
        assert calculate_commission(5005, 10) == 501
        assert round_half_up(2.5) == 3

    def test_zero_percent_override(self):
        assert calculate_commission(75000, 0) == 0
        assert calculate_earnings(75000, 0) == 75000

    def test_format_clp(self):
        assert format_clp(5000) == "$5.000"
        assert format_clp(140000) == "$140.000"
        assert format_clp(0) == "$0"
        assert format_clp(-1500) == "-$1.500"

    def test_earnings_preview_message(self):
        assert earnings_preview(20000, 15) == "Ganarás: $17.000 (después de 15% comisión)"
        assert earnings_preview(5000, 12.5) == "Ganarás: $4.375 (después de 12.5% comisión)"


class TestCountdown:
    def test_remaining_is_clamped_at_zero(self):
        assert time_remaining_ms(NOW - timedelta(minutes=1), NOW) == 0
        assert time_remaining_ms(NOW + timedelta(seconds=90), NOW) == 90_000

    def test_naive_expiry_is_treated_as_utc(self):
        naive = (NOW + timedelta(minutes=2)).replace(tzinfo=None)
        assert time_remaining_ms(naive, NOW) == 120_000

    @pytest.mark.parametrize(
        "ms, label",
        [
            (0, "Expirada"),
            (-5, "Expirada"),
            (59_000, "00:59"),
            (14 * 60_000 + 32_000, "14:32"),
            (3_600_000, "1 h 00 min"),
            (3_600_000 + 5 * 60_000, "1 h 05 min"),
        ],
    )
    def test_format_countdown(self, ms, label):
        assert format_countdown(ms) == label

    def test_warning_and_critical_thresholds(self):
        assert is_warning_state(9 * 60_000)
        assert not is_warning_state(10 * 60_000)
        assert is_critical_state(4 * 60_000)
        assert not is_critical_state(5 * 60_000)
        assert not is_warning_state(0)
        assert not is_critical_state(0)


class TestFormatting:
    def test_format_liters(self):
        assert format_liters(100) == "100 litros"
        assert format_liters(1000) == "1 mil litros"
        assert format_liters(5000) == "5 mil litros"

    def test_whatsapp_phone(self):
        assert format_phone_for_whatsapp("+56 9 1234 5678") == "56912345678"
        assert format_phone_for_whatsapp("912345678") == "56912345678"

    def test_document_expiration_status(self):
        assert document_expiration_status(None, NOW) == "no_expiry"
        assert document_expiration_status(NOW - timedelta(days=1), NOW) == "expired"
        assert document_expiration_status(NOW + timedelta(days=30), NOW) == "expiring_soon"
        assert document_expiration_status(NOW + timedelta(days=90), NOW) == "valid"

    def test_tier_for_amount(self):
        assert tier_key_for(100) == "price_100l"
        assert tier_key_for(1000) == "price_1000l"
        assert tier_key_for(5000) == "price_5000l"
        assert tier_key_for(10000) == "price_10000l"
