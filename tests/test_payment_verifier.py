"""
Tests for the simulated M-Pesa verifier.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from skillyme.services.payment_verifier import SimulatedMpesaVerifier, VerificationResult


@pytest.fixture
def verifier() -> SimulatedMpesaVerifier:
    return SimulatedMpesaVerifier(delay_seconds=0)


class TestSimulatedMpesaVerifier:
    """Tests for SimulatedMpesaVerifier.verify."""

    async def test_plain_code_pays_expected_amount(self, verifier: SimulatedMpesaVerifier) -> None:
        result = await verifier.verify("QGH123456", Decimal("200"))

        assert result == VerificationResult(
            is_valid=True, actual_amount=Decimal("200"), amount_match=True
        )

    async def test_code_containing_150_detects_150(self, verifier: SimulatedMpesaVerifier) -> None:
        result = await verifier.verify("ABC150999", Decimal("200"))

        assert result.is_valid is True
        assert result.actual_amount == Decimal("150")
        assert result.amount_match is False

    async def test_150_checked_before_50(self, verifier: SimulatedMpesaVerifier) -> None:
        result = await verifier.verify("XYZ150000", Decimal("150"))

        assert result.actual_amount == Decimal("150")
        assert result.amount_match is True

    async def test_code_containing_100(self, verifier: SimulatedMpesaVerifier) -> None:
        result = await verifier.verify("TID100ABC", Decimal("100"))

        assert result.actual_amount == Decimal("100")
        assert result.amount_match is True

    async def test_code_containing_50(self, verifier: SimulatedMpesaVerifier) -> None:
        result = await verifier.verify("QQQ500000", Decimal("200"))

        assert result.actual_amount == Decimal("50")
        assert result.amount_match is False

    @pytest.mark.parametrize("code", ["", "AB12", "A" * 21])
    async def test_invalid_code_length(self, verifier: SimulatedMpesaVerifier, code: str) -> None:
        result = await verifier.verify(code, Decimal("200"))

        assert result.is_valid is False
        assert result.actual_amount == Decimal("0")
        assert result.amount_match is False

    async def test_waits_configured_delay(self) -> None:
        verifier = SimulatedMpesaVerifier(delay_seconds=1.5)

        with patch(
            "skillyme.services.payment_verifier.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await verifier.verify("QGH123456", Decimal("200"))

        mock_sleep.assert_awaited_once_with(1.5)

    async def test_zero_delay_does_not_sleep(self, verifier: SimulatedMpesaVerifier) -> None:
        with patch(
            "skillyme.services.payment_verifier.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await verifier.verify("QGH123456", Decimal("200"))

        mock_sleep.assert_not_awaited()
