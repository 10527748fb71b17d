"""
Payment Verifier Protocol - Provider-agnostic amount verification.

The only implementation shipped is a simulation. A real Daraja (M-Pesa API)
callback/webhook verifier plugs in behind the same protocol.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from skillyme.models.domain import MPESA_CODE_MAX_LENGTH, MPESA_CODE_MIN_LENGTH


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of verifying a transaction code.

    A mismatch or an invalid result must never be turned into a paid status
    by the caller.
    """

    is_valid: bool
    actual_amount: Decimal
    amount_match: bool


class PaymentVerifier(Protocol):
    """
    Payment verifier protocol.

    Any mobile-money verifier (simulated, Daraja transaction status query,
    C2B confirmation webhook store) must implement this interface.
    """

    async def verify(self, mpesa_code: str, expected_amount: Decimal) -> VerificationResult:
        """
        Verify a transaction code and detect the amount actually paid.

        Args:
            mpesa_code: Extracted transaction code
            expected_amount: Amount the payment should cover

        Returns:
            Verification result with detected amount and match flag

        Raises:
            PaymentVerificationError: If the verification backend fails
        """
        ...


class SimulatedMpesaVerifier:
    """
    Stand-in verifier that fakes provider latency and amount detection.

    Codes containing "150", "100" or "50" (checked in that order) are read as
    payments of that many shillings; any other code is assumed to have paid
    exactly what was expected.
    """

    SIMULATED_AMOUNTS: tuple[tuple[str, Decimal], ...] = (
        ("150", Decimal("150")),
        ("100", Decimal("100")),
        ("50", Decimal("50")),
    )

    def __init__(self, delay_seconds: float = 1.0) -> None:
        self.delay_seconds = delay_seconds

    def detect_amount(self, mpesa_code: str, expected_amount: Decimal) -> Decimal:
        """Deterministically derive the "paid" amount from the code text."""
        for marker, amount in self.SIMULATED_AMOUNTS:
            if marker in mpesa_code:
                return amount
        return expected_amount

    async def verify(self, mpesa_code: str, expected_amount: Decimal) -> VerificationResult:
        """Simulate a round trip to the provider, then detect the amount."""
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if not mpesa_code or not (
            MPESA_CODE_MIN_LENGTH <= len(mpesa_code) <= MPESA_CODE_MAX_LENGTH
        ):
            return VerificationResult(
                is_valid=False,
                actual_amount=Decimal("0"),
                amount_match=False,
            )

        actual_amount = self.detect_amount(mpesa_code, expected_amount)
        return VerificationResult(
            is_valid=True,
            actual_amount=actual_amount,
            amount_match=actual_amount == expected_amount,
        )
