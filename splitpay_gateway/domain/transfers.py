"""Split-transfer validation - pairs requested amounts with configured payout accounts"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Sequence

from splitpay_gateway.domain.exceptions import TransferValidationError
from splitpay_gateway.domain.models import SplitPlan, TransferSpec

NON_NEGATIVE_INTEGERS_ERROR = "transferAmounts must be non-negative integers (cents)."
DESTINATIONS_NOT_CONFIGURED_ERROR = "destination accounts not configured (CONNECTED_ACCOUNT_IDS is empty or missing)."
TRANSFER_SUM_EXCEEDS_TOTAL_ERROR = "transfer sum exceeds total amount."

# Largest amount Stripe accepts in one charge or transfer (eight digits)
MAX_TRANSFER_CENTS = 99_999_999
TRANSFER_TOO_LARGE_ERROR = f"transferAmounts must not exceed {MAX_TRANSFER_CENTS} cents."


def _as_cents(value: Any) -> Optional[int]:
    """
    Coerce one requested amount to integer cents, or None if it is not a non-negative integer.

    Raises:
        TransferValidationError: Amount is above MAX_TRANSFER_CENTS
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        if value > MAX_TRANSFER_CENTS:
            raise TransferValidationError(TRANSFER_TOO_LARGE_ERROR)
        return value if value >= 0 else None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number < 0:
        return None
    # Compared as a Decimal so "1e99999999" never expands into a huge integer
    if number > MAX_TRANSFER_CENTS:
        raise TransferValidationError(TRANSFER_TOO_LARGE_ERROR)
    if number != number.to_integral_value():
        return None
    return int(number)


def build_split_plan(
    transfer_amounts: Optional[Sequence[Any]],
    destination_accounts: Sequence[str],
) -> SplitPlan:
    """
    Validate requested transfer amounts against the configured destinations.

    Requirements:
    - Absent or empty amounts -> empty plan, whatever the configuration
    - Every amount is a non-negative integer count of cents
    - Destinations are configured and pair 1:1 with amounts, by position

    The caller checks the plan total against the charge amount
    (see ensure_within_total).

    Raises:
        TransferValidationError: On any violation; no partial plan is returned

    Example:
        [100, 200] with ["acct_a", "acct_b"]
        -> [acct_a: 100, acct_b: 200], total 300
    """
    if not transfer_amounts:
        return SplitPlan()

    if not isinstance(transfer_amounts, (list, tuple)):
        raise TransferValidationError(NON_NEGATIVE_INTEGERS_ERROR)

    parsed: List[int] = []
    for raw in transfer_amounts:
        cents = _as_cents(raw)
        if cents is None:
            raise TransferValidationError(NON_NEGATIVE_INTEGERS_ERROR)
        parsed.append(cents)

    if not destination_accounts:
        raise TransferValidationError(DESTINATIONS_NOT_CONFIGURED_ERROR)

    if len(parsed) != len(destination_accounts):
        raise TransferValidationError(
            f"transferAmounts length mismatch: got {len(parsed)} amounts "
            f"for {len(destination_accounts)} configured destination accounts."
        )

    transfers = [
        TransferSpec(destination_account=acct, amount_cents=cents)
        for acct, cents in zip(destination_accounts, parsed)
    ]
    return SplitPlan(transfers=transfers, total_transfer_cents=sum(parsed))


def ensure_within_total(plan: SplitPlan, total_amount_cents: int) -> None:
    """Reject a plan that would move more than was charged"""
    if plan.total_transfer_cents > total_amount_cents:
        raise TransferValidationError(TRANSFER_SUM_EXCEEDS_TOTAL_ERROR)


def transfer_idempotency_key(payment_intent_id: str, index: int) -> str:
    """Deterministic key per (charge, position) so a replayed request never transfers twice"""
    return f"tr_{payment_intent_id}_{index}"


def platform_retained_cents(total_amount_cents: int, plan: SplitPlan) -> int:
    """
    Nominal amount the platform keeps.

    Computed from the requested split, not from transfers that actually
    settled, so it is an audit figure rather than a reconciliation figure.
    """
    return total_amount_cents - plan.total_transfer_cents


def splits_metadata(plan: SplitPlan) -> dict:
    """Stripe metadata carrying the split so out-of-band reconciliation can recover it"""
    return {
        "splits_json": json.dumps([t.to_metadata() for t in plan.transfers], separators=(",", ":")),
        "total_transfer_amount": str(plan.total_transfer_cents),
    }
