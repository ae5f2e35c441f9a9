"""Currency conversion into the settlement currency."""

from decimal import ROUND_HALF_UP, Decimal

from .exceptions import RateUnavailableError

HUNDRED = Decimal("100")
CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.000001")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Coerce user or JSON input to Decimal.

    Floats go through ``str`` so that 7.8 becomes ``Decimal("7.8")`` rather
    than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def effective_rate(rate_raw: Decimal, fee_percent: Decimal) -> Decimal:
    """Raw exchange rate inflated by a card or exchange fee percentage."""
    return rate_raw * (1 + fee_percent / HUNDRED)


def convert(amount_foreign: Decimal, rate_raw: Decimal, fee_percent: Decimal) -> Decimal:
    """
    Convert a foreign amount into the settlement currency.

    No rounding is applied; see ``round_display`` for presentation. Callers
    decide the raw rate (``resolve_rate`` pins it to 1 for the settlement
    currency) so a fee on a settlement-currency payment stays representable.

    Args:
        amount_foreign: Positive amount in the expense currency
        rate_raw: Settlement-currency units per one unit of the expense currency
        fee_percent: Surcharge on top of the raw rate, in percent

    Returns:
        Amount in the settlement currency
    """
    return amount_foreign * effective_rate(rate_raw, fee_percent)


def resolve_rate(
    currency: str,
    rate_raw: Decimal | None,
    settlement_currency: str,
) -> Decimal:
    """
    Decide the raw rate to record for an expense.

    The settlement currency always converts at exactly 1, whatever was
    entered. Any other currency needs a positive rate from the user or the
    rate lookup.

    Raises:
        RateUnavailableError: If a foreign currency has no usable rate
    """
    if currency.strip().upper() == settlement_currency.strip().upper():
        return Decimal("1")
    if rate_raw is None or rate_raw <= 0:
        raise RateUnavailableError(
            f"No exchange rate for {currency.upper()} -> {settlement_currency.upper()}; "
            f"enter the rate manually"
        )
    return rate_raw


def round_rate(rate: Decimal) -> Decimal:
    """Round a looked-up rate to six decimal places."""
    return rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def round_display(amount: Decimal) -> Decimal:
    """Round to cents for display. Never feed the result back into the ledger."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
