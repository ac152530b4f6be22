# app/utils/commission.py
"""
Commission arithmetic and CLP formatting.

All amounts are whole Chilean pesos. Rounding is half-up (0.5 -> 1), which
is what suppliers see in the app; Python's round() would use banker's
rounding and disagree on exact halves.
"""

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float | int | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_commission(amount: int, commission_percent: float) -> int:
    """Commission in CLP: round(amount * percent / 100), half-up."""
    return round_half_up(Decimal(str(amount)) * Decimal(str(commission_percent)) / 100)


def calculate_earnings(amount: int, commission_percent: float) -> int:
    """What the supplier keeps after commission."""
    return amount - calculate_commission(amount, commission_percent)


def format_clp(amount: int | float) -> str:
    """
    Format an amount as Chilean pesos.

    >>> format_clp(5000)
    '$5.000'
    >>> format_clp(-1500)
    '-$1.500'
    """
    value = round_half_up(amount)
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,}".replace(",", ".")
    return f"{sign}${grouped}"


def format_percent(percent: float) -> str:
    if float(percent).is_integer():
        return f"{int(percent)}%"
    return f"{percent}%"


def earnings_preview(amount: int, commission_percent: float) -> str:
    """
    Message shown to a supplier before submitting an offer.

    >>> earnings_preview(20000, 15)
    'Ganarás: $17.000 (después de 15% comisión)'
    """
    earnings = calculate_earnings(amount, commission_percent)
    return f"Ganarás: {format_clp(earnings)} (después de {format_percent(commission_percent)} comisión)"
