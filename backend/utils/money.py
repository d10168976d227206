from decimal import Decimal, ROUND_HALF_UP

PAISE_PER_RUPEE = 100

_ONE_PAISA = Decimal("1")
_TWO_PLACES = Decimal("0.01")


def to_paise(amount) -> int:
    """
    Rupee figure (int/float/str/Decimal) -> whole paise, half-up.
    Floats go through str() so 0.1 stays 0.1.
    """
    if amount is None:
        return 0
    value = Decimal(str(amount)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    return int(value * PAISE_PER_RUPEE)


def from_paise(paise: int) -> float:
    return float(Decimal(int(paise)) / PAISE_PER_RUPEE)


def percent_of(paise: int, rate) -> Decimal:
    # exact, unrounded share in paise
    return Decimal(int(paise)) * Decimal(str(rate)) / Decimal(100)


def round_paise(value: Decimal) -> int:
    return int(Decimal(value).quantize(_ONE_PAISA, rounding=ROUND_HALF_UP))
