from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x if x is not None else "0"))
    except InvalidOperation:
        return Decimal("0")


def to_minor_units(amount) -> int:
    """Major currency units (4.99) to minor units (499), rounded half up."""
    return int((D(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
