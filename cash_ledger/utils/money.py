from decimal import Decimal, ROUND_HALF_UP

from cash_ledger.models import MovementDirection

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convierte a Decimal con 2 decimales (pasando por str para evitar errores de float)."""
    if value is None or value == "":
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def apply_movement(balance, direction: MovementDirection, amount) -> Decimal:
    """Saldo resultante sin ningún piso: + para ingreso, - para egreso."""
    balance = to_money(balance)
    amount = to_money(amount)
    if direction == MovementDirection.INCOME:
        return balance + amount
    return balance - amount


def signed_amount(direction: MovementDirection, amount) -> Decimal:
    amount = to_money(amount)
    return amount if direction == MovementDirection.INCOME else -amount
