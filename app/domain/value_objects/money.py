"""Value Object Money - representa un valor monetario con su moneda."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.domain.errors import InvalidMoneyError


@dataclass(frozen=True)
class Money:
    """
    Value Object inmutable que representa un monto monetario.

    Attributes:
        amount: Monto decimal (hasta 2 decimales).
        currency_code: Código ISO 4217 de la moneda (ej: PKR, USD, EUR).
    """

    amount: Decimal
    currency_code: str

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

        if len(self.currency_code) != 3:
            raise InvalidMoneyError(f"currency_code debe ser de 3 caracteres: {self.currency_code}")
        object.__setattr__(self, "currency_code", self.currency_code.upper())

        if self.amount < 0:
            raise InvalidMoneyError(f"amount no puede ser negativo: {self.amount}")

    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency_code}"

    @classmethod
    def from_cents(cls, cents: int, currency_code: str) -> "Money":
        """Crea un Money desde centavos (útil para Stripe)."""
        return cls(amount=Decimal(cents) / 100, currency_code=currency_code)

    def to_cents(self) -> int:
        """Convierte a centavos (útil para Stripe)."""
        return int((self.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
