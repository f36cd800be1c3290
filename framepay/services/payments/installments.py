"""Installment plan calculation for card payments."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from framepay.common.errors import InvalidArgument
from framepay.services.payments.models import InstallmentOption


@dataclass(frozen=True)
class InstallmentPolicy:
    """Which installment counts are offered and when interest kicks in.

    Counts up to `interest_free_installments` carry no interest; above it the
    total is compounded once per installment at `interest_rate`.
    """

    max_installments: int = 12
    interest_free_installments: int = 3
    interest_rate: Decimal = Decimal("0.0299")
    min_installment_amount: int = 1

    def __post_init__(self) -> None:
        if self.max_installments < 1:
            raise InvalidArgument("max_installments must be >= 1")
        if self.interest_free_installments < 0:
            raise InvalidArgument("interest_free_installments must be >= 0")
        if self.interest_rate < 0:
            raise InvalidArgument("interest_rate must be >= 0")
        if self.min_installment_amount < 1:
            raise InvalidArgument("min_installment_amount must be >= 1")

    @classmethod
    def from_settings(cls, settings) -> "InstallmentPolicy":
        return cls(
            max_installments=settings.installments_max,
            interest_free_installments=settings.installments_interest_free,
            interest_rate=Decimal(settings.installments_interest_rate),
            min_installment_amount=settings.installments_min_amount,
        )


def _total_for(amount: int, count: int, policy: InstallmentPolicy) -> int:
    if count <= policy.interest_free_installments:
        return amount
    total = Decimal(amount) * (1 + policy.interest_rate) ** count
    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_options(amount: int, policy: InstallmentPolicy | None = None) -> list[InstallmentOption]:
    """Return the installment plans available for `amount` (minor units), ascending by count.

    Each installment is `ceil(total / count)`; the final one absorbs the
    difference so the plan sums exactly to `total_amount`. `1x` is always
    offered, larger counts only when every installment stays at or above the
    policy minimum.
    """

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgument("amount must be a positive integer number of minor units")
    policy = policy or InstallmentPolicy()

    options: list[InstallmentOption] = []
    for count in range(1, policy.max_installments + 1):
        total = _total_for(amount, count, policy)
        per_installment = -(-total // count)
        final_installment = total - per_installment * (count - 1)
        if count > 1 and (final_installment < 1 or total // count < policy.min_installment_amount):
            continue
        interest_applied = count > policy.interest_free_installments
        options.append(
            InstallmentOption(
                count=count,
                per_installment_amount=per_installment,
                final_installment_amount=final_installment,
                total_amount=total,
                interest_applied=interest_applied,
                interest_rate=(policy.interest_rate * 100) if interest_applied else Decimal("0"),
            )
        )
    return options
