"""
Commission service value types.

Results, pages and summaries returned by CommissionEngine and
CommissionLedger.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from affiliate.config.operational_constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from affiliate.models.commission import AffiliateCommission
from affiliate.models.enums import (
    CalculationOutcome,
    CommissionLevel,
    CommissionStatus,
)
from affiliate.utils.money import ZERO


@dataclass
class LineOutcome:
    """What happened to a single order line."""

    line_id: int
    success: bool
    record_count: int = 0
    amount: Decimal = ZERO
    error: str | None = None


@dataclass
class CalculationResult:
    """Result of one order's commission calculation."""

    order_id: int
    success: bool
    outcome: CalculationOutcome
    total_records: int = 0
    total_amount: Decimal = ZERO
    message: str = ""
    errors: list[str] = field(default_factory=list)
    lines: list[LineOutcome] = field(default_factory=list)

    @classmethod
    def failure(
        cls, order_id: int, error: str, lines: list[LineOutcome] | None = None
    ) -> "CalculationResult":
        """Build a failed result carrying one error."""
        return cls(
            order_id=order_id,
            success=False,
            outcome=CalculationOutcome.FAILED,
            message=f"Commission calculation failed for order {order_id}",
            errors=[error],
            lines=lines or [],
        )


@dataclass(frozen=True)
class PageRequest:
    """1-based page request."""

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    @property
    def offset(self) -> int:
        """Rows to skip."""
        return (self.page - 1) * self.limit


@dataclass
class CommissionPage:
    """One page of commission records."""

    items: list[AffiliateCommission]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        """Number of pages for the current total."""
        return (self.total + self.limit - 1) // self.limit


@dataclass
class OrderProductView:
    """Order line as shown next to a commission."""

    name: str
    quantity: int
    price: Decimal
    category: str
    line_total: Decimal


@dataclass
class OrderCommissionView:
    """An order a beneficiary earned on, with its line breakdown."""

    order_id: int
    code: str
    purchase_date: datetime | None
    buyer_id: int | None
    total: Decimal
    commission: Decimal
    products: list[OrderProductView] = field(default_factory=list)


@dataclass
class CommissionSummary:
    """Earnings of a beneficiary, overall and per level."""

    total_earned: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_pending: Decimal = ZERO
    total_sales: Decimal = ZERO
    count: int = 0
    by_level: dict[CommissionLevel, Decimal] = field(default_factory=dict)
    sales_by_level: dict[CommissionLevel, Decimal] = field(default_factory=dict)
    paid_by_level: dict[CommissionLevel, Decimal] = field(default_factory=dict)
    pending_by_level: dict[CommissionLevel, Decimal] = field(default_factory=dict)
    orders_by_level: dict[CommissionLevel, list[OrderCommissionView]] | None = None


@dataclass
class BeneficiaryCommissions:
    """Page of a beneficiary's commissions plus summary."""

    page: CommissionPage
    summary: CommissionSummary


@dataclass
class CommissionStatistics:
    """System-wide commission totals."""

    count: int = 0
    total: Decimal = ZERO
    pending: Decimal = ZERO
    paid: Decimal = ZERO


@dataclass
class CommissionCreate:
    """Input for manually created commission records."""

    order_id: int
    order_line_id: int
    product_id: int
    category_id: int
    beneficiary_id: int
    level: CommissionLevel
    rate: Decimal
    unit_price: Decimal
    quantity: int
    base_amount: Decimal | None = None
    amount: Decimal | None = None
    status: CommissionStatus = CommissionStatus.CALCULATED

    def __post_init__(self) -> None:
        self.level = CommissionLevel(self.level)
        self.status = CommissionStatus(self.status)
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")
        if self.unit_price < 0:
            raise ValueError("unit_price must not be negative")
        if not ZERO <= self.rate <= 1:
            raise ValueError("rate must be within [0, 1]")
