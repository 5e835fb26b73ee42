"""
Commission ledger.

Administrative access to commission records: CRUD, payout transitions,
filtered pages and per-beneficiary summaries.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.config.operational_constants import (
    DEFAULT_ORDERS_PER_LEVEL,
    MAX_ORDERS_PER_LEVEL,
)
from affiliate.config.settings import settings
from affiliate.models.commission import AffiliateCommission
from affiliate.models.commission_log import AffiliateCommissionLog
from affiliate.models.enums import CommissionLevel, CommissionStatus
from affiliate.repositories.commission_log_repository import (
    CommissionLogRepository,
)
from affiliate.repositories.commission_repository import (
    CommissionRepository,
    LevelStatusTotals,
)
from affiliate.repositories.filters import CommissionFilter
from affiliate.repositories.order_repository import OrderRepository
from affiliate.services.base_service import BaseService, transaction
from affiliate.services.commission.types import (
    BeneficiaryCommissions,
    CommissionCreate,
    CommissionPage,
    CommissionStatistics,
    CommissionSummary,
    OrderCommissionView,
    OrderProductView,
    PageRequest,
)
from affiliate.utils.datetime_utils import utc_now
from affiliate.utils.exceptions import (
    CommissionAlreadyPaidError,
    CommissionNotFoundError,
)
from affiliate.utils.money import ZERO, quantize_money


# Fields an administrator may change on an existing record
EDITABLE_FIELDS = frozenset({
    "rate",
    "base_amount",
    "quantity",
    "amount",
    "status",
    "paid_by",
    "paid_at",
})

# Presentation order for per-level breakdowns: buyer first
LEVEL_ORDER = (CommissionLevel.F2, CommissionLevel.F1, CommissionLevel.F0)


def build_summary(totals: list[LevelStatusTotals]) -> CommissionSummary:
    """
    Fold (level, status) buckets into a summary.

    Args:
        totals: Aggregated buckets

    Returns:
        Summary with per-level breakdowns
    """
    summary = CommissionSummary()
    for bucket in totals:
        level = CommissionLevel(bucket.level)
        status = CommissionStatus(bucket.status)

        summary.count += bucket.count
        summary.total_earned += bucket.amount
        summary.total_sales += bucket.sales
        summary.by_level[level] = summary.by_level.get(level, ZERO) + bucket.amount
        summary.sales_by_level[level] = (
            summary.sales_by_level.get(level, ZERO) + bucket.sales
        )

        if status == CommissionStatus.PAID:
            summary.total_paid += bucket.amount
            by_status = summary.paid_by_level
        else:
            summary.total_pending += bucket.amount
            by_status = summary.pending_by_level
        by_status[level] = by_status.get(level, ZERO) + bucket.amount
    return summary


class CommissionLedger(BaseService):
    """Commission record management and reporting."""

    def __init__(
        self,
        session: AsyncSession,
        commission_repo: CommissionRepository | None = None,
        order_repo: OrderRepository | None = None,
        log_repo: CommissionLogRepository | None = None,
        money_quantum: Decimal | None = None,
    ) -> None:
        """
        Initialize commission ledger.

        Args:
            session: Async database session
            commission_repo: Commission repository
            order_repo: Order repository
            log_repo: Calculation log repository
            money_quantum: Smallest currency unit for derived amounts
        """
        super().__init__(session)
        self.commission_repo = commission_repo or CommissionRepository(session)
        self.order_repo = order_repo or OrderRepository(session)
        self.log_repo = log_repo or CommissionLogRepository(session)
        self.money_quantum = (
            settings.commission_money_quantum
            if money_quantum is None
            else money_quantum
        )

    def _money(self, value: Decimal) -> Decimal:
        return quantize_money(value, self.money_quantum)

    @transaction
    async def create(self, data: CommissionCreate) -> AffiliateCommission:
        """
        Create a commission record by hand.

        base_amount defaults to unit_price * quantity and amount to
        base_amount * rate.

        Args:
            data: Commission data

        Returns:
            Created commission
        """
        base_amount = (
            data.base_amount
            if data.base_amount is not None
            else self._money(data.unit_price * data.quantity)
        )
        amount = (
            data.amount
            if data.amount is not None
            else self._money(base_amount * data.rate)
        )

        commission = await self.commission_repo.create(
            order_id=data.order_id,
            order_line_id=data.order_line_id,
            product_id=data.product_id,
            category_id=data.category_id,
            beneficiary_id=data.beneficiary_id,
            level=data.level,
            rate=data.rate,
            unit_price=data.unit_price,
            quantity=data.quantity,
            base_amount=base_amount,
            amount=amount,
            status=data.status,
            paid_at=utc_now() if data.status == CommissionStatus.PAID else None,
        )

        self.logger.info(
            f"Commission {commission.id} created manually",
            extra={
                "order_id": data.order_id,
                "beneficiary_id": data.beneficiary_id,
                "level": data.level.value,
                "amount": str(amount),
            },
        )
        return commission

    async def get(self, commission_id: int) -> AffiliateCommission:
        """
        Get commission by ID.

        Raises:
            CommissionNotFoundError: If it does not exist
        """
        commission = await self.commission_repo.get_by_id(commission_id)
        if commission is None:
            raise CommissionNotFoundError(commission_id)
        return commission

    @transaction
    async def update(
        self, commission_id: int, **changes: Any
    ) -> AffiliateCommission:
        """
        Update editable fields of a commission.

        When rate, base_amount or quantity change and amount is not given,
        amount is derived again. A quantity change without base_amount
        derives base_amount from the recorded unit price.

        Args:
            commission_id: Commission ID
            **changes: New field values

        Returns:
            Updated commission

        Raises:
            ValueError: On fields that cannot be edited or invalid values
            CommissionNotFoundError: If it does not exist
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")

        if "rate" in changes and not ZERO <= changes["rate"] <= 1:
            raise ValueError("rate must be within [0, 1]")
        if "quantity" in changes and changes["quantity"] <= 0:
            raise ValueError("quantity must be positive")
        if "status" in changes:
            changes["status"] = CommissionStatus(changes["status"])

        commission = await self.commission_repo.get_for_update(commission_id)
        if commission is None:
            raise CommissionNotFoundError(commission_id)

        if "quantity" in changes and "base_amount" not in changes:
            changes["base_amount"] = self._money(
                Decimal(commission.unit_price) * changes["quantity"]
            )
        if "amount" not in changes and ({"rate", "base_amount"} & set(changes)):
            base_amount = changes.get("base_amount", commission.base_amount)
            rate = changes.get("rate", commission.rate)
            changes["amount"] = self._money(Decimal(base_amount) * Decimal(rate))

        if changes.get("status") == CommissionStatus.PAID and "paid_at" not in changes:
            if not commission.is_paid:
                changes["paid_at"] = utc_now()
        elif changes.get("status") == CommissionStatus.CALCULATED:
            changes.setdefault("paid_at", None)
            changes.setdefault("paid_by", None)

        for key, value in changes.items():
            setattr(commission, key, value)
        await self.session.flush()

        self.logger.info(
            f"Commission {commission_id} updated",
            extra={"fields": sorted(changes)},
        )
        return commission

    @transaction
    async def delete(self, commission_id: int) -> None:
        """
        Delete a commission.

        Raises:
            CommissionNotFoundError: If it does not exist
        """
        deleted = await self.commission_repo.delete(commission_id)
        if not deleted:
            raise CommissionNotFoundError(commission_id)
        self.logger.info(f"Commission {commission_id} deleted")

    @transaction
    async def mark_paid(
        self, commission_id: int, paid_by: str
    ) -> AffiliateCommission:
        """
        Move a commission from calculated to paid.

        The row is locked (SELECT ... FOR UPDATE) for the transition, so
        two concurrent payouts cannot both succeed.

        Args:
            commission_id: Commission ID
            paid_by: Operator identifier

        Returns:
            Paid commission

        Raises:
            CommissionNotFoundError: If it does not exist
            CommissionAlreadyPaidError: If it is already paid (nothing changes)
        """
        commission = await self.commission_repo.get_for_update(commission_id)
        if commission is None:
            raise CommissionNotFoundError(commission_id)
        if commission.is_paid:
            raise CommissionAlreadyPaidError(commission_id)

        commission.status = CommissionStatus.PAID
        commission.paid_at = utc_now()
        commission.paid_by = paid_by
        await self.session.flush()

        self.logger.info(
            f"Commission {commission_id} marked as paid",
            extra={
                "beneficiary_id": commission.beneficiary_id,
                "amount": str(commission.amount),
                "paid_by": paid_by,
            },
        )
        return commission

    async def query(
        self,
        filters: CommissionFilter | None = None,
        page: PageRequest | None = None,
    ) -> CommissionPage:
        """
        Filtered page of commissions, newest first.

        Args:
            filters: Filter criteria
            page: Page request (defaults to first page)

        Returns:
            Commission page
        """
        page = page or PageRequest()
        items, total = await self.commission_repo.find_filtered(
            filters, offset=page.offset, limit=page.limit
        )
        return CommissionPage(
            items=items, total=total, page=page.page, limit=page.limit
        )

    async def summarize(
        self,
        beneficiary_id: int,
        filters: CommissionFilter | None = None,
    ) -> CommissionSummary:
        """
        Earnings summary of a beneficiary.

        Args:
            beneficiary_id: User ID
            filters: Extra criteria (level, status, date range, ...)

        Returns:
            Totals overall and per level
        """
        scoped = (filters or CommissionFilter()).with_changes(
            beneficiary_id=beneficiary_id
        )
        totals = await self.commission_repo.totals_by_level_status(scoped)
        return build_summary(totals)

    async def top_orders_by_level(
        self,
        beneficiary_id: int,
        limit_per_level: int = DEFAULT_ORDERS_PER_LEVEL,
        filters: CommissionFilter | None = None,
    ) -> dict[CommissionLevel, list[OrderCommissionView]]:
        """
        Most recent distinct orders per level with their line breakdown.

        Args:
            beneficiary_id: User ID
            limit_per_level: Max orders per level
            filters: Extra criteria

        Returns:
            Level -> orders, newest first
        """
        if not 1 <= limit_per_level <= MAX_ORDERS_PER_LEVEL:
            raise ValueError(
                f"limit_per_level must be between 1 and {MAX_ORDERS_PER_LEVEL}"
            )

        scoped = (filters or CommissionFilter()).with_changes(
            beneficiary_id=beneficiary_id
        )
        if scoped.level is not None:
            levels = [scoped.level]
        else:
            levels = list(LEVEL_ORDER)

        totals_by_level = {
            level: await self.commission_repo.recent_orders(
                scoped.with_changes(level=level), limit_per_level
            )
            for level in levels
        }

        order_ids = sorted({
            total.order_id
            for totals in totals_by_level.values()
            for total in totals
        })
        orders = await self.order_repo.get_many_with_lines(order_ids)

        result: dict[CommissionLevel, list[OrderCommissionView]] = {}
        for level, totals in totals_by_level.items():
            views = []
            for total in totals:
                order = orders.get(total.order_id)
                if order is None:
                    continue
                views.append(
                    OrderCommissionView(
                        order_id=order.id,
                        code=order.code,
                        purchase_date=order.purchase_date,
                        buyer_id=order.buyer_id,
                        total=order.total,
                        commission=total.amount,
                        products=[
                            OrderProductView(
                                name=line.product_name or "Unknown Product",
                                quantity=line.quantity,
                                price=Decimal(line.unit_price),
                                category=line.category_name or "Unknown",
                                line_total=line.line_total,
                            )
                            for line in order.lines
                        ],
                    )
                )
            result[level] = views
        return result

    async def get_beneficiary_commissions(
        self,
        beneficiary_id: int,
        filters: CommissionFilter | None = None,
        page: PageRequest | None = None,
        include_orders: bool = False,
        order_limit: int = DEFAULT_ORDERS_PER_LEVEL,
    ) -> BeneficiaryCommissions:
        """
        Page of a beneficiary's commissions with summary.

        Args:
            beneficiary_id: User ID
            filters: Extra criteria
            page: Page request
            include_orders: Attach recent orders per level to the summary
            order_limit: Orders per level when include_orders is set

        Returns:
            Page and summary
        """
        scoped = (filters or CommissionFilter()).with_changes(
            beneficiary_id=beneficiary_id
        )
        commission_page = await self.query(scoped, page)
        summary = await self.summarize(beneficiary_id, scoped)

        if include_orders:
            summary.orders_by_level = await self.top_orders_by_level(
                beneficiary_id, order_limit, scoped
            )

        return BeneficiaryCommissions(page=commission_page, summary=summary)

    async def statistics(self) -> CommissionStatistics:
        """
        System-wide commission totals.

        Returns:
            Count, total, pending and paid amounts
        """
        summary = build_summary(
            await self.commission_repo.totals_by_level_status(None)
        )
        return CommissionStatistics(
            count=summary.count,
            total=summary.total_earned,
            pending=summary.total_pending,
            paid=summary.total_paid,
        )

    async def calculation_history(
        self, order_id: int
    ) -> list[AffiliateCommissionLog]:
        """
        Calculation attempts of an order, oldest first.

        Args:
            order_id: Order ID

        Returns:
            Log entries
        """
        return await self.log_repo.list_by_order(order_id)
