"""
Commission engine.

Turns a completed order into commission records for the buyer (F2), the
buyer's direct referrer (F1) and that referrer's referrer (F0).
Recomputing an order replaces its records, so the engine is safe to
re-run.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.config.commission_rates import (
    DEFAULT_RATE_TABLE,
    FAN_OUT_DEPTH,
    LEVEL_BY_DEPTH,
    CommissionRateTable,
)
from affiliate.config.settings import settings
from affiliate.models.enums import (
    CalculationOutcome,
    CommissionLevel,
    CommissionStatus,
    OrderStatus,
)
from affiliate.models.order import Order, OrderLine
from affiliate.repositories.commission_log_repository import (
    CommissionLogRepository,
)
from affiliate.repositories.commission_repository import CommissionRepository
from affiliate.repositories.order_repository import OrderRepository
from affiliate.services.base_service import BaseService
from affiliate.services.commission.types import CalculationResult, LineOutcome
from affiliate.services.notification_service import (
    COMMISSION_CALCULATED,
    LoggingNotifier,
    Notifier,
    send_notification,
)
from affiliate.services.referral.graph_store import ReferralGraphStore
from affiliate.utils.datetime_utils import utc_now
from affiliate.utils.distributed_lock import DistributedLock, get_distributed_lock
from affiliate.utils.exceptions import (
    CategoryNotFoundError,
    CommissionLineError,
    ConcurrencyConflictError,
    InvalidStateError,
    NoValidLinesError,
    NotFoundError,
    OrderNotFoundError,
)
from affiliate.utils.money import ZERO, quantize_money, quantize_rate


def order_lock_key(order_id: int) -> str:
    """Lock name serializing calculations of one order."""
    return f"commission:order:{order_id}"


class CommissionEngine(BaseService):
    """
    Multi-level commission distribution.

    Example:
        engine = CommissionEngine(session)
        result = await engine.calculate_for_order(42, processed_by="worker-1")
        if not result.success:
            logger.warning(result.errors)
    """

    def __init__(
        self,
        session: AsyncSession,
        graph: ReferralGraphStore | None = None,
        order_repo: OrderRepository | None = None,
        commission_repo: CommissionRepository | None = None,
        log_repo: CommissionLogRepository | None = None,
        lock: DistributedLock | None = None,
        notifier: Notifier | None = None,
        rates: CommissionRateTable = DEFAULT_RATE_TABLE,
        money_quantum: Decimal | None = None,
        allow_partial: bool | None = None,
    ) -> None:
        """
        Initialize commission engine.

        Args:
            session: Async database session
            graph: Graph store used to resolve referrers
            order_repo: Order repository
            commission_repo: Commission repository
            log_repo: Calculation log repository
            lock: Per-order lock (defaults to best available backend)
            notifier: Event notifier (defaults to LoggingNotifier)
            rates: Default rate table
            money_quantum: Smallest currency unit for rounding
            allow_partial: Keep valid lines when other lines fail
        """
        super().__init__(session)
        self.graph = graph or ReferralGraphStore(session)
        self.order_repo = order_repo or OrderRepository(session)
        self.commission_repo = commission_repo or CommissionRepository(session)
        self.log_repo = log_repo or CommissionLogRepository(session)
        self.lock = lock or get_distributed_lock(session=session)
        self.notifier = notifier or LoggingNotifier()
        self.rates = rates
        self.money_quantum = (
            settings.commission_money_quantum
            if money_quantum is None
            else money_quantum
        )
        self.allow_partial = (
            settings.commission_allow_partial
            if allow_partial is None
            else allow_partial
        )

    async def calculate_for_order(
        self,
        order_id: int,
        *,
        processed_by: str = "",
        notes: str = "",
        rates: CommissionRateTable | None = None,
    ) -> CalculationResult:
        """
        Calculate (or recalculate) commissions for a completed order.

        Existing records of the order are replaced in the same transaction.
        Failures inside the calculation are rolled back, recorded in the
        calculation log and returned as a failed result.

        Args:
            order_id: Order ID
            processed_by: Operator or worker identifier for the log
            notes: Free text for the log
            rates: Rate table for this call (defaults to the engine's)

        Returns:
            Calculation result

        Raises:
            OrderNotFoundError: If the order does not exist
            InvalidStateError: If the order is not completed
            ConcurrencyConflictError: If the order is being calculated
                by another worker
        """
        order = await self.order_repo.get_with_lines(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status != OrderStatus.COMPLETED:
            raise InvalidStateError(
                f"Order {order_id} has status {OrderStatus(order.status).value}, "
                f"commissions are calculated for completed orders only"
            )

        async with self.lock.lock(
            order_lock_key(order_id),
            timeout=settings.commission_lock_timeout,
            blocking=False,
        ) as acquired:
            if not acquired:
                raise ConcurrencyConflictError(
                    f"Commission calculation for order {order_id} "
                    f"is already in progress"
                )

            result, earnings = await self._calculate_locked(
                order,
                rates or self.rates,
                processed_by=processed_by,
                notes=notes,
            )

        for beneficiary_id, amount in earnings.items():
            await send_notification(
                self.notifier,
                beneficiary_id,
                COMMISSION_CALCULATED,
                {"order_id": order_id, "amount": str(amount)},
            )

        return result

    async def calculate_for_orders(
        self,
        order_ids: list[int],
        *,
        processed_by: str = "",
        rates: CommissionRateTable | None = None,
    ) -> list[CalculationResult]:
        """
        Calculate a batch of orders, continuing past failures.

        Precondition and lock conflicts are reported as failed results
        instead of stopping the batch.

        Args:
            order_ids: Order IDs
            processed_by: Operator or worker identifier for the log
            rates: Rate table for these calls

        Returns:
            One result per order, in input order
        """
        results: list[CalculationResult] = []
        for order_id in order_ids:
            try:
                result = await self.calculate_for_order(
                    order_id, processed_by=processed_by, rates=rates
                )
            except (
                NotFoundError,
                InvalidStateError,
                ConcurrencyConflictError,
            ) as e:
                self.logger.warning(
                    f"Skipping commission calculation for order {order_id}: {e}"
                )
                result = CalculationResult.failure(order_id, str(e))
            results.append(result)

        succeeded = sum(1 for r in results if r.success)
        self.logger.info(
            f"Commission batch finished: {succeeded}/{len(results)} succeeded",
            extra={"processed_by": processed_by},
        )
        return results

    async def resolve_beneficiaries(
        self, buyer_id: int | None
    ) -> list[tuple[int, CommissionLevel]]:
        """
        Beneficiaries of an order, buyer first.

        Args:
            buyer_id: Buyer user ID, None for guest orders

        Returns:
            (user ID, level) pairs: buyer as F2, then referrers by depth
        """
        if buyer_id is None:
            return []

        beneficiaries = [(buyer_id, CommissionLevel.F2)]
        ancestors = await self.graph.get_ancestors(buyer_id, 1, FAN_OUT_DEPTH)
        beneficiaries.extend(
            (edge.ancestor_id, LEVEL_BY_DEPTH[edge.depth])
            for edge in ancestors
            if edge.depth in LEVEL_BY_DEPTH
        )
        return beneficiaries

    def build_line_records(
        self,
        order: Order,
        line: OrderLine,
        beneficiaries: list[tuple[int, CommissionLevel]],
        rates: CommissionRateTable,
    ) -> list[dict[str, Any]]:
        """
        Commission rows for one order line.

        Args:
            order: Order
            line: Order line
            beneficiaries: Output of resolve_beneficiaries
            rates: Rate table

        Returns:
            Column mappings, one per beneficiary

        Raises:
            CommissionLineError: If the line cannot be priced
        """
        if line.quantity is None or line.quantity <= 0:
            raise CommissionLineError(line.id, f"invalid quantity {line.quantity}")
        if line.unit_price is None or line.unit_price < 0:
            raise CommissionLineError(line.id, f"invalid unit price {line.unit_price}")

        try:
            category_rate = rates.category_rate(line.category_group)
        except CategoryNotFoundError as e:
            raise CommissionLineError(line.id, str(e)) from e

        unit_price = Decimal(line.unit_price)
        base_amount = quantize_money(unit_price * line.quantity, self.money_quantum)
        calculated_at = utc_now()

        records = []
        for beneficiary_id, level in beneficiaries:
            if level == CommissionLevel.F2:
                rate = category_rate * rates.level_rate(level)
            else:
                rate = rates.level_rate(level)
            rate = quantize_rate(rate)

            records.append({
                "order_id": order.id,
                "order_line_id": line.id,
                "product_id": line.product_id,
                "category_id": line.category_id,
                "beneficiary_id": beneficiary_id,
                "level": level,
                "rate": rate,
                "unit_price": unit_price,
                "quantity": line.quantity,
                "base_amount": base_amount,
                "amount": quantize_money(base_amount * rate, self.money_quantum),
                "status": CommissionStatus.CALCULATED,
                "calculated_at": calculated_at,
            })
        return records

    async def _calculate_locked(
        self,
        order: Order,
        rates: CommissionRateTable,
        processed_by: str,
        notes: str,
    ) -> tuple[CalculationResult, dict[int, Decimal]]:
        # Plain values only after this point: a rollback expires ORM state
        order_id = order.id
        order_code = order.code
        lines: list[LineOutcome] = []

        try:
            await self.commission_repo.delete_by_order(order_id)
            beneficiaries = await self.resolve_beneficiaries(order.buyer_id)

            records: list[dict[str, Any]] = []
            for line in order.lines:
                try:
                    line_records = self.build_line_records(
                        order, line, beneficiaries, rates
                    )
                except CommissionLineError as e:
                    lines.append(
                        LineOutcome(line_id=e.line_id, success=False, error=e.reason)
                    )
                    if not self.allow_partial:
                        raise
                    self.logger.warning(
                        f"Skipping order line {e.line_id} of order {order_id}: "
                        f"{e.reason}"
                    )
                    continue

                records.extend(line_records)
                lines.append(
                    LineOutcome(
                        line_id=line.id,
                        success=True,
                        record_count=len(line_records),
                        amount=sum((r["amount"] for r in line_records), ZERO),
                    )
                )

            failed_lines = [line for line in lines if not line.success]
            if failed_lines and len(failed_lines) == len(lines):
                raise NoValidLinesError(
                    order_id,
                    [f"line {line.line_id}: {line.error}" for line in failed_lines],
                )

            await self.commission_repo.add_all(records)

            total_amount = sum((r["amount"] for r in records), ZERO)
            outcome = (
                CalculationOutcome.PARTIAL
                if failed_lines
                else CalculationOutcome.SUCCESS
            )
            message = (
                f"Calculated {len(records)} commissions for order {order_code}"
            )

            await self.log_repo.append(
                order_id=order_id,
                outcome=outcome,
                total_amount=total_amount,
                record_count=len(records),
                processed_by=processed_by,
                notes=notes or message,
            )
            await self.commit()

        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"Commission calculation failed for order {order_id}: {e}",
                extra={"order_id": order_id, "processed_by": processed_by},
            )
            await self._log_failure(order_id, str(e), processed_by)
            return CalculationResult.failure(order_id, str(e), lines), {}

        earnings: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for record in records:
            earnings[record["beneficiary_id"]] += record["amount"]

        self.logger.info(
            message,
            extra={
                "order_id": order_id,
                "outcome": outcome.value,
                "total_amount": str(total_amount),
                "beneficiaries": len(earnings),
            },
        )

        result = CalculationResult(
            order_id=order_id,
            success=outcome == CalculationOutcome.SUCCESS,
            outcome=outcome,
            total_records=len(records),
            total_amount=total_amount,
            message=message,
            errors=[f"line {line.line_id}: {line.error}" for line in failed_lines],
            lines=lines,
        )
        return result, dict(earnings)

    async def _log_failure(
        self, order_id: int, error: str, processed_by: str
    ) -> None:
        """Record a failed attempt in its own transaction."""
        try:
            await self.log_repo.append(
                order_id=order_id,
                outcome=CalculationOutcome.FAILED,
                processed_by=processed_by,
                notes=error,
            )
            await self.commit()
        except Exception as log_error:
            await self.rollback()
            self.logger.exception(
                f"Failed to write commission log for order {order_id}: {log_error}"
            )
