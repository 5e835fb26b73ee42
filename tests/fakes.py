"""
In-memory stand-ins for the repositories.

FakeDatabase keeps committed state and restores it on rollback, so services
can be exercised with their real transaction handling and no database.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from affiliate.models.commission import AffiliateCommission
from affiliate.models.commission_log import AffiliateCommissionLog
from affiliate.models.enums import (
    CalculationOutcome,
    CommissionLevel,
    CommissionStatus,
    OrderStatus,
)
from affiliate.models.order import Order, OrderLine
from affiliate.models.referral_closure import ClosureEdge, UserNode
from affiliate.repositories.commission_repository import (
    LevelStatusTotals,
    OrderCommissionTotal,
)
from affiliate.repositories.filters import CommissionFilter, commission_matches


BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


def _row(obj: Any) -> dict[str, Any]:
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


class FakeDatabase:
    """Committed state plus the live (uncommitted) working copy."""

    def __init__(self) -> None:
        self.closure: dict[tuple[int, int], int] = {}
        self.commissions: dict[int, AffiliateCommission] = {}
        self.logs: list[AffiliateCommissionLog] = []
        self.orders: dict[int, Order] = {}
        self.users: dict[int, int | None] = {}
        self.commits = 0
        self.rollbacks = 0
        # Lock and load calls in call order, kept across rollbacks
        self.calls: list[str] = []
        self._next_id = 1
        self._clock = 0
        self._snapshot = self._take_snapshot()

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def tick(self) -> datetime:
        """Strictly increasing timestamps for deterministic ordering."""
        self._clock += 1
        return BASE_TIME + timedelta(seconds=self._clock)

    def _take_snapshot(self) -> dict[str, Any]:
        return {
            "closure": dict(self.closure),
            "commissions": {cid: _row(c) for cid, c in self.commissions.items()},
            "logs": [_row(log) for log in self.logs],
        }

    def commit(self) -> None:
        self.commits += 1
        self._snapshot = self._take_snapshot()

    def rollback(self) -> None:
        self.rollbacks += 1
        self.closure = dict(self._snapshot["closure"])
        self.commissions = {
            cid: AffiliateCommission(**row)
            for cid, row in self._snapshot["commissions"].items()
        }
        self.logs = [AffiliateCommissionLog(**row) for row in self._snapshot["logs"]]

    # Seeding helpers

    def add_user(self, user_id: int, parent_id: int | None = None) -> None:
        self.users[user_id] = parent_id

    def add_order(
        self,
        order_id: int,
        buyer_id: int | None,
        lines: list[dict[str, Any]],
        status: OrderStatus = OrderStatus.COMPLETED,
    ) -> Order:
        order = Order(
            id=order_id,
            code=f"ORD-{order_id}",
            buyer_id=buyer_id,
            status=status,
            purchase_date=self.tick(),
        )
        order.lines = [
            OrderLine(
                id=line["id"],
                order_id=order_id,
                product_id=line.get("product_id", line["id"]),
                product_name=line.get("product_name", f"Product {line['id']}"),
                category_id=line.get("category_id", 1),
                category_name=line.get("category_name", "Category"),
                category_group=line.get("category_group", "a"),
                quantity=line.get("quantity", 1),
                unit_price=Decimal(line.get("unit_price", "100")),
            )
            for line in lines
        ]
        self.orders[order_id] = order
        return order

    def edges(self) -> set[ClosureEdge]:
        return {ClosureEdge(a, d, depth) for (a, d), depth in self.closure.items()}


class FakeSession:
    """Just enough of AsyncSession for BaseService."""

    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.bind = None

    async def commit(self) -> None:
        self.db.commit()

    async def rollback(self) -> None:
        self.db.rollback()

    async def flush(self) -> None:
        pass


class FakeClosureRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    async def has_node(self, node_id: int) -> bool:
        self.db.calls.append("has_node")
        return self.db.closure.get((node_id, node_id)) == 0

    async def get_edge(self, ancestor_id: int, descendant_id: int) -> ClosureEdge | None:
        depth = self.db.closure.get((ancestor_id, descendant_id))
        return None if depth is None else ClosureEdge(ancestor_id, descendant_id, depth)

    def _select(self, index: int, node_id: int, min_depth: int, max_depth: int | None):
        edges = [
            edge for edge in self.db.edges()
            if (edge.descendant_id, edge.ancestor_id)[index] == node_id
            and edge.depth >= min_depth
            and (max_depth is None or edge.depth <= max_depth)
        ]
        other = 1 - index
        return sorted(
            edges,
            key=lambda e: (e.depth, (e.descendant_id, e.ancestor_id)[other]),
        )

    async def get_ancestors(self, node_id: int, min_depth: int = 1, max_depth: int | None = None):
        return self._select(0, node_id, min_depth, max_depth)

    async def get_descendants(self, node_id: int, min_depth: int = 1, max_depth: int | None = None):
        return self._select(1, node_id, min_depth, max_depth)

    async def lock_for_registration(self) -> None:
        self.db.calls.append("lock_for_registration")

    async def lock_for_rebuild(self) -> None:
        self.db.calls.append("lock_for_rebuild")

    async def insert_edges(self, edges) -> int:
        inserted = 0
        for edge in edges:
            key = (edge.ancestor_id, edge.descendant_id)
            if key not in self.db.closure:
                self.db.closure[key] = edge.depth
                inserted += 1
        return inserted

    async def replace_all(self, edges) -> int:
        self.db.calls.append("replace_all")
        self.db.closure = {
            (edge.ancestor_id, edge.descendant_id): edge.depth for edge in edges
        }
        return len(self.db.closure)

    async def all_edges(self) -> list[ClosureEdge]:
        return sorted(self.db.edges(), key=lambda e: (e.descendant_id, e.depth))

    async def count_edges(self) -> int:
        return len(self.db.closure)


class FakeUserRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    async def list_nodes(self) -> list[UserNode]:
        self.db.calls.append("list_nodes")
        return [UserNode(uid, parent) for uid, parent in sorted(self.db.users.items())]


class FakeOrderRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    async def get_with_lines(self, order_id: int) -> Order | None:
        return self.db.orders.get(order_id)

    async def get_many_with_lines(self, order_ids: list[int]) -> dict[int, Order]:
        return {oid: self.db.orders[oid] for oid in order_ids if oid in self.db.orders}


class FakeCommissionRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.fail_on_add: Exception | None = None

    async def get_by_id(self, id: int) -> AffiliateCommission | None:
        return self.db.commissions.get(id)

    async def get_for_update(self, id: int) -> AffiliateCommission | None:
        return self.db.commissions.get(id)

    async def create(self, **data: Any) -> AffiliateCommission:
        now = self.db.tick()
        data.setdefault("calculated_at", now)
        data.setdefault("updated_at", now)
        data.setdefault("status", CommissionStatus.CALCULATED)
        commission = AffiliateCommission(id=self.db.next_id(), **data)
        self.db.commissions[commission.id] = commission
        return commission

    async def delete(self, id: int) -> bool:
        return self.db.commissions.pop(id, None) is not None

    async def delete_by_order(self, order_id: int) -> int:
        doomed = [cid for cid, c in self.db.commissions.items() if c.order_id == order_id]
        for cid in doomed:
            del self.db.commissions[cid]
        return len(doomed)

    async def add_all(self, records: list[dict[str, Any]]) -> list[AffiliateCommission]:
        if self.fail_on_add is not None:
            raise self.fail_on_add
        created = []
        for record in records:
            data = dict(record)
            data["calculated_at"] = self.db.tick()
            created.append(await self.create(**data))
        return created

    async def list_by_order(self, order_id: int) -> list[AffiliateCommission]:
        return [c for c in self.db.commissions.values() if c.order_id == order_id]

    def _matching(self, filters: CommissionFilter | None) -> list[AffiliateCommission]:
        return [c for c in self.db.commissions.values() if commission_matches(c, filters)]

    async def find_filtered(self, filters, offset: int = 0, limit: int | None = None):
        items = sorted(
            self._matching(filters),
            key=lambda c: (c.calculated_at, c.id),
            reverse=True,
        )
        end = None if limit is None else offset + limit
        return items[offset:end], len(items)

    async def totals_by_level_status(self, filters) -> list[LevelStatusTotals]:
        buckets: dict[tuple, list[AffiliateCommission]] = defaultdict(list)
        for c in self._matching(filters):
            buckets[(c.level, c.status)].append(c)
        return [
            LevelStatusTotals(
                level=CommissionLevel(level),
                status=CommissionStatus(status),
                count=len(rows),
                amount=sum((r.amount for r in rows), Decimal("0")),
                sales=sum((r.sales_amount for r in rows), Decimal("0")),
            )
            for (level, status), rows in buckets.items()
        ]

    async def recent_orders(self, filters, limit: int) -> list[OrderCommissionTotal]:
        grouped: dict[int, list[AffiliateCommission]] = defaultdict(list)
        for c in self._matching(filters):
            grouped[c.order_id].append(c)
        totals = [
            OrderCommissionTotal(
                order_id=order_id,
                amount=sum((r.amount for r in rows), Decimal("0")),
                last_calculated_at=max(r.calculated_at for r in rows),
            )
            for order_id, rows in grouped.items()
        ]
        totals.sort(key=lambda t: (t.last_calculated_at, t.order_id), reverse=True)
        return totals[:limit]


class FakeCommissionLogRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    async def append(
        self,
        order_id: int,
        outcome: CalculationOutcome,
        total_amount: Decimal = Decimal("0"),
        record_count: int = 0,
        processed_by: str = "",
        notes: str = "",
    ) -> AffiliateCommissionLog:
        log = AffiliateCommissionLog(
            id=self.db.next_id(),
            order_id=order_id,
            outcome=outcome,
            total_amount=total_amount,
            record_count=record_count,
            processed_by=processed_by,
            notes=notes,
            created_at=self.db.tick(),
        )
        self.db.logs.append(log)
        return log

    async def list_by_order(self, order_id: int) -> list[AffiliateCommissionLog]:
        return [log for log in self.db.logs if log.order_id == order_id]


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[int, str, dict[str, Any]]] = []

    async def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((user_id, event_type, payload))
