"""
Commission rate configuration.

Contains the category-group and hierarchy-level rate tables used by the
commission engine.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from affiliate.models.enums import CategoryGroup, CommissionLevel
from affiliate.utils.exceptions import CategoryNotFoundError


# Ancestor depth in the closure relation -> commission level.
# Fan-out stops at the referrer's referrer regardless of tree depth.
LEVEL_BY_DEPTH: Mapping[int, CommissionLevel] = MappingProxyType({
    1: CommissionLevel.F1,  # Direct referrer
    2: CommissionLevel.F0,  # Referrer's referrer
})
FAN_OUT_DEPTH = max(LEVEL_BY_DEPTH)


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class CommissionRateTable:
    """
    Category-group and hierarchy-level commission rates.

    The buyer (F2) earns category_rate * level[F2] of the line value;
    referrers (F1, F0) earn level[level] of the line value.
    """

    category: Mapping[CategoryGroup, Decimal] = field(
        default_factory=lambda: _frozen({
            CategoryGroup.A: Decimal("0.20"),  # 20%
            CategoryGroup.B: Decimal("0.30"),  # 30%
            CategoryGroup.C: Decimal("0.50"),  # 50%
        })
    )
    level: Mapping[CommissionLevel, Decimal] = field(
        default_factory=lambda: _frozen({
            CommissionLevel.F0: Decimal("0.20"),  # 20% for F0
            CommissionLevel.F1: Decimal("0.30"),  # 30% for F1
            CommissionLevel.F2: Decimal("1.00"),  # Buyer keeps the full category rate
        })
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", _frozen(self.category))
        object.__setattr__(self, "level", _frozen(self.level))

        for name, rates in (("category", self.category), ("level", self.level)):
            for key, rate in rates.items():
                if not isinstance(rate, Decimal):
                    raise ValueError(f"{name} rate for {key} must be Decimal")
                if rate < 0 or rate > 1:
                    raise ValueError(
                        f"{name} rate for {key} must be within [0, 1], got {rate}"
                    )

        missing = set(CommissionLevel) - set(self.level)
        if missing:
            raise ValueError(
                f"level rates missing for {sorted(m.value for m in missing)}"
            )

    def category_rate(self, group: CategoryGroup | str) -> Decimal:
        """
        Get rate for a category group.

        Args:
            group: Category group (enum or raw value such as "b")

        Returns:
            Category rate

        Raises:
            CategoryNotFoundError: If the group is unknown or has no rate
        """
        try:
            if isinstance(group, CategoryGroup):
                key = group
            else:
                key = CategoryGroup(group.strip().lower())
        except (ValueError, AttributeError) as e:
            raise CategoryNotFoundError(group) from e

        rate = self.category.get(key)
        if rate is None:
            raise CategoryNotFoundError(group)
        return rate

    def level_rate(self, level: CommissionLevel) -> Decimal:
        """
        Get rate for a hierarchy level.

        Args:
            level: Commission level

        Returns:
            Level rate
        """
        return self.level[CommissionLevel(level)]

    def with_overrides(
        self,
        category: Mapping[CategoryGroup, Decimal] | None = None,
        level: Mapping[CommissionLevel, Decimal] | None = None,
    ) -> "CommissionRateTable":
        """
        Build a new table with some rates replaced.

        Args:
            category: Category rates to override
            level: Level rates to override

        Returns:
            New rate table
        """
        return CommissionRateTable(
            category={**self.category, **(category or {})},
            level={**self.level, **(level or {})},
        )


DEFAULT_RATE_TABLE = CommissionRateTable()
