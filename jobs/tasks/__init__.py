"""
Dramatiq actors.

Importing this package registers every actor with the broker, so a worker
can be started with ``dramatiq jobs.tasks``.
"""

from jobs.broker import broker  # noqa: F401
from jobs.tasks.closure_rebuild import rebuild_referral_closure
from jobs.tasks.order_commission import (
    process_order_completed,
    recalculate_order_commissions,
)
from jobs.tasks.referral_registration import process_user_registered


__all__ = [
    "process_order_completed",
    "process_user_registered",
    "rebuild_referral_closure",
    "recalculate_order_commissions",
]
