"""
Referral services package.

- graph_store: Closure-table backed referral hierarchy
- registration: UserRegistered handling
- closure_rebuild: Full rebuild and integrity check
"""

from affiliate.services.referral.closure_rebuild import (
    ClosureRebuildJob,
    IntegrityReport,
    RebuildReport,
)
from affiliate.services.referral.graph_store import (
    ReferralGraphStore,
    compute_closure,
)
from affiliate.services.referral.registration import ReferralRegistrationService


__all__ = [
    "ClosureRebuildJob",
    "IntegrityReport",
    "RebuildReport",
    "ReferralGraphStore",
    "ReferralRegistrationService",
    "compute_closure",
]
