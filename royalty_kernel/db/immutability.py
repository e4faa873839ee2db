"""
ORM-Level Immutability Enforcement for committed royalty lines.

===============================================================================
WHY THIS EXISTS
===============================================================================

Once a royalty line is committed its money is owed to somebody.  Gross, net,
the fee percentage and the identifying fields (artist, track, date, platform,
territory, natural key) must never change afterwards; summaries and payment
requests are derived from them.  The payment subsystem still needs to move a
line through unpaid -> pending -> paid, so those two fields stay mutable.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_royalty_immutability() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Bulk Core UPDATE statements bypass the ORM and are not checked here.

===============================================================================
USAGE
===============================================================================

    from royalty_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # create_tables() does this

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from royalty_kernel.exceptions import ImmutabilityViolationError
from royalty_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Fields the payment subsystem may change on a committed royalty line
ROYALTY_MUTABLE_FIELDS = frozenset({
    "paid_status",
    "payment_request_id",
})


def _check_royalty_immutability(mapper, connection, target):
    """Block changes to anything but payment fields on a committed line."""
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in ROYALTY_MUTABLE_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "RoyaltyRecord",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="RoyaltyRecord",
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on a committed royalty line",
            )


def _check_summary_identity(mapper, connection, target):
    """A summary row may be recomputed but never moved to another period."""
    insp = inspect(target)
    for key in ("artist_id", "year", "quarter"):
        if insp.attrs[key].history.has_changes():
            raise ImmutabilityViolationError(
                entity_type="QuarterlySummary",
                entity_id=str(target.id),
                reason=f"Cannot modify summary key field '{key}'",
            )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after models are imported and before database writes begin.
    """
    from royalty_kernel.models.royalty import RoyaltyModel
    from royalty_kernel.models.summary import QuarterlySummaryModel

    if not event.contains(RoyaltyModel, "before_update", _check_royalty_immutability):
        event.listen(RoyaltyModel, "before_update", _check_royalty_immutability)
    if not event.contains(QuarterlySummaryModel, "before_update", _check_summary_identity):
        event.listen(QuarterlySummaryModel, "before_update", _check_summary_identity)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    from royalty_kernel.models.royalty import RoyaltyModel
    from royalty_kernel.models.summary import QuarterlySummaryModel

    _safe_remove_listener(RoyaltyModel, "before_update", _check_royalty_immutability)
    _safe_remove_listener(QuarterlySummaryModel, "before_update", _check_summary_identity)
