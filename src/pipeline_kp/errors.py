"""Exception hierarchy for route projection and the stringing inventory.

Everything derives from ``ValueError`` so callers that only care about "bad input"
can keep catching that.  Advisory validation findings are *not* exceptions; see
``ValidationFinding`` in :mod:`pipeline_kp.models`.
"""


class PipelineKPError(ValueError):
    """Base class for all pipeline_kp errors."""


# ── Route / projection ──────────────────────────────────────────────────────
class RouteError(PipelineKPError):
    pass


class InvalidRouteError(RouteError):
    """Waypoint list is too short or its chainage goes backwards."""


class UnknownRouteError(RouteError):
    """No reference route registered under the requested name."""


class InvalidInputError(PipelineKPError):
    """Non-finite coordinates were passed to a projection."""


# ── Stringing inventory ─────────────────────────────────────────────────────
class InventoryError(PipelineKPError):
    pass


class JointNotFoundError(InventoryError):
    pass


class InvalidCutTargetError(InventoryError):
    """The joint exists but may not be cut (not Strung, or already a pup)."""


class InvalidCutLengthError(InventoryError):
    pass


class TraceabilityNotConfirmedError(InventoryError):
    """Heat number has not been confirmed as transferred to the remainder piece."""


class InvalidDispositionError(InventoryError):
    pass


class JointInUseError(InventoryError):
    """The joint is part of a cut's audit trail and cannot be removed."""
