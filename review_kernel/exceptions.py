"""
Typed Exception Hierarchy for the Review Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The surrounding application shell turns workflow failures into permission
errors, form-validation messages, 404 pages and "please retry" banners.  It
must be able to do that without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        coordinator.apply_action(...)
    except Exception as e:
        if "not allowed" in str(e):  # FRAGILE - message might change
            show_validation_error()

Example - RIGHT way (what this module enables):
    try:
        coordinator.apply_action(...)
    except InvalidTransitionError as e:     # Typed catch
        form.error(code=e.code, status=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ReviewKernelError:

    ReviewKernelError (base)
    |
    +-- PlanError
    |   +-- PlanNotFoundError
    |   +-- InvalidTransitionError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedActorError
    |
    +-- InvalidInputError
    |   +-- MissingCommentError
    |   +-- PlanAssignmentError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ImmutabilityError
        +-- LedgerImmutabilityError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                     | When Raised
----------------|--------------------------|-----------------------------------
Plan            | PLAN_NOT_FOUND           | plan_id does not resolve
                | INVALID_TRANSITION       | Action illegal for current status
----------------|--------------------------|-----------------------------------
Authorization   | UNAUTHORIZED_ACTOR       | Actor is not bound to the role
----------------|--------------------------|-----------------------------------
Input           | INVALID_INPUT            | Unknown role/action, bad argument
                | MISSING_COMMENT          | Feedback required but body empty
                | INVALID_PLAN_ASSIGNMENT  | Employee/supervisor/reviewer clash
----------------|--------------------------|-----------------------------------
Concurrency     | CONCURRENT_MODIFICATION  | Version conflict after retry
----------------|--------------------------|-----------------------------------
Immutability    | LEDGER_IMMUTABLE         | Update/delete of a stored comment

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONCURRENCY ERRORS ARE RETRYABLE BY THE CALLER:

    try:
        snapshot = coordinator.apply_action(...)
    except ConcurrentModificationError:
        snapshot = coordinator.get_plan_snapshot(plan_id)  # re-fetch
        # let the user decide whether to re-apply

2. EVERYTHING ELSE IS FINAL:
   Unauthorized, invalid transition and invalid input failures never
   succeed on replay against the same state.
"""


class ReviewKernelError(Exception):
    """
    Base exception for all review kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REVIEW_KERNEL_ERROR"


# Plan-related exceptions


class PlanError(ReviewKernelError):
    """Base exception for plan lookup and lifecycle errors."""

    code: str = "PLAN_ERROR"


class PlanNotFoundError(PlanError):
    """The requested plan does not exist."""

    code: str = "PLAN_NOT_FOUND"

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Performance plan not found: {plan_id}")


class InvalidTransitionError(PlanError):
    """
    The requested action is not legal in the plan's current status.

    ``current_status`` is included so the shell can tell the user where the
    plan stands.
    """

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        plan_id: str,
        current_status: str,
        role: str,
        action: str,
        reason: str = "",
    ):
        self.plan_id = plan_id
        self.current_status = current_status
        self.role = role
        self.action = action
        self.reason = reason
        message = (
            f"Action '{action}' by {role} is not allowed on plan {plan_id} "
            f"in status '{current_status}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# Authorization exceptions


class AuthorizationError(ReviewKernelError):
    """Base exception for role-binding failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedActorError(AuthorizationError):
    """The acting identity is not bound to the claimed role on this plan."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, plan_id: str, actor_id: str, role: str):
        self.plan_id = plan_id
        self.actor_id = actor_id
        self.role = role
        super().__init__(
            f"Actor {actor_id} is not the assigned {role} of plan {plan_id}"
        )


# Input validation exceptions


class InvalidInputError(ReviewKernelError):
    """A request argument is missing or malformed."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class MissingCommentError(InvalidInputError):
    """
    An action that requires written feedback arrived with an empty body.

    Rejecting a plan without telling the employee why is not allowed.
    """

    code: str = "MISSING_COMMENT"

    def __init__(self, plan_id: str, action: str):
        self.plan_id = plan_id
        self.action = action
        super().__init__(
            "comment_body",
            f"a non-empty comment is required for '{action}' on plan {plan_id}",
        )


class PlanAssignmentError(InvalidInputError):
    """Employee, supervisor and reviewer assignments must be distinct people."""

    code: str = "INVALID_PLAN_ASSIGNMENT"

    def __init__(self, reason: str):
        super().__init__("assignment", reason)


# Concurrency exceptions


class ConcurrencyError(ReviewKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """The plan kept changing underneath the request, even after a retry."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, plan_id: str, expected_version: int, attempts: int):
        self.plan_id = plan_id
        self.expected_version = expected_version
        self.attempts = attempts
        super().__init__(
            f"Plan {plan_id} was updated by another request "
            f"(expected version {expected_version}, {attempts} attempt(s)); "
            "re-fetch and retry"
        )


# Immutability exceptions


class ImmutabilityError(ReviewKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class LedgerImmutabilityError(ImmutabilityError):
    """Attempted to modify or delete a comment that is already on the ledger."""

    code: str = "LEDGER_IMMUTABLE"

    def __init__(self, entry_id: str, reason: str):
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"Comment entry {entry_id} is immutable: {reason}")
