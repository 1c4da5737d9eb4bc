"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the SplitBook API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Taxonomy:
  InputValidationError (400) — malformed or inconsistent input, detected
                               before any write. Never auto-corrected.
  NotFoundError        (404) — referenced entity does not exist OR belongs
                               to another owner. The two are indistinguishable.
  ConflictError        (409) — state-transition race detected at the atomic
                               write boundary. No partial effect.
  PersistenceError     (503) — storage failure. Retryable by the caller.

Error codes are a versioned contract; messages are prose and may change.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field    # which request field caused the error
        self.details     = details  # e.g. {"expected": "100.00", "actual": "95.00"}

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class InputValidationError(AppError):
    """Inconsistent input: sums that do not reconcile, self-settlement, etc."""

    def __init__(self, code: str, message: str, field: str | None = None,
                 details: dict | None = None) -> None:
        super().__init__(code, message, 400, field=field, details=details)


class NotFoundError(AppError):

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 404, field=field)


class ConflictError(AppError):

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, 409, details=details)


class PersistenceError(AppError):

    def __init__(self, message: str = "The data store is unavailable. Please retry.") -> None:
        super().__init__(ErrorCode.PERSISTENCE_ERROR, message, 503)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_CURRENCY           = "INVALID_CURRENCY"
    INVALID_SPLIT_TYPE         = "INVALID_SPLIT_TYPE"
    DUPLICATE_SPLIT_PERSON     = "DUPLICATE_SPLIT_PERSON"
    INVALID_DATE_RANGE         = "INVALID_DATE_RANGE"

    # ── Business Rule Violations (400) ────────────────────────────────────
    EMPTY_PARTICIPANTS         = "EMPTY_PARTICIPANTS"
    SHARE_COUNT_MISMATCH       = "SHARE_COUNT_MISMATCH"
    PERCENTAGE_OUT_OF_RANGE    = "PERCENTAGE_OUT_OF_RANGE"
    PERCENTAGE_SUM_MISMATCH    = "PERCENTAGE_SUM_MISMATCH"
    NEGATIVE_AMOUNT            = "NEGATIVE_AMOUNT"
    SPLIT_SUM_MISMATCH         = "SPLIT_SUM_MISMATCH"
    TRANSFER_NOT_SPLITTABLE    = "TRANSFER_NOT_SPLITTABLE"
    SPLIT_CHILD_NOT_SPLITTABLE = "SPLIT_CHILD_NOT_SPLITTABLE"
    SPLIT_CHILD_READ_ONLY      = "SPLIT_CHILD_READ_ONLY"
    SPLIT_AMOUNT_LOCKED        = "SPLIT_AMOUNT_LOCKED"
    CURRENCY_MISMATCH          = "CURRENCY_MISMATCH"
    ACCOUNT_TYPE_MISMATCH      = "ACCOUNT_TYPE_MISMATCH"
    SELF_SETTLEMENT            = "SELF_SETTLEMENT"
    ACCOUNT_REQUIRED           = "ACCOUNT_REQUIRED"
    SELF_PERSON_LOCKED         = "SELF_PERSON_LOCKED"
    TRANSACTION_DELETED        = "TRANSACTION_DELETED"
    TRANSACTION_NOT_DELETED    = "TRANSACTION_NOT_DELETED"
    SETTLEMENT_TRANSACTION_LOCKED = "SETTLEMENT_TRANSACTION_LOCKED"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    ACCOUNT_NOT_FOUND          = "ACCOUNT_NOT_FOUND"
    PERSON_NOT_FOUND           = "PERSON_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    TRANSACTION_NOT_FOUND      = "TRANSACTION_NOT_FOUND"
    SPLIT_NOT_FOUND            = "SPLIT_NOT_FOUND"
    SETTLEMENT_NOT_FOUND       = "SETTLEMENT_NOT_FOUND"
    NOT_A_MEMBER               = "NOT_A_MEMBER"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME         = "DUPLICATE_USERNAME"
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    TRANSACTION_ALREADY_SPLIT  = "TRANSACTION_ALREADY_SPLIT"
    SETTLEMENT_NOT_PENDING     = "SETTLEMENT_NOT_PENDING"
    DUPLICATE_REQUEST          = "DUPLICATE_REQUEST"
    CONFLICT                   = "CONFLICT"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are. There is no 403 in this API: every
    # entity is owner-scoped and foreign ids surface as 404.
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401

    # ── System Errors ──────────────────────────────────────────────────────
    PERSISTENCE_ERROR          = "PERSISTENCE_ERROR"      # 503
    INTERNAL_ERROR             = "INTERNAL_ERROR"         # 500


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Settlement amount exceeds the pending balance between the two people.
    # Still recorded — pre-payment is valid.
    OVERPAYMENT = "OVERPAYMENT"

    # POST /splits replayed with an idempotency key that already produced a split.
    IDEMPOTENT_REPLAY = "IDEMPOTENT_REPLAY"
