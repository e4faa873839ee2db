"""
Typed Exception Hierarchy for the Royalty Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Ingestion runs touch untrusted files, a relational store and a worker pool.
Callers must react to *categories* of failure (bad request, unreadable source,
transient store outage) without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Row-level and batch-level problems are NOT exceptions. They are recorded as
data (FailedRow, error strings) so that one bad row never aborts a run. Only
run-level fatal conditions and store boundary failures raise.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RoyaltyKernelError (base)
    |
    +-- RequestError
    |   +-- InvalidRequestError
    |   +-- ArtistNotFoundError
    |   +-- InvalidBatchConfigError
    |
    +-- SourceError
    |   +-- SourceUnreadableError
    |   +-- SourceStreamError
    |   +-- MissingColumnsError
    |
    +-- PipelineError
    |   +-- PipelineStateError
    |   +-- TrackResolutionError
    |
    +-- StoreError
    |   +-- TransientStoreError
    |   +-- PermanentStoreError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                    | When Raised
--------------|-------------------------|------------------------------------------
Request       | INVALID_REQUEST         | Blank/malformed artist id or storage path
              | ARTIST_NOT_FOUND        | Artist id does not exist in the store
              | INVALID_BATCH_CONFIG    | batch_size/max_concurrency/... out of range
--------------|-------------------------|------------------------------------------
Source        | SOURCE_UNREADABLE       | Object cannot be opened or is empty
              | SOURCE_STREAM_ERROR     | Undecodable bytes part-way through a file
              | MISSING_COLUMNS         | Required header columns absent
--------------|-------------------------|------------------------------------------
Pipeline      | PIPELINE_STATE_ERROR    | Backwards/illegal state transition
              | TRACK_RESOLUTION_FAILED | Track could not be resolved or created
--------------|-------------------------|------------------------------------------
Store         | TRANSIENT_STORE_ERROR   | Timeout, dropped connection, lock wait
              | PERMANENT_STORE_ERROR   | Constraint violation, bad data
--------------|-------------------------|------------------------------------------
Currency      | INVALID_CURRENCY        | Not a valid ISO 4217 code
              | CURRENCY_MISMATCH       | Mixed currencies in one operation
--------------|-------------------------|------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION  | Modifying committed royalty fields

===============================================================================
HANDLING PATTERNS
===============================================================================

1. RETRY BY CATEGORY:

    try:
        store.upsert_royalties(records)
    except TransientStoreError:
        sleep(policy.delay_for(attempt))   # retry the whole batch
    except PermanentStoreError:
        decompose_into_single_rows()       # isolate the offending row

2. FATAL REQUEST ERRORS SURFACE TO THE CALLER:

    try:
        result = pipeline.process_royalties(artist_id, path)
    except MissingColumnsError as e:
        return {"error": e.code, "missing": e.missing}
"""


class RoyaltyKernelError(Exception):
    """
    Base exception for all royalty pipeline errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ROYALTY_KERNEL_ERROR"


# Request-related exceptions


class RequestError(RoyaltyKernelError):
    """Base exception for rejected processing requests."""

    code: str = "REQUEST_ERROR"


class InvalidRequestError(RequestError):
    """A request argument is missing or malformed."""

    code: str = "INVALID_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid request field '{field}': {reason}")


class ArtistNotFoundError(RequestError):
    """Artist with given ID was not found."""

    code: str = "ARTIST_NOT_FOUND"

    def __init__(self, artist_id: str):
        self.artist_id = artist_id
        super().__init__(f"Artist not found: {artist_id}")


class InvalidBatchConfigError(RequestError):
    """Batch tuning parameters are out of range."""

    code: str = "INVALID_BATCH_CONFIG"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid batch config {field}={value!r}: {reason}")


# Source-related exceptions


class SourceError(RoyaltyKernelError):
    """Base exception for source file errors."""

    code: str = "SOURCE_ERROR"


class SourceUnreadableError(SourceError):
    """The source object could not be opened or contains no header."""

    code: str = "SOURCE_UNREADABLE"

    def __init__(self, storage_path: str, reason: str):
        self.storage_path = storage_path
        self.reason = reason
        super().__init__(f"Source unreadable: {storage_path}: {reason}")


class SourceStreamError(SourceError):
    """
    The source became undecodable part-way through.

    Rows before `source_row` were already yielded; the stream cannot be
    resumed past the bad bytes.
    """

    code: str = "SOURCE_STREAM_ERROR"

    def __init__(self, source_row: int, reason: str):
        self.source_row = source_row
        self.reason = reason
        super().__init__(f"Source stream failed after row {source_row}: {reason}")


class MissingColumnsError(SourceError):
    """Required columns are absent from the header."""

    code: str = "MISSING_COLUMNS"

    def __init__(self, missing: list[str], headers: list[str]):
        self.missing = missing
        self.headers = headers
        super().__init__(
            f"Missing required columns: {', '.join(missing)} "
            f"(found: {', '.join(headers) or '<none>'})"
        )


# Pipeline-related exceptions


class PipelineError(RoyaltyKernelError):
    """Base exception for pipeline execution errors."""

    code: str = "PIPELINE_ERROR"


class PipelineStateError(PipelineError):
    """Illegal pipeline state transition."""

    code: str = "PIPELINE_STATE_ERROR"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot transition pipeline from {current} to {requested}")


class TrackResolutionError(PipelineError):
    """A track could not be resolved or created."""

    code: str = "TRACK_RESOLUTION_FAILED"

    def __init__(self, resolution_key: str, reason: str):
        self.resolution_key = resolution_key
        self.reason = reason
        super().__init__(f"Could not resolve track {resolution_key}: {reason}")


# Store-related exceptions


class StoreError(RoyaltyKernelError):
    """Base exception for store boundary errors."""

    code: str = "STORE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class TransientStoreError(StoreError):
    """Failure that may succeed on retry (timeouts, dropped connections)."""

    code: str = "TRANSIENT_STORE_ERROR"


class PermanentStoreError(StoreError):
    """Failure that will not succeed on retry (constraint violation, bad data)."""

    code: str = "PERMANENT_STORE_ERROR"


# Currency-related exceptions


class CurrencyError(RoyaltyKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency}")


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# Immutability-related exceptions


class ImmutabilityError(RoyaltyKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify a committed royalty field."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
