"""Code constants for verification failures and verification modes.

These constants prevent stringly-typed failure codes and ensure
client code uses the correct values when inspecting results.
"""

from enum import Enum


class FailureCode(str, Enum):
    """Failure codes carried in the `type` field of every failure detail."""

    # Lifecycle failures (the interaction could not be exercised)
    STATE_CHANGE_FAILED = "STATE_CHANGE_FAILED"
    DISPATCH_FAILED = "DISPATCH_FAILED"
    NO_PROVIDER_METHOD = "NO_PROVIDER_METHOD"

    # Comparison failures
    STATUS_MISMATCH = "STATUS_MISMATCH"
    HEADER_MISMATCH = "HEADER_MISMATCH"
    BODY_MISMATCH = "BODY_MISMATCH"
    BODY_TYPE_MISMATCH = "BODY_TYPE_MISMATCH"
    METADATA_MISMATCH = "METADATA_MISMATCH"

    # Unexpected errors inside the verifier
    VERIFICATION_ERROR = "VERIFICATION_ERROR"


class VerificationType(str, Enum):
    """How the actual outcome of an interaction is obtained."""

    REQUEST_RESPONSE = "REQUEST_RESPONSE"  # replay the request over HTTP
    PROVIDER_METHOD = "PROVIDER_METHOD"  # call a registered provider method
