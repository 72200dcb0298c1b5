from burnlink.schemas.secret import (
    SecretCreate,
    SecretCreateResponse,
    SecretMutationResponse,
    SecretSummary,
    SecretUpdateRequest,
    SecretViewRequest,
    SecretViewResponse,
)

__all__ = [
    "SecretCreate",
    "SecretCreateResponse",
    "SecretMutationResponse",
    "SecretSummary",
    "SecretUpdateRequest",
    "SecretViewRequest",
    "SecretViewResponse",
]
