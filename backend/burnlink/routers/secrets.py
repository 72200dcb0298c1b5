from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from burnlink.config import settings
from burnlink.database import get_db
from burnlink.middleware.rate_limit import get_attempt_limiter, get_real_client_ip, limiter
from burnlink.schemas.secret import (
    SecretCreate,
    SecretCreateResponse,
    SecretMutationResponse,
    SecretSummary,
    SecretUpdateRequest,
    SecretViewRequest,
    SecretViewResponse,
)
from burnlink.services.attempt_limiter import AttemptLimiter
from burnlink.services.crypto_utils import ServerCipher
from burnlink.services.e2e import build_share_url
from burnlink.services.secret_service import (
    create_secret,
    delete_secret,
    list_owner_secrets,
    update_secret,
    view_secret,
)

router = APIRouter()


def get_cipher(request: Request) -> ServerCipher:
    return request.app.state.cipher


def get_owner_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str | None:
    """Owner identity as forwarded by the upstream identity provider."""
    return x_user_id or None


def require_owner_id(owner_id: str | None = Depends(get_owner_id)) -> str:
    if not owner_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return owner_id


@router.post("/secrets", response_model=SecretCreateResponse, status_code=201)
@limiter.limit(settings.rate_limit_creates)
async def create_new_secret(
    request: Request,
    secret_data: SecretCreate,
    db: Session = Depends(get_db),
    cipher: ServerCipher = Depends(get_cipher),
    owner_id: str | None = Depends(get_owner_id),
):
    """
    Create a secret and return its share link.

    If the content was sealed client-side, the client appends its fragment
    key to ``share_url`` itself; the server never sees it.
    """
    secret = create_secret(
        db=db,
        cipher=cipher,
        content=secret_data.content,
        password=secret_data.password,
        expires_at=secret_data.expires_at,
        one_time_access=secret_data.one_time_access,
        owner_id=owner_id,
    )

    return SecretCreateResponse(
        id=secret.id,
        share_url=build_share_url(settings.public_base_url, secret.id),
        one_time_access=secret.one_time_access,
        expires_at=secret.expires_at,
        created_at=secret.created_at,
    )


@router.post("/secrets/{secret_id}/view", response_model=SecretViewResponse)
async def view_existing_secret(
    request: Request,
    secret_id: str,
    view_data: SecretViewRequest,
    db: Session = Depends(get_db),
    cipher: ServerCipher = Depends(get_cipher),
    attempt_limiter: AttemptLimiter = Depends(get_attempt_limiter),
):
    """
    Reveal a secret.

    One-time secrets can be revealed exactly once. Attempts are limited per
    client and secret to slow down password guessing.
    """
    result = view_secret(
        db=db,
        cipher=cipher,
        limiter=attempt_limiter,
        secret_id=secret_id,
        password=view_data.password,
        requester=get_real_client_ip(request),
    )
    return SecretViewResponse(**result)


@router.put("/secrets/{secret_id}", response_model=SecretMutationResponse)
@limiter.limit(settings.rate_limit_mutations)
async def update_existing_secret(
    request: Request,
    secret_id: str,
    update_data: SecretUpdateRequest,
    db: Session = Depends(get_db),
    cipher: ServerCipher = Depends(get_cipher),
    owner_id: str | None = Depends(get_owner_id),
):
    """Replace content, expiry and flags. Omitting the password keeps the current one."""
    update_secret(
        db=db,
        cipher=cipher,
        secret_id=secret_id,
        content=update_data.content,
        password=update_data.password,
        remove_password=update_data.remove_password,
        expires_at=update_data.expires_at,
        one_time_access=update_data.one_time_access,
        requester_owner_id=owner_id,
    )
    return SecretMutationResponse()


@router.delete("/secrets/{secret_id}", response_model=SecretMutationResponse)
@limiter.limit(settings.rate_limit_mutations)
async def delete_existing_secret(
    request: Request,
    secret_id: str,
    db: Session = Depends(get_db),
    owner_id: str | None = Depends(get_owner_id),
):
    delete_secret(db, secret_id, requester_owner_id=owner_id)
    return SecretMutationResponse()


@router.get("/secrets", response_model=list[SecretSummary])
async def list_my_secrets(
    request: Request,
    db: Session = Depends(get_db),
    owner_id: str = Depends(require_owner_id),
):
    """List the caller's secrets, newest first, with their derived status."""
    return [SecretSummary(**summary) for summary in list_owner_secrets(db, owner_id)]
