from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from quiklens.application.use_cases.process_image import ProcessImageUseCase
from quiklens.application.use_cases.raw_preview import GenerateRawPreviewUseCase
from quiklens.config import EditorSettings, get_settings
from quiklens.domain.services.processing_service import ProcessingService
from quiklens.infrastructure.auth.supabase_auth import (
    SupabaseAuthAdapter,
    UserInfo,
    get_supabase_client,
)
from quiklens.infrastructure.clients.processing_client import HttpImageProcessingClient
from quiklens.infrastructure.raw.toolchain import RawToolchain
from quiklens.infrastructure.sessions.session_registry import SessionEntry, SessionRegistry
from quiklens.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_adapter() -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)] = None,
) -> UserInfo:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return auth.validate_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_raw_toolchain(settings: Annotated[EditorSettings, Depends(get_settings)]) -> RawToolchain:
    return RawToolchain.from_settings(settings)


def get_process_use_case(
    raw_tools: Annotated[RawToolchain, Depends(get_raw_toolchain)],
) -> ProcessImageUseCase:
    return ProcessImageUseCase(processing=ProcessingService(), raw_tools=raw_tools)


def get_raw_preview_use_case(
    raw_tools: Annotated[RawToolchain, Depends(get_raw_toolchain)],
    settings: Annotated[EditorSettings, Depends(get_settings)],
) -> GenerateRawPreviewUseCase:
    return GenerateRawPreviewUseCase(
        raw_tools=raw_tools, max_side=settings.preview_max_side, quality=settings.preview_quality
    )


def get_processing_gateway(
    request: Request,
    settings: Annotated[EditorSettings, Depends(get_settings)],
) -> HttpImageProcessingClient:
    """Gateway for new sessions; it forwards the caller's credentials to the service."""
    headers = {}
    if "authorization" in request.headers:
        headers["Authorization"] = request.headers["authorization"]
    if settings.processing_url:
        return HttpImageProcessingClient(
            base_url=settings.processing_url, headers=headers, timeout=settings.request_timeout
        )
    return HttpImageProcessingClient.for_app(request.app, headers=headers, timeout=settings.request_timeout)


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_session_entry(
    session_id: str,
    user: Annotated[UserInfo, Depends(get_current_user)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionEntry:
    entry = registry.get(session_id, user.id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return entry
