"""
app/api/routers/auth_router.py

Account and session endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from app.api.dependencies import bearer_scheme, get_app_context, get_current_session
from app.context import AppContext
from app.schemas.auth import AuthSessionResponse, AuthUserResponse, SignInRequest, SignUpRequest
from app.services.auth_service import AuthenticationError, AuthSessionInfo, AuthStoreError, RegistrationError

router = APIRouter(prefix="/auth", tags=["auth"])


def _to_response(session: AuthSessionInfo) -> AuthSessionResponse:
    return AuthSessionResponse(
        access_token=session.access_token,
        expires_at=session.expires_at,
        user=AuthUserResponse(
            id=session.user.id,
            email=session.user.email,
            display_name=session.user.display_name,
        ),
    )


@router.post("/sign-up", response_model=AuthSessionResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: SignUpRequest,
    context: AppContext = Depends(get_app_context),
) -> AuthSessionResponse:
    try:
        session = context.auth.sign_up(
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    except RegistrationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except AuthStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return _to_response(session)


@router.post("/sign-in", response_model=AuthSessionResponse)
def sign_in(
    payload: SignInRequest,
    context: AppContext = Depends(get_app_context),
) -> AuthSessionResponse:
    try:
        session = context.auth.sign_in(email=payload.email, password=payload.password)
    except AuthStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    return _to_response(session)


@router.get("/session", response_model=AuthSessionResponse)
def current_session(session: AuthSessionInfo = Depends(get_current_session)) -> AuthSessionResponse:
    return _to_response(session)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
def sign_out(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    context: AppContext = Depends(get_app_context),
) -> None:
    """
    Revoke the caller's session. Signing out twice is not an error.
    """

    context.auth.sign_out(credentials.credentials if credentials is not None else None)
