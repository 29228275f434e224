import logging

from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from isitdown.auth import (
    COOKIE_NAME,
    create_reset_token,
    create_session_token,
    get_current_user,
    hash_password,
    password_fingerprint,
    read_reset_token,
    verify_password,
)
from isitdown.config import get_settings
from isitdown.database import get_db
from isitdown.models.user import User
from isitdown.notifications import send_email
from isitdown.schemas import (
    LoginResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    PreferencesUpdate,
    SignupRequest,
    UserResponse,
)

logger = logging.getLogger("isitdown.auth")

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()

RESET_REQUESTED = "If an account exists for that email, a reset link has been sent"


def _session_response(message: str, user: User, status_code: int = 200) -> JSONResponse:
    """JSON body describing ``user`` plus a fresh session cookie."""
    body = LoginResponse(message=message, user=UserResponse.model_validate(user))
    response = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    response.set_cookie(
        key=COOKIE_NAME,
        value=create_session_token(user.id),
        httponly=True,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
    )
    return response


@router.post("/signup", response_model=LoginResponse, status_code=201)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User.email).where(
            or_(User.email == body.email, User.username == body.username)
        )
    )
    taken = result.scalars().all()
    if body.email in taken:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )
    if taken:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This username is already taken",
        )

    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return _session_response("Account created successfully", user, status_code=201)


@router.post("/login", response_model=LoginResponse)
async def login(
    username: str = Form(...),
    password: str = Form(...),
    db: AsyncSession = Depends(get_db),
):
    # The login name may be either the email or the username
    user = await db.scalar(
        select(User).where(or_(User.email == username, User.username == username))
    )
    if user is None or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login name or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )
    return _session_response("Logged in successfully", user)


@router.post("/logout")
async def logout():
    response = JSONResponse(content={"message": "Logged out successfully"})
    response.delete_cookie(COOKIE_NAME)
    return response


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me/preferences", response_model=UserResponse)
async def update_preferences(
    body: PreferencesUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(exclude_none=True)
    for name, value in changes.items():
        setattr(user, name, value)
    if changes:
        await db.commit()
        await db.refresh(user)
    return user


@router.post("/password-reset")
async def request_password_reset(body: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    # Same answer whether or not the account exists
    user = await db.scalar(select(User).where(User.email == body.email))
    if user is None or not user.is_active:
        logger.info(f"Password reset requested for unknown or inactive account {body.email}")
        return {"message": RESET_REQUESTED}

    token = create_reset_token(user)
    link = f"{settings.base_url}/reset-password?token={token}"
    minutes = settings.password_reset_expire_minutes
    text_body = (
        f"Hi {user.username},\n\n"
        f"Someone asked to reset the password for your IsItDownChecker account.\n"
        f"Use this link within {minutes} minutes to choose a new one:\n\n"
        f"{link}\n\n"
        f"If it wasn't you, you can ignore this email.\n"
    )
    html_body = f"""
    <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="font-size: 18px;">Reset your password</h2>
        <p style="font-size: 15px; color: #374151;">Hi {user.username}, use the link below within {minutes} minutes to choose a new password.</p>
        <p><a href="{link}">Choose a new password</a></p>
        <p style="font-size: 13px; color: #6b7280;">If it wasn't you, you can ignore this email.</p>
    </div>
    """
    if await send_email(user.email, "[IsItDownChecker] Reset your password", text_body, html_body):
        logger.info(f"Password reset email sent to {user.email}")
    else:
        logger.warning(f"Password reset email for {user.email} was not sent")
    return {"message": RESET_REQUESTED}


@router.post("/password-reset/confirm")
async def confirm_password_reset(body: PasswordResetConfirm, db: AsyncSession = Depends(get_db)):
    invalid = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="This reset link is invalid or has expired",
    )
    claims = read_reset_token(body.token)
    if claims is None:
        raise invalid
    user_id, fingerprint = claims

    user = await db.get(User, user_id)
    # A used link no longer matches the stored password
    if user is None or not user.is_active or fingerprint != password_fingerprint(user.password_hash):
        raise invalid

    user.password_hash = hash_password(body.password)
    await db.commit()
    logger.info(f"Password reset for {user.email}")
    return {"message": "Password updated successfully"}
