"""Auth Service - registration, login and account-level preferences."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from soundshelf.application.services.password_hasher import PasswordHasher
from soundshelf.application.services.token_service import TokenService
from soundshelf.domain.entities import FontSize, UILanguage, User, UserRole, utc_now
from soundshelf.domain.exceptions import AuthenticationError, DuplicateEntityException
from soundshelf.domain.ports import IUserRepository
from soundshelf.domain.value_objects import UserId

logger = logging.getLogger(__name__)

RECENT_USERS_WINDOW = timedelta(days=7)


@dataclass
class AuthResult:
    """A user together with a freshly issued token."""

    user: User
    token: str


@dataclass
class UserStatistics:
    """Platform-wide user counts."""

    total_users: int
    active_users: int
    recent_users: int
    users_by_role: dict[str, int] = field(default_factory=dict)


def invalid_credentials() -> AuthenticationError:
    return AuthenticationError("Email or password is incorrect", error="Invalid credentials")


def account_deactivated() -> AuthenticationError:
    return AuthenticationError(
        "Your account has been deactivated. Please contact support.",
        error="Account deactivated",
    )


class AuthService:
    """Register users, check credentials and hand out tokens."""

    def __init__(
        self,
        user_repository: IUserRepository,
        password_hasher: PasswordHasher,
        token_service: TokenService,
    ) -> None:
        self._users = user_repository
        self._hasher = password_hasher
        self._tokens = token_service

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.STANDARD,
    ) -> AuthResult:
        """Create an account and log it in.

        Raises:
            DuplicateEntityException: Email already registered (HTTP 400)
        """
        if await self._users.get_by_email(email) is not None:
            raise DuplicateEntityException(
                "User", email, "A user with this email already exists"
            )

        # bcrypt is deliberately slow - keep it off the event loop
        password_hash = await asyncio.to_thread(self._hasher.hash, password)
        user = User(
            id=UserId.generate(),
            name=name.strip(),
            email=email,
            password_hash=password_hash,
            role=role,
        )
        # add() flushes - a concurrent registration with the same email still ends up here
        # as DuplicateEntityException through the unique index
        await self._users.add(user)
        logger.info(
            f"Registered user {user.id} ({user.role.value})",
            extra={"user_id": str(user.id), "role": user.role.value},
        )
        return AuthResult(user=user, token=self._tokens.issue(user.id))

    async def bootstrap_admin(self, name: str, email: str, password: str) -> tuple[User, bool]:
        """Create an admin account unless the email is taken.

        Returns:
            (user, created) - the existing account and False when the email was registered
        """
        existing = await self._users.get_by_email(email)
        if existing is not None:
            return existing, False
        password_hash = await asyncio.to_thread(self._hasher.hash, password)
        user = User(
            id=UserId.generate(),
            name=name.strip(),
            email=email,
            password_hash=password_hash,
            role=UserRole.ADMIN,
            is_email_verified=True,
        )
        await self._users.add(user)
        logger.info(f"Created admin account {user.id}", extra={"user_id": str(user.id)})
        return user, True

    # Hey future me, the order here matters: unknown email and wrong password give the SAME
    # "Invalid credentials" answer (no account probing), but the deactivated check comes BEFORE
    # the password check - a deactivated user learns their account is off even with a wrong
    # password. That's how clients have always seen it, keep it.
    async def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a token.

        Raises:
            AuthenticationError: Invalid credentials or deactivated account (HTTP 401)
        """
        user = await self._users.get_by_email(email)
        if user is None:
            raise invalid_credentials()
        if not user.is_active:
            raise account_deactivated()
        if not await asyncio.to_thread(self._hasher.verify, password, user.password_hash):
            logger.info("Failed login attempt", extra={"user_id": str(user.id)})
            raise invalid_credentials()

        user.record_login()
        await self._users.update(user)
        return AuthResult(user=user, token=self._tokens.issue(user.id))

    def refresh(self, user: User) -> str:
        """Issue a new token; the previous one stays valid until it expires."""
        return self._tokens.issue(user.id)

    async def update_preferences(
        self,
        user: User,
        language: UILanguage | None = None,
        font_size: FontSize | None = None,
        high_contrast: bool | None = None,
        notifications: bool | None = None,
    ) -> User:
        """Apply the given preference changes, leaving None values untouched."""
        if language is not None:
            user.preferences.language = language
        if font_size is not None:
            user.preferences.font_size = font_size
        if high_contrast is not None:
            user.preferences.high_contrast = high_contrast
        if notifications is not None:
            user.preferences.notifications = notifications
        user.touch()
        await self._users.update(user)
        return user

    async def user_statistics(self) -> UserStatistics:
        """Count users overall, active, registered in the last 7 days and per role."""
        return UserStatistics(
            total_users=await self._users.count(),
            active_users=await self._users.count(is_active=True),
            recent_users=await self._users.count(created_since=utc_now() - RECENT_USERS_WINDOW),
            users_by_role={role.value: await self._users.count(role=role) for role in UserRole},
        )
