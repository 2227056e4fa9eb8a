"""
services/user_service.py
------------------------
Business logic for user lookup, legacy login, OAuth user resolution and
profile updates.

All queries run against the session of one school's store, so users are
isolated per tenant by construction.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.logging import get_logger
from phrofs.core.security import verify_password
from phrofs.models.user import User
from phrofs.schemas.user import AssertedProfile, ProfileUpdate

logger = get_logger(__name__)

# Profile fields an identity provider may fill in while still empty
_BACKFILL_FIELDS = ("display_name", "photo_path", "email")


class UserService:

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
        return await db.get(User, user_id)

    @staticmethod
    async def authenticate(
        db: AsyncSession, school_id_or_email: str, password: str
    ) -> User | None:
        """
        Verify legacy credentials and return the User if valid, else None.
        """
        result = await db.execute(
            select(User).where(User.school_id_or_email == school_id_or_email.strip())
        )
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    async def find_or_create_oauth_user(
        db: AsyncSession,
        provider: str,
        profile: AssertedProfile,
    ) -> tuple[User, bool]:
        """
        Resolve an external identity to exactly one local user.

        Repeated sign-ins by the same (provider, provider_id) return the same
        row. Existing values are never overwritten; only fields that are
        still empty are backfilled from the asserted profile.

        Returns:
            (user, created)
        """
        user = await UserService._by_provider(db, provider, profile.provider_id)
        if user is None:
            user = User(
                provider=provider,
                provider_id=profile.provider_id,
                email=profile.email,
                display_name=profile.display_name,
                photo_path=profile.photo_path,
            )
            db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                # Lost a race with a concurrent first sign-in
                await db.rollback()
                user = await UserService._by_provider(db, provider, profile.provider_id)
                if user is None:
                    raise
            else:
                await db.refresh(user)
                logger.info("OAuth user created", user_id=user.id, provider=provider)
                return user, True

        backfilled = []
        for field in _BACKFILL_FIELDS:
            incoming = getattr(profile, field)
            if incoming and not getattr(user, field):
                setattr(user, field, incoming)
                backfilled.append(field)
        if backfilled:
            await db.commit()
            await db.refresh(user)
            logger.info("OAuth user backfilled", user_id=user.id, fields=backfilled)
        return user, False

    @staticmethod
    async def _by_provider(db: AsyncSession, provider: str, provider_id: str) -> Optional[User]:
        result = await db.execute(
            select(User).where(User.provider == provider, User.provider_id == provider_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
        """Coalescing update: fields that are absent or null keep their value."""
        changes = data.model_dump(exclude_none=True)
        for field, value in changes.items():
            setattr(user, field, value.strip() if isinstance(value, str) else value)
        if changes:
            await db.commit()
            await db.refresh(user)
            logger.info("Profile updated", user_id=user.id, fields=sorted(changes))
        return user
