"""
Identity provider: resolves usernames to contributor accounts.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func
from typing import Optional

from co2ledger.models.contributor import Contributor, ContributorCreate
from co2ledger.core.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)


async def find_contributor(session: AsyncSession, username: Optional[str]) -> Optional[Contributor]:
    """Look up a contributor by username, ignoring case."""
    if not username or not username.strip():
        return None

    statement = select(Contributor).where(
        func.lower(Contributor.username) == username.strip().lower()
    )
    result = await session.execute(statement)
    return result.scalars().first()


async def resolve_contributor(session: AsyncSession, username: Optional[str]) -> Contributor:
    """
    Resolve a username to a contributor.

    Raises:
        NotFoundError: carrying the username when no account matches
    """
    contributor = await find_contributor(session, username)
    if contributor is None:
        raise NotFoundError("Contributor", username)
    return contributor


async def register_contributor(session: AsyncSession, data: ContributorCreate) -> Contributor:
    """Register a new contributor. Usernames and emails are unique regardless of case."""
    username = data.username.strip()
    email = data.email.strip().lower()

    if await find_contributor(session, username) is not None:
        raise ConflictError(f"Username already exists: {username}")

    result = await session.execute(
        select(Contributor).where(func.lower(Contributor.email) == email)
    )
    if result.scalars().first() is not None:
        raise ConflictError(f"Email already exists: {email}")

    contributor = Contributor(
        username=username,
        email=email,
        role=data.role,
        first_name=data.first_name.strip() if data.first_name else None,
        last_name=data.last_name.strip() if data.last_name else None,
        organization=data.organization
    )
    session.add(contributor)
    await session.commit()
    await session.refresh(contributor)

    logger.info("Registered contributor %s (%s)", contributor.username, contributor.role.value)
    return contributor
