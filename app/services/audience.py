import logging
from typing import Dict, Iterable, List, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Profile, UserRole, STAFF_ROLES
from app.models.notification import NotificationRequest, Recipient, DEFAULT_LANGUAGE, SECONDARY_LANGUAGE

logger = logging.getLogger(__name__)


def normalize_language(language) -> str:
    return SECONDARY_LANGUAGE if language == SECONDARY_LANGUAGE else DEFAULT_LANGUAGE


def resolve_staff_ids(recipients: Iterable[Recipient]) -> Set[str]:
    """Users holding an approved staff or admin role."""
    return {r.user_id for r in recipients if r.is_staff}


def select_audience(request: NotificationRequest, recipients: Iterable[Recipient]) -> Set[str]:
    """
    Picks the user ids to notify. The first matching rule wins:

    1. explicit ``target_user_ids``;
    2. ``notify_staff`` together with ``exclude_members``: approved staff only;
    3. otherwise every non-staff profile (card members only with
       ``priority_only``), plus staff again when ``notify_staff`` is set.

    ``exclude_user_ids`` is removed from whatever the rule produced.
    """
    recipients = list(recipients)

    if request.target_user_ids:
        audience = set(request.target_user_ids)
    elif request.notify_staff and request.exclude_members:
        audience = resolve_staff_ids(recipients)
    else:
        staff_ids = resolve_staff_ids(recipients)
        audience = {
            r.user_id for r in recipients
            if not r.is_staff and (not request.priority_only or r.is_card_member)
        }
        if request.notify_staff:
            audience |= staff_ids

    return audience - set(request.exclude_user_ids)


async def load_recipients(db: AsyncSession) -> List[Recipient]:
    """
    Builds one Recipient per profile, plus one per approved staff/admin user
    that has no profile row.
    """
    profiles = (await db.execute(select(Profile))).scalars().all()
    role_rows = (await db.execute(
        select(UserRole.user_id, UserRole.role)
        .where(UserRole.role.in_(STAFF_ROLES), UserRole.is_approved == True)
    )).all()

    staff_roles: Dict[str, str] = {}
    for user_id, role in role_rows:
        # admin outranks staff when a user holds both
        if staff_roles.get(user_id) != "admin":
            staff_roles[user_id] = role

    recipients = []
    for profile in profiles:
        recipients.append(Recipient(
            user_id=profile.user_id,
            role=staff_roles.get(profile.user_id, "member"),
            member_type=profile.member_type or "regular",
            preferred_language=normalize_language(profile.preferred_language),
        ))

    profile_ids = {p.user_id for p in profiles}
    for user_id, role in staff_roles.items():
        if user_id not in profile_ids:
            recipients.append(Recipient(user_id=user_id, role=role))
    return recipients


async def resolve_audience(db: AsyncSession, request: NotificationRequest) -> Set[str]:
    if request.target_user_ids:
        audience = select_audience(request, [])
    else:
        audience = select_audience(request, await load_recipients(db))
    logger.info(f"Resolved {len(audience)} recipients for {request.type} ({request.workout_id})")
    return audience


async def load_languages(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, str]:
    """Preferred language per user; users without a profile default to English."""
    user_ids = list(user_ids)
    if not user_ids:
        return {}
    result = await db.execute(
        select(Profile.user_id, Profile.preferred_language).where(Profile.user_id.in_(user_ids))
    )
    languages = {user_id: DEFAULT_LANGUAGE for user_id in user_ids}
    for user_id, language in result.all():
        languages[user_id] = normalize_language(language)
    return languages
