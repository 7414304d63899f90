"""Group-membership authorization policy."""

from typing import Iterable

import logging

from .domain import UserRecord

logger = logging.getLogger(__name__)


def _matches(membership: str, group: str, match_any_offset: bool) -> bool:
    # The empty group name stands for "any authenticated user".
    if not group:
        return True
    if match_any_offset:
        return group in membership
    # Only the first occurrence is considered.
    return membership.find(group) > 0


def authorize(user: UserRecord, allowed_groups: Iterable[str],
              match_any_offset: bool = False) -> bool:
    """
    Determine whether ``user`` belongs to one of ``allowed_groups``.

    Group names are compared case-insensitively as substrings of the user's
    membership DNs, so ``admins`` matches ``CN=Admins,OU=Groups,DC=example``.
    Unless ``match_any_offset`` is set, only the first occurrence of the group
    name counts, and it must not be at the very start of the membership
    string; ``admins`` does not match ``admins,CN=admins``.

    Parameters
    ----------
    user : :class:`.UserRecord`
    allowed_groups : iterable
        Group names. If empty, any authenticated user is authorized.
    match_any_offset : bool
        Accept a match at the start of the membership string.

    Returns
    -------
    bool

    """
    groups = [group.lower() for group in allowed_groups] or ['']
    for membership in user.groups:
        membership = membership.lower()
        for group in groups:
            if _matches(membership, group, match_any_offset):
                logger.debug('AUTHZ: Success for %s', user.username)
                return True
    logger.debug('AUTHZ: Fail for %s', user.username)
    return False
