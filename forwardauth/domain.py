"""Defines the core data structures for the forward-authentication gateway."""

from enum import Enum
from typing import Any, Dict, Iterable, NamedTuple, Optional, Tuple, Union

NO_GROUPS = 'NO_GROUPS'
"""Stands in for the memberships of a user who belongs to no groups."""

Attribute = Union[str, Iterable[str], None]


def _single(value: Attribute) -> str:
    """Get a single-valued attribute, whether or not it came wrapped in a list."""
    if value is None:
        return ''
    if isinstance(value, (str, bytes)):
        return value.decode('utf-8') if isinstance(value, bytes) else value
    for item in value:
        return str(item)
    return ''


def _multi(value: Attribute) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(str(item) for item in value)


class UserRecord(NamedTuple):
    """A user account, as found in the directory."""

    dn: str
    """Distinguished name; the unique key of the entry in the directory."""

    username: str = ''
    """The login name supplied by the user when they authenticated."""

    display_name: str = ''
    given_name: str = ''
    surname: str = ''
    email: str = ''

    member_of: Tuple[str, ...] = ()
    """Groups (as DNs) of which the user is a member, in directory order."""

    @property
    def groups(self) -> Tuple[str, ...]:
        """Group memberships, with :const:`NO_GROUPS` standing in for none."""
        return self.member_of or (NO_GROUPS,)

    def to_dict(self) -> Dict[str, Any]:
        """Generate a JSON-friendly representation of the record."""
        data = self._asdict()
        data['member_of'] = list(self.member_of)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserRecord':
        """Rebuild a record from the output of :meth:`to_dict`."""
        return cls(
            dn=data.get('dn', ''),
            username=data.get('username', ''),
            display_name=data.get('display_name', ''),
            given_name=data.get('given_name', ''),
            surname=data.get('surname', ''),
            email=data.get('email', ''),
            member_of=tuple(data.get('member_of') or ())
        )

    @classmethod
    def from_entry(cls, entry: Dict[str, Any]) -> 'UserRecord':
        """
        Normalize a directory search entry.

        Parameters
        ----------
        entry : dict
            A ``searchResEntry`` from the directory, with ``dn`` and
            ``attributes`` keys.

        Returns
        -------
        :class:`UserRecord`

        """
        attributes = entry.get('attributes') or {}
        return cls(
            dn=entry['dn'],
            display_name=_single(attributes.get('cn')),
            given_name=_single(attributes.get('givenName')),
            surname=_single(attributes.get('sn')),
            email=_single(attributes.get('mail')),
            member_of=_multi(attributes.get('memberOf'))
        )


class SessionState(Enum):
    """Classification of a browser session at decision time."""

    ANONYMOUS = 'anonymous'
    AUTHENTICATED = 'authenticated'
    AUTHENTICATED_UNAUTHORIZED = 'authenticated_unauthorized'


class LoginOutcome(NamedTuple):
    """The result of a login attempt."""

    user: Optional[UserRecord] = None
    error: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        """Whether the attempt produced an authenticated user."""
        return self.user is not None
