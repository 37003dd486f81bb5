"""Roles and the claims derived from them.

Roles are a closed enumeration. ``ROLE_IDS`` pins each role to the stable
identifier stored in ``user_roles.role_id``; adding a role means adding a
member here, an entry in ``ROLE_IDS`` and a data migration granting it
where needed.
"""
from collections.abc import Iterable
from enum import IntEnum


class Role(IntEnum):
    ADMIN = 1
    USER = 2

    @property
    def claim(self) -> str:
        return self.name.lower()

    @classmethod
    def from_claim(cls, value: str) -> "Role":
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown role: {value}") from None


ROLE_IDS: dict[Role, str] = {
    Role.ADMIN: "c9a36382-bb77-4ee7-8539-681026b43916",
    Role.USER: "561622cb-ca02-4c14-9c44-21bc4ba4d2ac",
}

ROLES_BY_ID: dict[str, Role] = {role_id: role for role, role_id in ROLE_IDS.items()}

DEFAULT_ROLE = Role.USER


def role_from_id(role_id: str) -> Role:
    try:
        return ROLES_BY_ID[role_id]
    except KeyError:
        raise ValueError(f"Unknown role id: {role_id}") from None


def role_claims(roles: Iterable[Role]) -> list[str]:
    """Canonical claim list: de-duplicated and ordered by role value."""
    return [role.claim for role in sorted(set(roles))]


def roles_from_claims(claims: Iterable[str]) -> list[Role]:
    """Parse claim strings back into roles; unknown names raise ``ValueError``."""
    return sorted({Role.from_claim(value) for value in claims})


def build_claims(user_id: str, roles: Iterable[Role] | None = None) -> dict:
    """Identity assertions embedded in a token.

    ``roles`` is ``None`` for token classes that carry only the subject.
    """
    claims: dict = {"sub": user_id}
    if roles is not None:
        claims["roles"] = role_claims(roles)
    return claims
