from enum import Enum


class Role(str, Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR = "hr"
    ADMIN = "admin"


ROLE_ORDER: dict[Role, int] = {
    Role.EMPLOYEE: 1,
    Role.MANAGER: 2,
    Role.HR: 3,
    Role.ADMIN: 4,
}

DEFAULT_ROLE = Role.EMPLOYEE


def has_permission(role: Role | str | None, required_role: Role | str) -> bool:
    """Return True when ``role`` ranks at or above ``required_role``.

    Unknown role strings never satisfy a requirement.
    """
    if role is None:
        return False
    try:
        current = Role(role)
        required = Role(required_role)
    except ValueError:
        return False
    return ROLE_ORDER[current] >= ROLE_ORDER[required]
