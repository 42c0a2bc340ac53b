from enum import Enum

from hrms.core.config import settings


class Table(str, Enum):
    PROFILES = "profiles"
    EMPLOYEES = "employees"
    DEPARTMENTS = "departments"
    LEAVE_REQUESTS = "leave_requests"
    DOCUMENTS = "documents"


def table_name(table: Table, prefix: str | None = None) -> str:
    return f"{settings.table_prefix if prefix is None else prefix}{table.value}"
