from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LeaveType(str, Enum):
    ANNUAL = "annual"
    SICK = "sick"
    MATERNITY = "maternity"
    PATERNITY = "paternity"
    UNPAID = "unpaid"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EmployeeCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(min_length=1, max_length=80)
    email: EmailStr
    department_id: str
    position: str = Field(min_length=1, max_length=120)
    hire_date: date
    birth_date: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    email: Optional[EmailStr] = None
    department_id: Optional[str] = None
    position: Optional[str] = Field(default=None, min_length=1, max_length=120)
    hire_date: Optional[date] = None
    birth_date: Optional[date] = None
    status: Optional[EmployeeStatus] = None


class EmployeeRecord(EmployeeCreate):
    id: str
    created_at: datetime
    updated_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=2, max_length=80)
    description: str = Field(default="", max_length=300)
    manager_id: Optional[str] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=80)
    description: Optional[str] = Field(default=None, max_length=300)
    manager_id: Optional[str] = None


class DepartmentRecord(DepartmentCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType = LeaveType.ANNUAL
    start_date: date
    end_date: date
    reason: str = Field(min_length=3, max_length=250)

    @model_validator(mode="after")
    def validate_date_range(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveDecisionRequest(BaseModel):
    approve: bool


class LeaveRequestRecord(BaseModel):
    id: str
    employee_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    status: LeaveStatus
    reason: str
    created_at: datetime
    updated_at: datetime


class DashboardStats(BaseModel):
    employees: int = 0
    active_employees: int = 0
    departments: int = 0
    leave_requests: int = 0
    pending_leave_requests: int = 0
    documents: int = 0
    recent_hires: int = 0
    upcoming_birthdays: int = 0
