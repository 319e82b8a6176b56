from pydantic import Field

from fortune_wheel.schemas.base import CamelModel


class EmployeeCreate(CamelModel):
    # Required, but checked by the roster service so a blank name is a 400
    first_name: str | None = Field(None, max_length=255)
    last_name: str = Field("", max_length=255)
    role: str = Field("", max_length=255)
    avatar: str = ""


class EmployeeUpdate(CamelModel):
    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    role: str | None = Field(None, max_length=255)
    avatar: str | None = None
    active: bool | None = None


class EmployeeResponse(CamelModel):
    id: int
    first_name: str
    last_name: str = ""
    role: str = ""
    avatar: str = ""
    active: bool = True


class RosterEntry(CamelModel):
    first_name: str | None = None
    last_name: str | None = None


class RosterReplace(CamelModel):
    """Either a structured list or bulk text such as ``"Ada Lovelace, Alan Turing"``."""

    employees: list[RosterEntry] = []
    text: str | None = None


class EmployeeEnvelope(CamelModel):
    employee: EmployeeResponse


class EmployeeListResponse(CamelModel):
    employees: list[EmployeeResponse]
