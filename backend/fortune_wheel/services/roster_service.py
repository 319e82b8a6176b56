"""Roster administration: single edits and whole-roster replacement."""
import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.core.exceptions import ValidationError
from fortune_wheel.models.employee import Employee
from fortune_wheel.schemas.employee import EmployeeCreate, EmployeeUpdate, RosterEntry, RosterReplace
from fortune_wheel.services.game_store import GameStore

logger = logging.getLogger(__name__)


def parse_bulk_roster(text: str) -> list[RosterEntry]:
    """``"Ada Lovelace, Grace Brewster Hopper"`` -> first name + rest as last name."""
    entries = []
    for chunk in text.replace("\r", " ").replace("\n", " ").split(","):
        parts = chunk.split()
        if not parts:
            continue
        entries.append(RosterEntry(first_name=parts[0], last_name=" ".join(parts[1:])))
    return entries


def clean_roster(entries: Sequence[RosterEntry]) -> list[dict[str, str]]:
    cleaned = []
    for entry in entries:
        first = (entry.first_name or "").strip()
        if not first:
            continue
        cleaned.append({"first_name": first, "last_name": (entry.last_name or "").strip()})
    return cleaned


def find_duplicate_names(entries: list[dict[str, str]]) -> list[str]:
    seen: set[tuple[str, str]] = set()
    duplicates = []
    for entry in entries:
        key = (entry["first_name"].casefold(), entry["last_name"].casefold())
        if key in seen:
            duplicates.append(f"{entry['first_name']} {entry['last_name']}".strip())
        seen.add(key)
    return duplicates


async def replace_roster(db: AsyncSession, slug: str, data: RosterReplace) -> Sequence[Employee]:
    """Swap the whole roster; every new employee starts active."""
    store = GameStore(db)
    await store.require_game(slug)

    entries = list(data.employees)
    if data.text:
        entries.extend(parse_bulk_roster(data.text))
    cleaned = clean_roster(entries)

    duplicates = find_duplicate_names(cleaned)
    if duplicates:
        raise ValidationError(f"Duplicate employees: {', '.join(duplicates)}")

    employees = await store.replace_employees(slug, cleaned)
    logger.info("Replaced roster for %s with %d employee(s)", slug, len(employees))
    return employees


async def add_employee(db: AsyncSession, slug: str, data: EmployeeCreate) -> Employee:
    store = GameStore(db)
    await store.require_game(slug)
    first_name = (data.first_name or "").strip()
    if not first_name:
        raise ValidationError("firstName is required")
    return await store.create_employee(slug, {
        "first_name": first_name,
        "last_name": data.last_name.strip(),
        "role": data.role.strip(),
        "avatar": data.avatar.strip(),
    })


async def edit_employee(db: AsyncSession, slug: str, employee_id: int, data: EmployeeUpdate) -> Employee:
    store = GameStore(db)
    await store.require_game(slug)
    fields = data.model_dump(exclude_unset=True)
    for name, value in list(fields.items()):
        if value is None:
            fields.pop(name)
        elif isinstance(value, str):
            fields[name] = value.strip()
    if "first_name" in fields and not fields["first_name"]:
        raise ValidationError("firstName cannot be empty")
    return await store.update_employee(slug, employee_id, fields)


async def remove_employee(db: AsyncSession, slug: str, employee_id: int) -> None:
    store = GameStore(db)
    await store.require_game(slug)
    await store.delete_employee(slug, employee_id)
