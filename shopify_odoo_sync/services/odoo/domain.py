from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Any

from ...helpers import format_odoo_datetime

Condition = tuple[str, str, Any]
DomainItem = Condition | str
Domain = list[DomainItem]


class CommandType(IntEnum):
    CREATE = 0
    UPDATE = 1
    DELETE = 2
    UNLINK = 3
    LINK = 4
    CLEAR = 5
    SET = 6


@dataclass(frozen=True)
class RelationCommand:
    command_type: CommandType
    record_id: int = 0
    values: Mapping[str, Any] | None = None
    ids: tuple[int, ...] = field(default_factory=tuple)

    def to_wire(self) -> list[Any]:
        if self.command_type in (CommandType.CREATE, CommandType.UPDATE):
            return [int(self.command_type), self.record_id, dict(self.values or {})]
        if self.command_type == CommandType.SET:
            return [int(self.command_type), 0, list(self.ids)]
        return [int(self.command_type), self.record_id, 0]


class Command:
    """Relational field commands understood by ``write`` and ``create``."""

    @staticmethod
    def create(values: Mapping[str, Any]) -> RelationCommand:
        return RelationCommand(CommandType.CREATE, 0, dict(values))

    @staticmethod
    def update(record_id: int, values: Mapping[str, Any]) -> RelationCommand:
        return RelationCommand(CommandType.UPDATE, record_id, dict(values))

    @staticmethod
    def delete(record_id: int) -> RelationCommand:
        return RelationCommand(CommandType.DELETE, record_id)

    @staticmethod
    def unlink(record_id: int) -> RelationCommand:
        return RelationCommand(CommandType.UNLINK, record_id)

    @staticmethod
    def link(record_id: int) -> RelationCommand:
        return RelationCommand(CommandType.LINK, record_id)

    @staticmethod
    def clear() -> RelationCommand:
        return RelationCommand(CommandType.CLEAR)

    @staticmethod
    def set(ids: Iterable[int]) -> RelationCommand:
        return RelationCommand(CommandType.SET, ids=tuple(ids))


def map_to_domain(values: Mapping[str, Any]) -> Domain:
    domain: Domain = []
    for key, value in values.items():
        if isinstance(value, str):
            domain.append((key, "=ilike", value))
        elif isinstance(value, (bool, int, float)):
            domain.append((key, "=", value))
    return domain


def or_domains(domains: Iterable[Domain]) -> Domain:
    domains = [domain for domain in domains if domain]
    result: Domain = ["|"] * (len(domains) - 1) if domains else []
    for domain in domains:
        result.extend(and_domain(domain))
    return result


def and_domain(domain: Domain) -> Domain:
    """Prefix a flat list of conditions with explicit ``&`` operators."""
    conditions = [item for item in domain if not isinstance(item, str)]
    if len(conditions) != len(domain):
        return list(domain)
    return ["&"] * (len(conditions) - 1) + conditions


def to_wire(value: Any) -> Any:
    if isinstance(value, RelationCommand):
        return to_wire(value.to_wire())
    if isinstance(value, tuple):
        return [to_wire(item) for item in value]
    if isinstance(value, list):
        return [to_wire(item) for item in value]
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return format_odoo_datetime(value)
    return value
