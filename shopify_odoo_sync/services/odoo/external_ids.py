import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from ...helpers import (
    AmbiguousMatchError,
    InvalidXidError,
    ModelMismatchError,
    NotFoundError,
    StaleReferenceError,
    SyncError,
    traverse,
)
from .domain import or_domains

if TYPE_CHECKING:
    from .client import OdooEnvironment

_logger = logging.getLogger(__name__)

IR_MODEL_DATA = "ir.model.data"
IR_MODEL_DATA_FIELDS = ["id", "module", "name", "model", "res_id"]


@dataclass(frozen=True)
class ExternalIdMapping:
    module: str
    name: str
    model: str
    id: int = 0
    res_id: int = 0
    exists: bool = False

    @property
    def xid(self) -> str:
        return f"{self.module}.{self.name}"


def parse_xid(xid: str) -> tuple[str, str]:
    module, separator, name = xid.partition(".")
    if not separator or not module or not name:
        raise InvalidXidError(f"invalid xid: {xid}")
    return module, name


def _mapping_cache_key(model: str, xid: str) -> tuple[str, str, str]:
    return "xidData", model, xid


class ExternalIdResolver:
    """Maps ``module.name`` external ids to Odoo record ids through ``ir.model.data``.

    Every lookup is cached in the request cache, including confirmed misses,
    so repeated resolution of the same xid costs one query per request.
    """

    def __init__(self, env: "OdooEnvironment") -> None:
        self.env = env

    def _cached(self, model: str, xid: str) -> ExternalIdMapping | None:
        mapping, found = self.env.cache.get(_mapping_cache_key(model, xid))
        return mapping if found else None

    def _remember(self, mapping: ExternalIdMapping) -> None:
        self.env.cache.set(_mapping_cache_key(mapping.model, mapping.xid), mapping)

    def _mapping_from_row(self, model: str, xid: str, row: dict[str, Any]) -> ExternalIdMapping:
        found_model = traverse(row, ["model"], str)
        if found_model != model:
            raise ModelMismatchError(xid, model, found_model)
        return ExternalIdMapping(
            module=traverse(row, ["module"], str),
            name=traverse(row, ["name"], str),
            model=model,
            id=traverse(row, ["id"], int),
            res_id=traverse(row, ["res_id"], int),
            exists=True,
        )

    def resolve(self, model: str, xid: str) -> ExternalIdMapping:
        cached = self._cached(model, xid)
        if cached is not None:
            return cached

        module, name = parse_xid(xid)
        rows = self.env.search_read(
            IR_MODEL_DATA,
            [("module", "=", module), ("name", "=", name)],
            IR_MODEL_DATA_FIELDS,
        )
        if len(rows) > 1:
            raise AmbiguousMatchError(f"expected at most 1 match for xid {xid}, got {len(rows)}", model=IR_MODEL_DATA, count=len(rows))
        if not rows:
            mapping = ExternalIdMapping(module=module, name=name, model=model)
        else:
            mapping = self._mapping_from_row(model, xid, rows[0])
        self._remember(mapping)
        return mapping

    def get_id(self, model: str, xid: str) -> int:
        mapping = self.resolve(model, xid)
        return mapping.res_id if mapping.exists else 0

    def assign(self, model: str, record_id: int, xid: str) -> ExternalIdMapping:
        mapping = self.resolve(model, xid)
        if mapping.exists:
            if mapping.res_id != record_id:
                _logger.warning(f"{xid} already points to {model} {mapping.res_id}, not reassigning to {record_id}")
            return mapping

        mapping_id = self.env.create(
            IR_MODEL_DATA,
            {"module": mapping.module, "name": mapping.name, "model": model, "res_id": record_id},
        )
        mapping = replace(mapping, id=mapping_id, res_id=record_id, exists=True)
        self._remember(mapping)
        return mapping

    def prefetch(self, requests: Iterable[tuple[str, str]]) -> None:
        pending: dict[str, tuple[str, str, str]] = {}
        for model, xid in requests:
            if self._cached(model, xid) is not None:
                continue
            module, name = parse_xid(xid)
            pending[xid] = (model, module, name)
        if not pending:
            return

        domain = or_domains([("module", "=", module), ("name", "=", name)] for _model, module, name in pending.values())
        rows = self.env.search_read(IR_MODEL_DATA, domain, IR_MODEL_DATA_FIELDS)
        found = {f"{row['module']}.{row['name']}": row for row in rows}
        for xid, (model, module, name) in pending.items():
            row = found.get(xid)
            if row is None:
                self._remember(ExternalIdMapping(module=module, name=name, model=model))
            else:
                self._remember(self._mapping_from_row(model, xid, row))
        _logger.debug(f"Prefetched {len(pending)} external ids, {len(found)} found")

    def mark_absent(self, model: str, xid: str) -> None:
        """Forget a mapping whose record was deleted together with its ``ir.model.data`` row."""
        module, name = parse_xid(xid)
        self._remember(ExternalIdMapping(module=module, name=name, model=model))

    def invalidate(self, model: str, xid: str) -> ExternalIdMapping:
        """Drop a mapping whose target record no longer exists."""
        mapping = self.resolve(model, xid)
        if not mapping.exists:
            return mapping
        _logger.warning(f"{xid} points to missing {model} {mapping.res_id}, removing the stale mapping")
        try:
            self.env.unlink(IR_MODEL_DATA, mapping.id)
        except SyncError as error:
            raise StaleReferenceError(f"could not remove stale mapping {xid} for {model}", model=model, xid=xid) from error
        absent = ExternalIdMapping(module=mapping.module, name=mapping.name, model=model)
        self._remember(absent)
        return absent

    def read_record(self, model: str, xid: str, fields: Sequence[str]) -> dict[str, Any] | None:
        mapping = self.resolve(model, xid)
        if not mapping.exists:
            return None
        try:
            return self.env.search_read_one(model, [("id", "=", mapping.res_id)], fields, context={"active_test": False})
        except NotFoundError:
            self.invalidate(model, xid)
            return None
