import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Self

from httpx import Client, HTTPError, Limits, Timeout

from ...cache import RequestCache
from ...helpers import (
    AmbiguousMatchError,
    CompensationError,
    NotFoundError,
    OdooRpcError,
    SyncError,
)
from ...settings import SyncSettings
from .domain import Domain, to_wire
from .external_ids import ExternalIdResolver

_logger = logging.getLogger(__name__)

Record = dict[str, Any]


class OdooClient:
    """Authenticated JSON-RPC channel to one Odoo database."""

    def __init__(self, settings: SyncSettings, http_client: Client | None = None) -> None:
        settings.require_odoo()
        self.settings = settings
        self.url = settings.odoo_rpc_url()
        self._http_client = http_client or self._create_http_client()
        self._owns_http_client = http_client is None

    def _create_http_client(self) -> Client:
        timeout = Timeout(self.settings.request_timeout, connect=10.0)
        limits = Limits(max_connections=10, max_keepalive_connections=10)
        return Client(timeout=timeout, limits=limits)

    def close(self) -> None:
        if self._owns_http_client:
            self._http_client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def execute_kw(self, model: str, method: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> Any:
        settings = self.settings
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "id": settings.odoo_user_id,
            "params": {
                "service": "object",
                "method": "execute_kw",
                "args": [
                    settings.odoo_db,
                    settings.odoo_user_id,
                    settings.odoo_password,
                    model,
                    method,
                    to_wire(list(args)),
                    to_wire(dict(kwargs)),
                ],
            },
        }
        _logger.debug(f"Odoo RPC {model}.{method}")
        try:
            response = self._http_client.post(
                self.url,
                content=json.dumps(payload),
                headers={
                    "Content-Type": "application/json",
                    "Cloudflare-Bypass-WAF": settings.cloudflare_bypass_waf,
                },
            )
        except HTTPError as error:
            raise OdooRpcError(f"request error during Odoo call {model}.{method}: {error}") from error

        body = response.text
        if response.status_code != 200:
            raise OdooRpcError(
                f"non-200 response from Odoo call {model}.{method}",
                status_code=response.status_code,
                response_body=body,
            )
        try:
            decoded = json.loads(body)
        except ValueError as error:
            raise OdooRpcError(
                f"invalid json response from Odoo call {model}.{method}",
                status_code=response.status_code,
                response_body=body,
            ) from error
        if not isinstance(decoded, dict):
            raise OdooRpcError(f"unexpected response from Odoo call {model}.{method}", response_body=body)
        if "error" in decoded:
            raise OdooRpcError(
                f"error received from Odoo call {model}.{method}: {json.dumps(decoded['error'], indent=2)}",
                status_code=response.status_code,
                response_body=body,
            )
        if "result" not in decoded:
            raise OdooRpcError(f"result not found in response from Odoo call {model}.{method}", response_body=body)
        return decoded["result"]


class OdooEnvironment:
    """Request-scoped view of Odoo: a client, a cache and an immutable context.

    ``with_context`` never mutates the environment it is called on, so a
    company override only applies to the environment it returns.
    """

    def __init__(self, client: OdooClient, cache: RequestCache, context: Mapping[str, Any] | None = None) -> None:
        self.client = client
        self.cache = cache
        self._context: dict[str, Any] = dict(context or {})
        self._external_ids: ExternalIdResolver | None = None

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def with_context(self, context: Mapping[str, Any] | None = None, **overrides: Any) -> "OdooEnvironment":
        merged = dict(self._context)
        merged.update(context or {})
        merged.update(overrides)
        return OdooEnvironment(self.client, self.cache, merged)

    @property
    def external_ids(self) -> ExternalIdResolver:
        if self._external_ids is None:
            self._external_ids = ExternalIdResolver(self)
        return self._external_ids

    def _merged_context(self, context: Mapping[str, Any] | None) -> dict[str, Any]:
        merged = dict(self._context)
        merged.update(context or {})
        return merged

    def execute_kw(
        self,
        model: str,
        method: str,
        args: Sequence[Any],
        kwargs: Mapping[str, Any] | None = None,
    ) -> Any:
        call_kwargs = dict(kwargs or {})
        call_kwargs["context"] = self._merged_context(call_kwargs.get("context"))
        return self.client.execute_kw(model, method, args, call_kwargs)

    # Reading

    def search_read(
        self,
        model: str,
        domain: Domain,
        fields: Sequence[str],
        limit: int = 0,
        context: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        result = self.execute_kw(
            model,
            "search_read",
            [],
            {"domain": list(domain), "fields": list(fields), "limit": limit, "context": dict(context or {})},
        )
        if not isinstance(result, list) or not all(isinstance(record, dict) for record in result):
            raise OdooRpcError(f"search_read result for {model} is not valid", response_body=repr(result))
        return result

    def search_count(self, model: str, domain: Domain, context: Mapping[str, Any] | None = None) -> int:
        result = self.execute_kw(model, "search_count", [list(domain)], {"context": dict(context or {})})
        if isinstance(result, bool) or not isinstance(result, (int, float)):
            raise OdooRpcError(f"search_count result for {model} is not valid", response_body=repr(result))
        return int(result)

    def search_read_one(
        self,
        model: str,
        domain: Domain,
        fields: Sequence[str],
        context: Mapping[str, Any] | None = None,
    ) -> Record:
        records = self.search_read(model, domain, fields, limit=2, context=context)
        if len(records) != 1:
            error_class = NotFoundError if not records else AmbiguousMatchError
            raise error_class(
                f"search on {model} expected exactly 1 result, {len(records)} received",
                model=model,
                count=len(records),
            )
        return records[0]

    def read_by_id(
        self,
        model: str,
        record_id: int,
        fields: Sequence[str],
        context: Mapping[str, Any] | None = None,
    ) -> Record:
        return self.search_read_one(model, [("id", "=", record_id)], fields, context=context)

    def search_ids(self, model: str, domain: Domain, context: Mapping[str, Any] | None = None) -> list[int]:
        records = self.search_read(model, domain, ["id"], context=context)
        return [int(record["id"]) for record in records]

    def search_id(self, model: str, domain: Domain, context: Mapping[str, Any] | None = None) -> int:
        ids = self.search_ids(model, domain, context=context)
        if len(ids) != 1:
            error_class = NotFoundError if not ids else AmbiguousMatchError
            raise error_class(f"search on {model} expected exactly 1 match, got {len(ids)}", model=model, count=len(ids))
        return ids[0]

    def search_first_id(self, model: str, domain: Domain, context: Mapping[str, Any] | None = None) -> int:
        records = self.search_read(model, domain, ["id"], limit=1, context=context)
        if not records:
            return 0
        return int(records[0]["id"])

    # Writing

    def create_multi(
        self,
        model: str,
        values_list: Sequence[Mapping[str, Any]],
        context: Mapping[str, Any] | None = None,
    ) -> list[int]:
        result = self.execute_kw(model, "create", [[dict(values) for values in values_list]], {"context": dict(context or {})})
        if isinstance(result, (int, float)) and not isinstance(result, bool):
            result = [result]
        if not isinstance(result, list):
            raise OdooRpcError(f"invalid result from create on {model}, expected a list of ids", response_body=repr(result))
        ids: list[int] = []
        for index, record_id in enumerate(result):
            if isinstance(record_id, bool) or not isinstance(record_id, (int, float)):
                raise OdooRpcError(
                    f"invalid result from create on {model}, element {index} is {type(record_id).__name__}",
                    response_body=repr(result),
                )
            ids.append(int(record_id))
        return ids

    def create(
        self,
        model: str,
        values: Mapping[str, Any],
        *,
        xid: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> int:
        record_id = self.create_multi(model, [values], context=context)[0]
        _logger.info(f"Created {model} {record_id}{f' ({xid})' if xid else ''}")
        if not xid:
            return record_id
        try:
            self.external_ids.assign(model, record_id, xid)
        except SyncError as error:
            _logger.warning(f"Assigning {xid} to {model} {record_id} failed, deleting the new record")
            try:
                self.unlink(model, record_id)
            except SyncError as compensation_error:
                raise CompensationError(
                    f"could not delete {model} {record_id} after failing to assign {xid}",
                    original=error,
                    compensation=compensation_error,
                ) from error
            raise
        return record_id

    def write_multi(
        self,
        model: str,
        ids: Sequence[int],
        values: Mapping[str, Any],
        context: Mapping[str, Any] | None = None,
    ) -> None:
        result = self.execute_kw(model, "write", [list(ids), dict(values)], {"context": dict(context or {})})
        if not isinstance(result, bool):
            raise OdooRpcError(f"invalid result from write on {model}, expected a boolean", response_body=repr(result))

    def write(self, model: str, record_id: int, values: Mapping[str, Any], context: Mapping[str, Any] | None = None) -> None:
        self.write_multi(model, [record_id], values, context=context)

    def unlink_multi(self, model: str, ids: Sequence[int], context: Mapping[str, Any] | None = None) -> None:
        self.execute_kw(model, "unlink", [list(ids)], {"context": dict(context or {})})

    def unlink(self, model: str, record_id: int, context: Mapping[str, Any] | None = None) -> None:
        self.unlink_multi(model, [record_id], context=context)

    # Composite helpers

    def search_write(
        self,
        model: str,
        domain: Domain,
        values: Mapping[str, Any],
        context: Mapping[str, Any] | None = None,
    ) -> list[int]:
        ids = self.search_ids(model, domain, context=context)
        if ids:
            self.write_multi(model, ids, values, context=context)
        return ids

    def search_write_one(
        self,
        model: str,
        domain: Domain,
        values: Mapping[str, Any],
        context: Mapping[str, Any] | None = None,
    ) -> int:
        record_id = self.search_id(model, domain, context=context)
        self.write(model, record_id, values, context=context)
        return record_id

    def find_or_create(
        self,
        model: str,
        domain: Domain,
        create_values: Mapping[str, Any],
        context: Mapping[str, Any] | None = None,
    ) -> int:
        ids = self.search_ids(model, domain, context=context)
        if len(ids) > 1:
            raise AmbiguousMatchError(
                f"find or create on {model} expected at most 1 match, got {len(ids)}",
                model=model,
                count=len(ids),
            )
        if ids:
            return ids[0]
        return self.create(model, create_values, context=context)

    def find_first_or_create(
        self,
        model: str,
        domain: Domain,
        create_values: Mapping[str, Any],
        context: Mapping[str, Any] | None = None,
    ) -> int:
        record_id = self.search_first_id(model, domain, context=context)
        if record_id:
            return record_id
        return self.create(model, create_values, context=context)

    def write_or_create(
        self,
        model: str,
        domain: Domain,
        values: Mapping[str, Any],
        *,
        write_only_values: Mapping[str, Any] | None = None,
        create_only_values: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> int:
        ids = self.search_ids(model, domain, context=context)
        if len(ids) > 1:
            raise AmbiguousMatchError(
                f"write or create on {model} expected at most 1 match, got {len(ids)}",
                model=model,
                count=len(ids),
            )
        if ids:
            self.write(model, ids[0], {**values, **(write_only_values or {})}, context=context)
            return ids[0]
        return self.create(model, {**values, **(create_only_values or {})}, context=context)

