"""Webhook entry points: one handler per Shopify topic.

Each handler takes the decoded webhook payload and always returns a
:class:`HandlerResponse`; sync errors are translated into status codes here
and nowhere else.
"""

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .helpers import (
    DeadlineExceededError,
    PathError,
    SyncError,
    ValidationError,
    make_shopify_gid,
    traverse,
    traverse_or,
)
from .services.sync.base import SyncResult
from .services.sync.service import SyncService

_logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSACTION_SUCCESS_STATUS = "success"


@dataclass(frozen=True)
class HandlerResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: SyncResult) -> "HandlerResponse":
        return cls(200, {"id": result.record_id, "new": result.is_new})

    @classmethod
    def from_error(cls, status_code: int, message: str, error: Exception) -> "HandlerResponse":
        return cls(status_code, {"error": message, "detail": str(error)})


def run_with_deadline(function: Callable[[], T], deadline: float) -> T:
    """Run ``function`` on a worker thread and give up waiting after ``deadline`` seconds.

    A late worker is not interrupted; its result is discarded when it finishes.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sync")
    future = executor.submit(function)
    try:
        return future.result(timeout=deadline)
    except FuturesTimeoutError as error:
        raise DeadlineExceededError(deadline) from error
    finally:
        executor.shutdown(wait=False)


def _respond(service: SyncService, description: str, work: Callable[[], SyncResult]) -> HandlerResponse:
    try:
        result = run_with_deadline(work, service.settings.deadline_seconds)
    except DeadlineExceededError as error:
        _logger.error(f"Timed out processing {description}: {error}")
        return HandlerResponse.from_error(504, "Request timed out", error)
    except ValidationError as error:
        _logger.warning(f"Rejected {description}: {error}")
        return HandlerResponse.from_error(400, f"Invalid {description}", error)
    except SyncError as error:
        _logger.error(f"Error processing {description}: {error}", exc_info=error)
        return HandlerResponse.from_error(500, f"Error processing {description}", error)
    _logger.info(f"Processed {description}: Odoo id {result.record_id} (new: {result.is_new})")
    return HandlerResponse.from_result(result)


def _read_payload(payload: Mapping[str, Any], path: list[str | int], expected_type: type[T]) -> T:
    return traverse(dict(payload), path, expected_type)


def _bad_request(message: str, error: Exception) -> HandlerResponse:
    _logger.warning(f"{message}: {error}")
    return HandlerResponse.from_error(400, message, error)


def handle_order_webhook(service: SyncService, payload: Mapping[str, Any]) -> HandlerResponse:
    try:
        order_gid = _read_payload(payload, ["admin_graphql_api_id"], str)
    except PathError as error:
        return _bad_request("Order GraphQL ID not in request body", error)
    return _respond(service, f"order {order_gid}", lambda: service.sync_order(order_gid))


def handle_customer_webhook(service: SyncService, payload: Mapping[str, Any]) -> HandlerResponse:
    try:
        customer_gid = _read_payload(payload, ["admin_graphql_api_id"], str)
    except PathError as error:
        return _bad_request("Customer GraphQL ID not in request body", error)
    return _respond(service, f"customer {customer_gid}", lambda: service.sync_customer(customer_gid))


def handle_company_webhook(service: SyncService, payload: Mapping[str, Any]) -> HandlerResponse:
    """Company location webhooks carry the owning company under ``company``."""
    try:
        company_gid = _read_payload(payload, ["company", "admin_graphql_api_id"], str)
    except PathError as error:
        return _bad_request("Company GraphQL ID not in request body", error)
    return _respond(service, f"company {company_gid}", lambda: service.sync_company(company_gid))


def handle_transaction_webhook(service: SyncService, payload: Mapping[str, Any]) -> HandlerResponse:
    # pending and failed transactions are acknowledged without syncing
    if traverse_or(dict(payload), ["status"], "") != TRANSACTION_SUCCESS_STATUS:
        return HandlerResponse(200, {"message": "OK"})
    try:
        order_number = _read_payload(payload, ["order_id"], int)
        transaction_number = _read_payload(payload, ["id"], int)
    except PathError as error:
        return _bad_request("Order or transaction ID not in request body", error)
    order_gid = make_shopify_gid("Order", order_number)
    transaction_gid = make_shopify_gid("OrderTransaction", transaction_number)
    return _respond(
        service,
        f"transaction {transaction_gid}",
        lambda: service.sync_transaction(order_gid, transaction_gid),
    )
