import logging
from enum import StrEnum
from typing import Any

from ....helpers import (
    RecordLookupError,
    format_odoo_datetime,
    shopify_gid_number,
    shopify_gid_to_xid,
    traverse_or,
    utc_now,
)
from ...odoo.domain import Command
from ...shopify.models import Order, OrderParentTransaction
from ..base import ShopifyOdooImporter, SyncResult
from .order_importer import order_company_id

_logger = logging.getLogger(__name__)

TRANSACTION_MODEL = "payment.transaction"
ORDER_MODEL = "sale.order"
TRANSACTION_CURRENCY = "CAD"
SUCCESS_STATUS = "SUCCESS"

IGNORED = SyncResult(0, False)


class TransactionKind(StrEnum):
    AUTHORIZATION = "AUTHORIZATION"
    CAPTURE = "CAPTURE"
    SALE = "SALE"
    VOID = "VOID"


class TransactionState(StrEnum):
    AUTHORIZED = "authorized"
    DONE = "done"
    CANCEL = "cancel"


class TransactionImporter(ShopifyOdooImporter):
    """Mirrors successful Shopify payment transactions as ``payment.transaction`` records.

    Only transactions still ``authorized`` in Odoo are updated; anything past
    that state has been handled by Odoo and is left alone.
    """

    def import_one(self, order_gid: str, transaction_gid: str) -> SyncResult:
        order = self.admin_api.order_with_transactions_by_id(order_gid)
        transaction = order.transaction(transaction_gid)
        if transaction is None:
            raise RecordLookupError(f"transaction {transaction_gid} not found for order {order_gid} in Shopify")

        if transaction.status != SUCCESS_STATUS:
            _logger.info(f"Skipping transaction {transaction_gid} with status {transaction.status}")
            return IGNORED

        match transaction.kind:
            case TransactionKind.AUTHORIZATION:
                return self.sync(order, transaction, TransactionState.AUTHORIZED)
            case TransactionKind.CAPTURE:
                result = self.sync(order, transaction, TransactionState.DONE)
                if transaction.parent_transaction and transaction.parent_transaction.id:
                    self.sync(order, transaction.parent_transaction, TransactionState.AUTHORIZED)
                return result
            case TransactionKind.SALE:
                return self.sync(order, transaction, TransactionState.DONE)
            case TransactionKind.VOID:
                if transaction.parent_transaction and transaction.parent_transaction.id:
                    return self.sync(order, transaction.parent_transaction, TransactionState.CANCEL)
                return IGNORED

        _logger.info(f"Ignoring unsupported transaction kind {transaction.kind} for {transaction_gid}")
        return IGNORED

    def sync(self, order: Order, transaction: OrderParentTransaction, state: TransactionState) -> SyncResult:
        transaction_gid = transaction.id or ""
        transaction_xid = shopify_gid_to_xid(transaction_gid)
        # both records live in the company that owns the order
        env = self.env.with_context(allowed_company_ids=[order_company_id(order)])
        existing = env.external_ids.read_record(TRANSACTION_MODEL, transaction_xid, ["id", "state"])
        transaction_id = traverse_or(existing, ["id"], 0)
        current_state = traverse_or(existing, ["state"], "")
        if transaction_id and not current_state:
            raise RecordLookupError(f"incorrect data from transaction {transaction_xid} in Odoo (id: {transaction_id})")
        if transaction_id and current_state != TransactionState.AUTHORIZED:
            return SyncResult(transaction_id, False)

        order_xid = shopify_gid_to_xid(order.id or "")
        order_record = env.external_ids.read_record(ORDER_MODEL, order_xid, ["id", "company_id", "commercial_partner_id", "name"])
        order_id = traverse_or(order_record, ["id"], 0)
        company_id = traverse_or(order_record, ["company_id", 0], 0)
        partner_id = traverse_or(order_record, ["commercial_partner_id", 0], 0)
        order_name = traverse_or(order_record, ["name"], "")
        if not (order_id and company_id and partner_id and order_name):
            raise RecordLookupError(
                f"incorrect data from order {order_xid} in Odoo (id: {order_id}, company_id: {company_id}, "
                f"commercial_partner_id: {partner_id}, name: {order_name})"
            )

        env = env.with_context(allowed_company_ids=[company_id])
        currency_id = env.search_id("res.currency", [("name", "=", TRANSACTION_CURRENCY)])
        acquirer_id = env.search_first_id("payment.acquirer", [("company_id", "=", company_id), ("name", "=ilike", "shopify")])
        if not acquirer_id:
            raise RecordLookupError(f"Shopify payment acquirer not found in Odoo for company {company_id}")

        amount = transaction.amount if state == TransactionState.DONE else transaction.unsettled_amount
        transaction_number = shopify_gid_number(transaction_gid)
        values: dict[str, Any] = {
            "reference": f"{order_name}-{transaction_number}",
            "sale_order_ids": [Command.set([order_id])],
            "acquirer_id": acquirer_id,
            "currency_id": currency_id,
            "amount": amount,
            "partner_id": partner_id,
            "acquirer_reference": transaction_number,
            "state": str(state),
            "last_state_change": format_odoo_datetime(utc_now()),
        }
        if not amount or state == TransactionState.CANCEL:
            values["state"] = str(TransactionState.CANCEL)

        if transaction_id:
            env.write(TRANSACTION_MODEL, transaction_id, values)
            return SyncResult(transaction_id, False)
        transaction_id = env.create(TRANSACTION_MODEL, values, xid=transaction_xid)
        return SyncResult(transaction_id, True)
