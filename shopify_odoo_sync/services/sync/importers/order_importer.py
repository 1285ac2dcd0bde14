import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ....helpers import (
    COMPANY_FM,
    COMPANY_QF,
    SHIPPING_SKU,
    TWOSHIP_SKU,
    CompensationError,
    ConfirmationError,
    PartialSyncError,
    RecordLookupError,
    SyncError,
    ValidationError,
    format_odoo_datetime,
    make_shopify_gid,
    shopify_gid_to_xid,
)
from ...odoo.client import OdooEnvironment
from ...odoo.domain import Command, RelationCommand
from ...shopify.models import Order, OrderTaxLine
from ..base import PARTNER_MODEL, ShopifyOdooImporter, SyncResult
from ..scheduling import compute_scheduled_date

_logger = logging.getLogger(__name__)

ORDER_MODEL = "sale.order"
ORDER_LINE_MODEL = "sale.order.line"
PRODUCT_MODEL = "product.product"
QF_ORDER_ATTRIBUTE = "FarMetOrderId"
CONFIRMATION_CONTEXT = {"followup_validation": False, "skip_preauth_payment": True}


@dataclass
class OrderLineDiff:
    to_update: dict[int, dict[str, Any]] = field(default_factory=dict)
    to_create: dict[str, dict[str, Any]] = field(default_factory=dict)
    to_delete: list[int] = field(default_factory=list)
    stale_xids: list[str] = field(default_factory=list)

    def commands(self) -> list[RelationCommand]:
        commands = [Command.update(line_id, values) for line_id, values in self.to_update.items()]
        commands.extend(Command.delete(line_id) for line_id in self.to_delete)
        return commands


def compute_line_diff(
    source_lines: Sequence[tuple[str, dict[str, Any]]],
    mapped_ids: Mapping[str, int],
    existing_line_ids: Sequence[int],
) -> OrderLineDiff:
    """Split source lines into updates and creates, and existing lines into deletes.

    A line whose xid points to a record that is not one of the order's current
    lines is created again; its xid is reported as stale.
    """
    diff = OrderLineDiff()
    existing = set(existing_line_ids)
    for xid, values in source_lines:
        line_id = mapped_ids.get(xid, 0)
        if line_id and line_id in existing:
            diff.to_update[line_id] = values
            continue
        if line_id:
            diff.stale_xids.append(xid)
        diff.to_create[xid] = values
    diff.to_delete = [line_id for line_id in existing_line_ids if line_id not in diff.to_update]
    return diff


def tax_name(tax_line: OrderTaxLine) -> str:
    return f"{tax_line.title} {tax_line.rate_percentage:.2f}%".replace(".00%", "%")


def order_company_id(order: Order) -> int:
    return COMPANY_QF if "QF" in order.name else COMPANY_FM


class OrderImporter(ShopifyOdooImporter):
    def import_one(self, shopify_gid: str) -> SyncResult:
        minimal = self.admin_api.order_minimal_by_id(shopify_gid)
        if not minimal.customer or not minimal.customer.id:
            raise ValidationError(f"order {shopify_gid} has no customer")

        customer_xid = shopify_gid_to_xid(minimal.customer.id)
        customer_id = self.env.external_ids.get_id(PARTNER_MODEL, customer_xid)
        if not customer_id:
            raise RecordLookupError(f"customer {customer_xid} not found in Odoo")

        qf_order_id = minimal.custom_attribute(QF_ORDER_ATTRIBUTE)
        if qf_order_id:
            order = self.admin_api.order_by_id(make_shopify_gid("Order", qf_order_id), shop="QF")
        else:
            order = self.admin_api.order_by_id(shopify_gid)

        self.prefetch_external_ids(order)
        return self.sync(order, customer_id)

    def prefetch_external_ids(self, order: Order) -> None:
        requests = [(ORDER_MODEL, shopify_gid_to_xid(order.id or ""))]
        requests.extend((ORDER_LINE_MODEL, shopify_gid_to_xid(line.id or "")) for line in order.lines.nodes())
        if order.shipping_line and order.shipping_line.id:
            requests.append((ORDER_LINE_MODEL, shopify_gid_to_xid(order.shipping_line.id)))
        shipping_address_gid = order.shipping_address.id if order.shipping_address else None
        if shipping_address_gid:
            requests.append((PARTNER_MODEL, shopify_gid_to_xid(shipping_address_gid)))
        if order.billing_address and order.billing_address.id and order.billing_address.id != shipping_address_gid:
            requests.append((PARTNER_MODEL, shopify_gid_to_xid(order.billing_address.id)))
        self.env.external_ids.prefetch(requests)

    def sync(self, order: Order, customer_id: int) -> SyncResult:
        order_xid = shopify_gid_to_xid(order.id or "")
        if order.created_at is None:
            raise ValidationError(f"order {order.id} has no creation date")
        company_id = order_company_id(order)
        # sale.order rows are only readable inside their own company
        env = self.env.with_context(allowed_company_ids=[company_id])
        existing = env.external_ids.read_record(ORDER_MODEL, order_xid, ["id"])
        order_id = int(existing["id"]) if existing else 0

        shipping_address_id = self._upsert_address(customer_id, order.shipping_address, "delivery")
        billing_address_id = shipping_address_id
        if order.billing_address and order.billing_address.id and order.billing_address.id != order.shipping_address.id:
            billing_address_id = self._upsert_address(customer_id, order.billing_address, "invoice")

        data = self.data

        header: dict[str, Any] = {
            "partner_id": customer_id,
            "partner_invoice_id": billing_address_id,
            "partner_shipping_id": shipping_address_id,
            "origin": order.name,
            "date_order": format_odoo_datetime(order.created_at),
            "company_id": company_id,
            "customer_delivery_instructions": (order.delivery_instructions.value or "") if order.delivery_instructions else "",
            "client_order_ref": (order.purchase_order.value or "") if order.purchase_order else "",
            "recompute_delivery_price": False,
            "amount_delivery": 0,
            "no_handling_fee_reason": "Shopify",
        }
        if data.sources.shopify:
            header["source_id"] = data.sources.shopify

        shipping_line = order.shipping_line if order.shipping_line and order.shipping_line.id else None
        shipping_sku = SHIPPING_SKU
        if shipping_line and "2ship" in (shipping_line.source or "").lower():
            shipping_sku = TWOSHIP_SKU
        ids_by_sku = self._product_ids_by_sku(env, order, shipping_sku)

        source_lines: list[tuple[str, dict[str, Any]]] = []
        sequence = 1
        for line in order.lines.nodes():
            line_xid = shopify_gid_to_xid(line.id or "")
            source_lines.append(
                (
                    line_xid,
                    {
                        "product_id": ids_by_sku[line.sku or ""],
                        "name": line.name,
                        "product_uom_qty": line.quantity,
                        "price_unit": line.unit_price.amount,
                        "sequence": sequence,
                        "tax_id": [Command.set(self._tax_ids(env, line.tax_lines, company_id))],
                    },
                )
            )
            sequence += 1

        if shipping_line:
            carrier_name = shipping_line.title
            delivery_type = "base_on_rule"
            carrier_product_id = data.delivery_products.webship
            if shipping_sku == TWOSHIP_SKU:
                carrier_name = "2Ship"
                delivery_type = "twoship"
                carrier_product_id = data.delivery_products.twoship
                instructions = f"{header['customer_delivery_instructions']}\n{shipping_line.title}"
                header["customer_delivery_instructions"] = instructions.strip(" \n")
            header["carrier_id"] = self.master_data.get_delivery_carrier(env, carrier_name, delivery_type, carrier_product_id)
            header["amount_delivery"] = shipping_line.price.amount
            source_lines.append(
                (
                    shopify_gid_to_xid(shipping_line.id or ""),
                    {
                        "product_id": carrier_product_id,
                        "name": shipping_line.title,
                        "product_uom_qty": 1,
                        "price_unit": shipping_line.price.amount,
                        "is_delivery": True,
                        "sequence": sequence,
                        "tax_id": [Command.set(self._tax_ids(env, shipping_line.tax_lines, company_id))],
                    },
                )
            )

        existing_line_ids = env.search_ids(ORDER_LINE_MODEL, [("order_id", "=", order_id)]) if order_id else []
        mapped_ids = {xid: env.external_ids.get_id(ORDER_LINE_MODEL, xid) for xid, _values in source_lines}
        diff = compute_line_diff(source_lines, mapped_ids, existing_line_ids)
        for stale_xid in diff.stale_xids:
            env.external_ids.invalidate(ORDER_LINE_MODEL, stale_xid)
        header["order_line"] = diff.commands()

        is_new = not order_id
        if is_new:
            try:
                header["commitment_date"] = format_odoo_datetime(
                    compute_scheduled_date(order.created_at, company_id, order.shipping_address)
                )
            except ValidationError as error:
                _logger.warning(f"No commitment date for {order_xid}: {error}")
            order_id = env.create(ORDER_MODEL, header, xid=order_xid)
        else:
            env.write(ORDER_MODEL, order_id, header)

        created_line_xids = self._create_lines(env, order_id, order_xid, diff, is_new)
        if is_new:
            self._confirm(env, order_id, order_xid, created_line_xids)
        return SyncResult(order_id, is_new)

    def _product_ids_by_sku(self, env: OdooEnvironment, order: Order, shipping_sku: str) -> dict[str, int]:
        skus = sorted({line.sku or "" for line in order.lines.nodes()} | {shipping_sku})
        products = env.search_read(
            PRODUCT_MODEL,
            [("default_code", "in", skus)],
            ["id", "default_code"],
            context={"active_test": False},
        )
        ids_by_sku = {product["default_code"]: int(product["id"]) for product in products}
        missing = [sku for sku in skus if sku not in ids_by_sku]
        if missing or len(products) != len(skus):
            raise RecordLookupError(f"not all order products were found in Odoo: {skus} (missing {missing})")
        return ids_by_sku

    def _tax_ids(self, env: OdooEnvironment, tax_lines: Sequence[OrderTaxLine], company_id: int) -> list[int]:
        tax_ids: list[int] = []
        for tax_line in tax_lines:
            name = tax_name(tax_line)
            tax_id = self.master_data.get_tax(env, name, tax_line.rate_percentage, company_id)
            if not tax_id:
                raise RecordLookupError(f"tax {name} not found for company {company_id}")
            tax_ids.append(tax_id)
        return tax_ids

    def _create_lines(self, env: OdooEnvironment, order_id: int, order_xid: str, diff: OrderLineDiff, is_new: bool) -> list[str]:
        created: list[str] = []
        errors: list[Exception] = []
        for line_xid, values in diff.to_create.items():
            try:
                env.create(ORDER_LINE_MODEL, {**values, "order_id": order_id}, xid=line_xid)
            except SyncError as error:
                _logger.warning(f"Creating line {line_xid} for order {order_xid} failed: {error}")
                errors.append(error)
            else:
                created.append(line_xid)
        if not errors:
            return created

        partial_error = PartialSyncError(
            f"error syncing lines for order {order_xid} in Odoo",
            record_id=order_id,
            errors=errors,
            rolled_back=is_new,
        )
        if is_new:
            self._rollback_new_order(env, order_id, order_xid, created, partial_error)
        raise partial_error

    def _confirm(self, env: OdooEnvironment, order_id: int, order_xid: str, created_line_xids: list[str]) -> None:
        try:
            env.execute_kw(ORDER_MODEL, "action_confirm", [[order_id]], {"context": CONFIRMATION_CONTEXT})
            state = env.read_by_id(ORDER_MODEL, order_id, ["state"]).get("state")
        except SyncError as error:
            confirmation_error = ConfirmationError(f"error confirming the order {order_xid} in Odoo: {error}")
            self._rollback_new_order(env, order_id, order_xid, created_line_xids, confirmation_error)
            raise confirmation_error from error
        if state != "sale":
            confirmation_error = ConfirmationError(f"could not validate order confirmation {order_xid} in Odoo, expected sale, got {state}")
            self._rollback_new_order(env, order_id, order_xid, created_line_xids, confirmation_error)
            raise confirmation_error
        _logger.info(f"Confirmed order {order_xid} ({order_id})")

    def _rollback_new_order(
        self,
        env: OdooEnvironment,
        order_id: int,
        order_xid: str,
        line_xids: Sequence[str],
        error: SyncError,
    ) -> None:
        _logger.warning(f"Deleting new order {order_xid} ({order_id}) after a failed sync")
        try:
            env.unlink(ORDER_MODEL, order_id)
        except SyncError as compensation_error:
            raise CompensationError(
                f"could not delete order {order_xid} ({order_id}) after a failed sync",
                original=error,
                compensation=compensation_error,
            ) from error
        env.external_ids.mark_absent(ORDER_MODEL, order_xid)
        for line_xid in line_xids:
            env.external_ids.mark_absent(ORDER_LINE_MODEL, line_xid)
