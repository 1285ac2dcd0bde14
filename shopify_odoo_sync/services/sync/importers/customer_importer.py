import logging
from collections.abc import Callable
from typing import Any

from ....helpers import (
    RecordLookupError,
    ValidationError,
    shopify_gid_number,
    shopify_gid_to_xid,
)
from ...odoo.domain import Command
from ...shopify.models import Address, Customer
from ..base import PARTNER_MODEL, ShopifyOdooImporter, SyncResult

_logger = logging.getLogger(__name__)

CUSTOMER_REF_PREFIX = "SHCU"


class CustomerImporter(ShopifyOdooImporter):
    """Individual customers and company contacts become ``res.partner`` records."""

    def import_one(self, shopify_gid: str) -> SyncResult:
        customer = self.admin_api.customer_by_id(shopify_gid)
        if customer.company_contacts:
            return self.import_company_contact(customer)
        return self.import_individual(customer)

    def customer_values(self, customer: Customer, address: Address | None) -> dict[str, Any]:
        phone = customer.phone
        return self._address_values(
            address,
            {
                "ref": CUSTOMER_REF_PREFIX + shopify_gid_number(customer.id or ""),
                "name": customer.display_name or "",
                "phone": phone,
                "mobile": phone,
                "email": customer.email,
                "active": True,
                "is_company": False,
                "is_customer": True,
                "company_id": False,
            },
        )

    def import_company_contact(self, customer: Customer) -> SyncResult:
        contact = customer.company_contacts[0]
        company_gid = contact.company.id if contact.company else None
        if not company_gid:
            raise ValidationError(f"company contact for {customer.id} has no company")

        company_xid = shopify_gid_to_xid(company_gid)
        company_id = self.env.external_ids.get_id(PARTNER_MODEL, company_xid)
        if not company_id:
            raise RecordLookupError(f"company not found in Odoo (XID={company_xid})")
        _logger.debug(f"Customer {customer.id} is a contact of company {company_xid} ({company_id})")

        company = self.admin_api.company_by_id(company_gid)
        if not len(company.locations):
            raise ValidationError(f"no locations found for company {company_gid}")
        location = company.locations.get(0)

        if location.billing_address and location.billing_address.id:
            address = location.billing_address
        elif location.shipping_address and location.shipping_address.id:
            address = location.shipping_address
        else:
            raise ValidationError(f"no location address found for company {company_gid}")

        extra: dict[str, Any] = {
            "parent_id": company_id,
            "type": "contact",
            "function": contact.title or "",
        }
        wholesale_role = self.data.partner_roles.wholesale
        if wholesale_role:
            role_command = Command.link(wholesale_role) if contact.is_main_contact else Command.unlink(wholesale_role)
            extra["contact_role_code_ids"] = [role_command]

        return self._upsert_customer(customer, address, extra)

    def import_individual(self, customer: Customer) -> SyncResult:
        return self._upsert_customer(customer, customer.default_address, None, self._individual_create_values)

    def _individual_create_values(self) -> dict[str, Any]:
        data = self.data
        values: dict[str, Any] = {}
        if data.customer_types.individual:
            values["customer_type_id"] = data.customer_types.individual
        if data.payment_methods.shopify:
            values["customer_payment_method_id"] = data.payment_methods.shopify
        if data.sales_teams.consumer.id:
            values["team_id"] = data.sales_teams.consumer.id
        if data.sales_teams.consumer.user_id:
            values["user_id"] = data.sales_teams.consumer.user_id
        if data.websites.qualifirst:
            values["website_id"] = data.websites.qualifirst
        if data.pricelists.qualizon:
            values["qf_pricelist_id"] = data.pricelists.qualizon
            values["fm_pricelist_id"] = data.pricelists.qualizon
        if data.sources.shopify:
            values["source_id"] = data.sources.shopify
        return values

    def _upsert_customer(
        self,
        customer: Customer,
        address: Address | None,
        extra: dict[str, Any] | None,
        create_values: Callable[[], dict[str, Any]] | None = None,
    ) -> SyncResult:
        xid = shopify_gid_to_xid(customer.id or "")
        values = self.customer_values(customer, address)
        values.update(extra or {})
        validate_partner_values(values)

        existing = self.env.external_ids.read_record(PARTNER_MODEL, xid, ["id"])
        if existing:
            partner_id = int(existing["id"])
            self.env.write(PARTNER_MODEL, partner_id, values)
            return SyncResult(partner_id, False)

        if create_values is not None:
            values.update(create_values())
        partner_id = self.env.create(PARTNER_MODEL, values, xid=xid)
        return SyncResult(partner_id, True)


def validate_partner_values(values: dict[str, Any]) -> None:
    name = values.get("name")
    email = values.get("email")
    if not name or not email or name == email or not values.get("country_id"):
        raise ValidationError("missing information to process customer: name, email, and country are required")
