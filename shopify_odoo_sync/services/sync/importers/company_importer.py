import logging
from typing import Any

from ....helpers import ValidationError, shopify_gid_number, shopify_gid_to_xid
from ...shopify.models import Company
from ..base import PARTNER_MODEL, ShopifyOdooImporter, SyncResult

_logger = logging.getLogger(__name__)

COMPANY_REF_PREFIX = "SHCC"


class CompanyImporter(ShopifyOdooImporter):
    def import_one(self, shopify_gid: str) -> SyncResult:
        company = self.admin_api.company_by_id(shopify_gid)
        return self.import_company(company)

    def import_company(self, company: Company) -> SyncResult:
        company_gid = company.id or ""
        xid = shopify_gid_to_xid(company_gid)
        if not company.name:
            raise ValidationError(f"company {company_gid} has no name")
        if not len(company.locations):
            raise ValidationError(f"no locations found for company {company_gid}")
        location = company.locations.get(0)

        if location.billing_address and location.billing_address.id:
            address = location.billing_address
        elif location.shipping_address and location.shipping_address.id:
            address = location.shipping_address
        else:
            raise ValidationError(f"no location address found for company {company_gid}")

        country_id, state_id = self.master_data.get_country_and_state_ids(self.env, address.country_code(), address.province_code())
        if not country_id or not state_id:
            raise ValidationError(
                f"location address with invalid country or state for company {company_gid} ({country_id}, {state_id})"
            )

        values: dict[str, Any] = {
            "ref": COMPANY_REF_PREFIX + shopify_gid_number(company_gid),
            "name": company.name,
            "phone": location.phone or "",
            "mobile": location.phone or "",
            "email": "",
            "active": True,
            "is_company": True,
            "is_customer": True,
            "company_id": False,
            "website_id": False,
            "street": address.address1 or "",
            "street2": address.address2 or "",
            "city": address.city or "",
            "state_id": state_id,
            "country_id": country_id,
            "zip": address.zip or "",
        }

        existing = self.env.external_ids.read_record(PARTNER_MODEL, xid, ["id"])
        if existing:
            partner_id = int(existing["id"])
            _logger.debug(f"Updating company {xid} ({partner_id})")
            self.env.write(PARTNER_MODEL, partner_id, values)
            return SyncResult(partner_id, False)

        values.update(self._create_values())
        partner_id = self.env.create(PARTNER_MODEL, values, xid=xid)
        return SyncResult(partner_id, True)

    def _create_values(self) -> dict[str, Any]:
        data = self.data
        values: dict[str, Any] = {}
        if data.customer_types.business:
            values["customer_type_id"] = data.customer_types.business
        if data.payment_methods.shopify:
            values["customer_payment_method_id"] = data.payment_methods.shopify
        if data.sales_teams.leads.id:
            values["team_id"] = data.sales_teams.leads.id
        if data.sales_teams.leads.user_id:
            values["user_id"] = data.sales_teams.leads.user_id
        if data.websites.qualifirst:
            values["website_id"] = data.websites.qualifirst
        if data.pricelists.qf_wholesale:
            values["qf_pricelist_id"] = data.pricelists.qf_wholesale
        if data.pricelists.fm_wholesale:
            values["fm_pricelist_id"] = data.pricelists.fm_wholesale
        if data.sources.shopify:
            values["source_id"] = data.sources.shopify
        return values
