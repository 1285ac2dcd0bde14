import logging
from typing import Any, Literal, NamedTuple

from ...helpers import ValidationError, shopify_gid_to_xid
from ..odoo.client import OdooEnvironment
from ..odoo.master_data import MasterData, MasterDataManager
from ..shopify.client import AdminApiClient
from ..shopify.models import Address

_logger = logging.getLogger(__name__)

AddressType = Literal["delivery", "invoice"]

PARTNER_MODEL = "res.partner"


class SyncResult(NamedTuple):
    record_id: int
    is_new: bool


class ShopifyOdooImporter:
    def __init__(self, env: OdooEnvironment, master_data: MasterDataManager, admin_api: AdminApiClient) -> None:
        self.env = env
        self.master_data = master_data
        self.admin_api = admin_api

    @property
    def data(self) -> MasterData:
        return self.master_data.data

    def _address_values(self, address: Address | None, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if address is not None and address.id:
            values.update(
                {
                    "name": address.name or "",
                    "street": address.address1 or "",
                    "street2": address.address2 or "",
                    "city": address.city or "",
                    "zip": address.zip or "",
                    "phone": address.phone or "",
                    "mobile": address.phone or "",
                }
            )
            country_id, state_id = self.master_data.get_country_and_state_ids(
                self.env, address.country_code(), address.province_code()
            )
            if country_id:
                values["country_id"] = country_id
            if state_id:
                values["state_id"] = state_id
        if extra:
            values.update(extra)
        return values

    def _upsert_address(self, parent_id: int, address: Address | None, address_type: AddressType) -> int:
        if address is None or not address.id:
            raise ValidationError(f"missing {address_type} address for partner {parent_id}")
        xid = shopify_gid_to_xid(address.id)
        values = self._address_values(address, {"parent_id": parent_id, "type": address_type})
        address_id = self.env.external_ids.get_id(PARTNER_MODEL, xid)
        if address_id:
            _logger.debug(f"Updating {address_type} address {xid} ({address_id})")
            self.env.write(PARTNER_MODEL, address_id, values)
            return address_id
        return self.env.create(PARTNER_MODEL, values, xid=xid)
