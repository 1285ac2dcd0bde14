from shopify_odoo_sync.helpers import RecordLookupError, ValidationError

from ..common_imports import INTEGRATION_TAGS, tagged
from ..fixtures.base import IntegrationTestCase
from ..fixtures.factories import (
    create_company_address_response,
    create_company_contact_response,
    create_company_location_response,
    create_company_response,
    create_customer_response,
    create_mailing_address_response,
)

CUSTOMER_GID = "gid://shopify/Customer/5001"
CUSTOMER_XID = "__export__.shopify_customer_5001"
COMPANY_GID = "gid://shopify/Company/3001"
COMPANY_XID = "__export__.shopify_company_3001"


@tagged(*INTEGRATION_TAGS)
class TestCustomerSync(IntegrationTestCase):
    def test_individual_customer(self) -> None:
        self.shopify.register(create_customer_response())

        result = self.service.sync_customer(CUSTOMER_GID)

        self.assertTrue(result.is_new)
        self.assertEqual(self.odoo.xid_target(CUSTOMER_XID), result.record_id)
        partner = self.odoo.get("res.partner", result.record_id)
        self.assertEqual(partner["ref"], "SHCU5001")
        self.assertEqual((partner["name"], partner["email"]), ("Jane Doe", "jane.doe@example.com"))
        self.assertEqual((partner["city"], partner["country_id"], partner["state_id"]), ("Toronto", 38, 533))
        self.assertEqual((partner["team_id"], partner["user_id"], partner["customer_type_id"]), (91, 92, 31))
        self.assertEqual((partner["qf_pricelist_id"], partner["fm_pricelist_id"]), (51, 51))
        self.assertFalse(partner["is_company"])

    def test_existing_customer_keeps_create_only_values(self) -> None:
        self.shopify.register(create_customer_response())
        partner_id = self.service.sync_customer(CUSTOMER_GID).record_id
        self.odoo.records["res.partner"][partner_id]["team_id"] = 99
        self.shopify.register(create_customer_response(display_name="Jane Smith"))

        result = self.service.sync_customer(CUSTOMER_GID)

        self.assertEqual(result.record_id, partner_id)
        self.assertFalse(result.is_new)
        partner = self.odoo.get("res.partner", partner_id)
        self.assertEqual((partner["name"], partner["team_id"]), ("Jane Smith", 99))
        self.assertEqual(self.odoo.count("res.partner", "create"), 1)

    def test_name_must_differ_from_email(self) -> None:
        self.shopify.register(create_customer_response(display_name="jane.doe@example.com"))
        with self.assertRaises(ValidationError):
            self.service.sync_customer(CUSTOMER_GID)
        self.assertEqual(self.odoo.calls, [])

    def test_country_is_required(self) -> None:
        address = create_mailing_address_response(country_code=None, province_code=None)
        self.shopify.register(create_customer_response(default_address=address))
        with self.assertRaises(ValidationError):
            self.service.sync_customer(CUSTOMER_GID)
        self.assertEqual(self.odoo.count(method="create"), 0)
        self.assertEqual(self.odoo.count(method="write"), 0)

    def test_deleted_customer_is_recreated(self) -> None:
        self.shopify.register(create_customer_response())
        old_id = self.service.sync_customer(CUSTOMER_GID).record_id
        del self.odoo.records["res.partner"][old_id]

        result = self.service.sync_customer(CUSTOMER_GID)

        self.assertTrue(result.is_new)
        self.assertEqual(self.odoo.xid_target(CUSTOMER_XID), result.record_id)

    def test_company_contact(self) -> None:
        company_id = self.seed_partner(COMPANY_XID, is_company=True)
        contact = create_company_contact_response(is_main_contact=True)
        self.shopify.register(create_customer_response(company_contacts=[contact]))
        self.shopify.register(create_company_response())

        result = self.service.sync_customer(CUSTOMER_GID)

        partner = self.odoo.get("res.partner", result.record_id)
        self.assertEqual((partner["parent_id"], partner["type"], partner["function"]), (company_id, "contact", "Buyer"))
        self.assertEqual(partner["contact_role_code_ids"], [[4, 21, 0]])
        self.assertEqual((partner["city"], partner["state_id"]), ("Vancouver", 534))
        self.assertNotIn("team_id", partner)

    def test_company_contact_falls_back_to_shipping_address(self) -> None:
        self.seed_partner(COMPANY_XID, is_company=True)
        shipping_address = create_company_address_response(gid="gid://shopify/CompanyAddress/2002", city="Burnaby")
        location = create_company_location_response(shipping_address=shipping_address)
        self.shopify.register(create_customer_response(company_contacts=[create_company_contact_response()]))
        self.shopify.register(create_company_response(locations=[location]))

        result = self.service.sync_customer(CUSTOMER_GID)

        partner = self.odoo.get("res.partner", result.record_id)
        self.assertEqual(partner["city"], "Burnaby")
        self.assertEqual(partner["contact_role_code_ids"], [[3, 21, 0]])

    def test_company_contact_requires_mapped_company(self) -> None:
        self.shopify.register(create_customer_response(company_contacts=[create_company_contact_response()]))
        with self.assertRaisesRegex(RecordLookupError, COMPANY_XID):
            self.service.sync_customer(CUSTOMER_GID)
        self.assertEqual(self.odoo.count(method="create"), 0)


@tagged(*INTEGRATION_TAGS)
class TestCompanySync(IntegrationTestCase):
    def test_new_company(self) -> None:
        self.shopify.register(create_company_response())

        result = self.service.sync_company(COMPANY_GID)

        self.assertTrue(result.is_new)
        self.assertEqual(self.odoo.xid_target(COMPANY_XID), result.record_id)
        partner = self.odoo.get("res.partner", result.record_id)
        self.assertEqual((partner["ref"], partner["name"], partner["is_company"]), ("SHCC3001", "Harbour Foods", True))
        self.assertEqual((partner["country_id"], partner["state_id"], partner["city"]), (38, 534, "Vancouver"))
        self.assertEqual((partner["team_id"], partner["customer_type_id"]), (93, 32))
        self.assertEqual((partner["qf_pricelist_id"], partner["fm_pricelist_id"]), (52, 53))
        self.assertEqual(partner["website_id"], 1)

    def test_existing_company_is_updated(self) -> None:
        self.shopify.register(create_company_response())
        partner_id = self.service.sync_company(COMPANY_GID).record_id
        self.shopify.register(create_company_response(name="Harbour Foods Ltd"))

        result = self.service.sync_company(COMPANY_GID)

        self.assertEqual(result.record_id, partner_id)
        self.assertFalse(result.is_new)
        partner = self.odoo.get("res.partner", partner_id)
        self.assertEqual(partner["name"], "Harbour Foods Ltd")
        self.assertFalse(partner["website_id"])

    def test_state_is_required(self) -> None:
        address = create_company_address_response(zone_code="ZZ")
        location = create_company_location_response(billing_address=address)
        self.shopify.register(create_company_response(locations=[location]))
        with self.assertRaisesRegex(ValidationError, "invalid country or state"):
            self.service.sync_company(COMPANY_GID)
        self.assertEqual(self.odoo.count(method="create"), 0)

    def test_company_without_locations(self) -> None:
        self.shopify.register(create_company_response(locations=[]))
        with self.assertRaisesRegex(ValidationError, "no locations"):
            self.service.sync_company(COMPANY_GID)
