import httpx

from shopify_odoo_sync.cache import RequestCache
from shopify_odoo_sync.helpers import COMPANY_FM, COMPANY_QF, MasterDataError, ValidationError
from shopify_odoo_sync.services.odoo.client import OdooClient, OdooEnvironment
from shopify_odoo_sync.services.odoo.master_data import MasterDataManager

from ..common_imports import UNIT_TAGS, tagged
from ..fixtures.base import FakeOdoo, UnitTestCase, json_response, make_settings
from ..fixtures.factories import create_master_data_response


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@tagged(*UNIT_TAGS)
class TestMasterDataLoading(UnitTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []
        self.clock = FakeClock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return json_response(create_master_data_response())

    def build_manager(self) -> MasterDataManager:
        return MasterDataManager(self.settings, self.mock_transport_client(self.handler), clock=self.clock)

    def test_loads_once(self) -> None:
        manager = self.build_manager()
        first = manager.load()
        second = manager.load()
        self.assertIs(first, second)
        self.assertEqual(len(self.requests), 1)
        self.assertEqual(first.delivery_products.webship, 501)
        self.assertEqual(first.websites.qualifirst, 1)
        self.assertEqual(first.payment_acquirers.fm.shopify, 82)

    def test_request_headers(self) -> None:
        self.build_manager().load()
        request = self.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(str(request.url), "https://odoo.test/website/action/shopify-master-data")
        self.assertEqual(request.headers["Odoo-Access-Key"], "access-key")
        self.assertEqual(request.headers["Cloudflare-Bypass-WAF"], "bypass")

    def test_data_before_load(self) -> None:
        with self.assertRaises(MasterDataError):
            _ = self.build_manager().data

    def test_failures_are_remembered_until_cooldown(self) -> None:
        self.responses.append(httpx.Response(500, text="server error"))
        manager = self.build_manager()

        with self.assertRaises(MasterDataError) as caught:
            manager.load()
        self.assertEqual(caught.exception.status_code, 500)

        self.clock.now += 5
        with self.assertRaises(MasterDataError):
            manager.load()
        self.assertEqual(len(self.requests), 1)

        self.clock.now += 6
        self.assertEqual(manager.load().sources.shopify, 11)
        self.assertEqual(len(self.requests), 2)

    def test_invalid_payload(self) -> None:
        self.responses.append(httpx.Response(200, text='{"countries": "not a map"}'))
        with self.assertRaisesRegex(MasterDataError, "error decoding result"):
            self.build_manager().load()

    def test_missing_access_key(self) -> None:
        manager = MasterDataManager(make_settings(ODOO_ACCESS_KEY=None), self.mock_transport_client(self.handler))
        with self.assertRaisesRegex(MasterDataError, "ODOO_ACCESS_KEY"):
            manager.load()
        self.assertEqual(self.requests, [])

    def test_taxes_for_company(self) -> None:
        data = self.build_manager().load()
        self.assertEqual([tax.id for tax in data.taxes_for_company(COMPANY_QF)], [41])
        self.assertEqual([tax.id for tax in data.taxes_for_company(COMPANY_FM)], [42])
        with self.assertRaises(ValidationError):
            data.taxes_for_company(1)


@tagged(*UNIT_TAGS)
class TestMasterDataLookups(UnitTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.odoo = FakeOdoo()
        self.env = OdooEnvironment(OdooClient(self.settings, self.odoo.client()), RequestCache())
        master_data_client = self.mock_transport_client(lambda _request: json_response(create_master_data_response()))
        self.manager = MasterDataManager(self.settings, master_data_client)
        self.manager.load()

    def test_country_and_state_from_snapshot(self) -> None:
        self.assertEqual(self.manager.get_country_and_state_ids(self.env, "CA", "ON"), (38, 533))
        self.assertEqual(self.manager.get_country_and_state_ids(self.env, "CA", "ZZ"), (38, 0))
        self.assertEqual(self.odoo.calls, [])

    def test_country_and_state_fallback_is_cached(self) -> None:
        country_id = self.odoo.seed("res.country", {"code": "US"})
        state_id = self.odoo.seed("res.country.state", {"code": "NY", "country_id": country_id})

        self.assertEqual(self.manager.get_country_and_state_ids(self.env, "US", "NY"), (country_id, state_id))
        self.assertEqual(self.manager.get_country_and_state_ids(self.env, "US", "NY"), (country_id, state_id))
        self.assertEqual(self.odoo.count(method="search_read"), 2)

    def test_unknown_country(self) -> None:
        self.assertEqual(self.manager.get_country_and_state_ids(self.env, "XX", "YY"), (0, 0))

    def test_tax_from_snapshot(self) -> None:
        self.assertEqual(self.manager.get_tax(self.env, "HST 13%", 13.0, COMPANY_FM), 42)
        self.assertEqual(self.odoo.calls, [])

    def test_tax_created_when_missing(self) -> None:
        tax_id = self.manager.get_tax(self.env, "GST 5%", 5.0, COMPANY_FM)
        self.assertEqual(self.manager.get_tax(self.env, "GST 5%", 5.0, COMPANY_FM), tax_id)
        tax = self.odoo.get("account.tax", tax_id)
        self.assertEqual((tax["amount_type"], tax["type_tax_use"], tax["company_id"]), ("percent", "sale", COMPANY_FM))
        self.assertEqual(self.odoo.count("account.tax", "create"), 1)
        self.assertEqual(self.odoo.count("account.tax", "search_read"), 1)

    def test_existing_tax_is_reused(self) -> None:
        existing_id = self.odoo.seed(
            "account.tax",
            {
                "name": "gst 5%",
                "description": "GST 5%",
                "amount_type": "percent",
                "type_tax_use": "sale",
                "amount": 5.0,
                "company_id": COMPANY_FM,
            },
        )
        self.assertEqual(self.manager.get_tax(self.env, "GST 5%", 5.0, COMPANY_FM), existing_id)
        self.assertEqual(self.odoo.count("account.tax", "create"), 0)

    def test_delivery_carrier(self) -> None:
        self.assertEqual(self.manager.get_delivery_carrier(self.env, "Standard Shipping", "base_on_rule", 501), 61)
        carrier_id = self.manager.get_delivery_carrier(self.env, "2Ship", "twoship", 502)
        carrier = self.odoo.get("delivery.carrier", carrier_id)
        self.assertEqual((carrier["name"], carrier["company_id"], carrier["integration_level"]), ("2Ship", False, "rate"))
