import json

import httpx

from shopify_odoo_sync.helpers import ConfigurationError, ShopifyApiError
from shopify_odoo_sync.services.shopify import queries
from shopify_odoo_sync.services.shopify.client import AdminApiClient
from shopify_odoo_sync.services.shopify.models import Company, Customer, Order

from ..common_imports import UNIT_TAGS, Decimal, patch, tagged
from ..fixtures.base import UnitTestCase, json_response, make_settings
from ..fixtures.factories import (
    create_company_response,
    create_customer_response,
    create_order_response,
    create_shipping_line_response,
    create_transaction_response,
)


@tagged(*UNIT_TAGS)
class TestAdminApiClient(UnitTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []
        self.client = AdminApiClient(self.settings, self.mock_transport_client(self.handler))
        sleep_patcher = patch("shopify_odoo_sync.services.shopify.client.sleep")
        self.mock_sleep = sleep_patcher.start()
        self.addCleanup(sleep_patcher.stop)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def test_request_shape(self) -> None:
        self.responses.append(json_response({"data": {"customer": create_customer_response()}}))
        customer = self.client.customer_by_id("gid://shopify/Customer/5001", shop="QF")

        self.assertEqual(customer.email, "jane.doe@example.com")
        request = self.requests[0]
        self.assertEqual(str(request.url), "https://qf.myshopify.com/admin/api/2025-04/graphql.json")
        self.assertEqual(request.headers["X-Shopify-Access-Token"], "qf-token")
        body = json.loads(request.content)
        self.assertEqual(body["variables"], {"id": "gid://shopify/Customer/5001"})
        self.assertEqual(body["query"], queries.CUSTOMER.query)

    def test_error_reasons(self) -> None:
        cases = [
            ("status", httpx.Response(403, text="forbidden")),
            ("decode", httpx.Response(200, text="not json")),
            ("decode", json_response(["a list"])),
            ("errors", json_response({"errors": [{"message": "Throttled"}]})),
            ("missing_data", json_response({"extensions": {}})),
            ("missing_result", json_response({"data": {}})),
            ("null_result", json_response({"data": {"order": None}})),
            ("decode", json_response({"data": {"order": {"lineItems": "oops"}}})),
        ]
        for reason, response in cases:
            with self.subTest(reason=reason):
                self.responses.append(response)
                with self.assertRaises(ShopifyApiError) as caught:
                    self.client.order_by_id("gid://shopify/Order/9001")
                self.assertEqual(caught.exception.reason, reason)

    def test_retries_transient_statuses(self) -> None:
        self.responses.extend(
            [
                httpx.Response(429, text="slow down"),
                httpx.Response(503, text="unavailable"),
                json_response({"data": {"company": create_company_response()}}),
            ]
        )
        company = self.client.company_by_id("gid://shopify/Company/3001")
        self.assertEqual(company.name, "Harbour Foods")
        self.assertEqual(len(self.requests), 3)
        self.assertEqual([call.args[0] for call in self.mock_sleep.call_args_list], [0.5, 1.0])

    def test_gives_up_after_max_retries(self) -> None:
        self.responses.extend([httpx.Response(429, text="slow down") for _ in range(AdminApiClient.MAX_RETRY_ATTEMPTS + 1)])
        with self.assertRaises(ShopifyApiError) as caught:
            self.client.order_minimal_by_id("gid://shopify/Order/9001")
        self.assertEqual(caught.exception.status_code, 429)
        self.assertEqual(len(self.requests), AdminApiClient.MAX_RETRY_ATTEMPTS + 1)

    def test_missing_credentials(self) -> None:
        client = AdminApiClient(make_settings(SHOPIFY_DOMAIN_QF=None), self.mock_transport_client(self.handler))
        with self.assertRaises(ConfigurationError):
            client.order_by_id("gid://shopify/Order/9001", shop="QF")
        self.assertEqual(self.requests, [])

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = AdminApiClient(self.settings, self.mock_transport_client(handler))
        with self.assertRaisesRegex(ShopifyApiError, "timed out"):
            client.order_by_id("gid://shopify/Order/9001")


@tagged(*UNIT_TAGS)
class TestShopifyModels(UnitTestCase):
    def test_order_model(self) -> None:
        payload = create_order_response(
            shipping_line=create_shipping_line_response(),
            custom_attributes=[{"key": "FarMetOrderId", "value": "777"}],
            transactions=[
                create_transaction_response(
                    gid="gid://shopify/OrderTransaction/6002",
                    kind="CAPTURE",
                    amount="20.00",
                    unsettled_amount="0.00",
                    parent=create_transaction_response(),
                )
            ],
        )
        order = Order.model_validate(payload)

        self.assertEqual(order.custom_attribute("FarMetOrderId"), "777")
        self.assertEqual(order.custom_attribute("Missing"), "")
        self.assertEqual(len(order.lines), 1)
        line = order.lines.get(0)
        self.assertEqual((line.sku, line.quantity, line.unit_price.amount), ("SKU-A", 2, Decimal("10.00")))
        self.assertEqual(order.shipping_line.price.amount, Decimal("12.00"))
        transaction = order.transaction("gid://shopify/OrderTransaction/6002")
        self.assertEqual(transaction.amount, Decimal("20.00"))
        self.assertEqual(transaction.parent_transaction.id, "gid://shopify/OrderTransaction/6001")
        self.assertIsNone(order.transaction("gid://shopify/OrderTransaction/1"))

    def test_address_codes_fall_back_to_location_fields(self) -> None:
        company = create_company_response()

        parsed = Company.model_validate(company)
        address = parsed.locations.get(0).billing_address
        self.assertEqual((address.country_code(), address.province_code()), ("CA", "BC"))

    def test_customer_without_contact_details(self) -> None:
        customer = create_customer_response(email=None, phone=None)
        parsed = Customer.model_validate(customer)
        self.assertEqual((parsed.email, parsed.phone), ("", ""))
