import json
import logging
from time import sleep
from typing import Any, Self, TypeVar

from httpx import Client, HTTPError, Limits, Response, Timeout
from pydantic import BaseModel, ValidationError as PydanticValidationError

from ...helpers import ShopifyApiError
from ...settings import DEFAULT_SHOP, ShopKey, SyncSettings
from . import queries
from .models import Company, Customer, Order
from .queries import ShopifyQuery

ModelT = TypeVar("ModelT", bound=BaseModel)

THROTTLE_TRANSIENT_STATUS: set[int] = {429, 500, 502, 503, 504}

_logger = logging.getLogger(__name__)


class AdminApiClient:
    """Shopify Admin GraphQL API for the FM and QF stores.

    Every call names the store it targets; nothing about the store choice
    is remembered between calls.
    """

    MAX_RETRY_ATTEMPTS = 2
    MIN_SLEEP_TIME = 0.5

    def __init__(self, settings: SyncSettings, http_client: Client | None = None) -> None:
        self.settings = settings
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

    def _post(self, url: str, token: str, body: dict[str, Any]) -> Response:
        headers = {"Content-Type": "application/json", "X-Shopify-Access-Token": token}
        for attempt in range(self.MAX_RETRY_ATTEMPTS + 1):
            try:
                response = self._http_client.post(url, content=json.dumps(body), headers=headers)
            except HTTPError as error:
                raise ShopifyApiError(f"request error during Shopify Admin API call: {error}") from error
            if response.status_code not in THROTTLE_TRANSIENT_STATUS or attempt == self.MAX_RETRY_ATTEMPTS:
                return response
            wait_time = self.MIN_SLEEP_TIME * 2**attempt
            _logger.warning(f"Retry {attempt + 1} for {url} ({response.status_code}); sleeping {wait_time:.2f}s")
            sleep(wait_time)
        raise ShopifyApiError(f"Max retries reached for {url}")

    def execute(self, query: ShopifyQuery, variables: dict[str, Any], shop: ShopKey = DEFAULT_SHOP) -> Any:
        url = self.settings.shopify_graphql_url(shop)
        _domain, token = self.settings.shopify_credentials(shop)
        response = self._post(url, token, {"query": query.query, "variables": variables})
        body = response.text
        if response.status_code != 200:
            raise ShopifyApiError(
                "non-200 response from Shopify Admin API",
                reason="status",
                status_code=response.status_code,
                response_body=body,
            )
        try:
            decoded = json.loads(body)
        except ValueError as error:
            raise ShopifyApiError("invalid json in Shopify Admin API response", reason="decode", response_body=body) from error
        if not isinstance(decoded, dict):
            raise ShopifyApiError("invalid Shopify Admin API response, expected an object", reason="decode", response_body=body)
        if "errors" in decoded:
            raise ShopifyApiError("errors in Shopify Admin API query response", reason="errors", response_body=body)
        data = decoded.get("data")
        if not isinstance(data, dict):
            raise ShopifyApiError("data map not found in Shopify Admin API query response", reason="missing_data", response_body=body)
        if query.result_key not in data:
            raise ShopifyApiError(
                f"result key {query.result_key} not found in Shopify Admin API query response",
                reason="missing_result",
                response_body=body,
            )
        result = data[query.result_key]
        if result is None:
            raise ShopifyApiError(
                f"empty {query.result_key} in Shopify Admin API query response",
                reason="null_result",
                response_body=body,
            )
        return result

    def fetch(self, query: ShopifyQuery, model: type[ModelT], variables: dict[str, Any], shop: ShopKey = DEFAULT_SHOP) -> ModelT:
        result = self.execute(query, variables, shop)
        try:
            return model.model_validate(result)
        except PydanticValidationError as error:
            raise ShopifyApiError(
                f"error decoding {query.result_key} from Shopify Admin API query response",
                reason="decode",
                response_body=json.dumps(result),
            ) from error

    def customer_by_id(self, shopify_gid: str, shop: ShopKey = DEFAULT_SHOP) -> Customer:
        return self.fetch(queries.CUSTOMER, Customer, {"id": shopify_gid}, shop)

    def company_by_id(self, shopify_gid: str, shop: ShopKey = DEFAULT_SHOP) -> Company:
        return self.fetch(queries.COMPANY, Company, {"id": shopify_gid}, shop)

    def order_minimal_by_id(self, shopify_gid: str, shop: ShopKey = DEFAULT_SHOP) -> Order:
        return self.fetch(queries.ORDER_MINIMAL, Order, {"id": shopify_gid}, shop)

    def order_by_id(self, shopify_gid: str, shop: ShopKey = DEFAULT_SHOP) -> Order:
        return self.fetch(queries.ORDER, Order, {"id": shopify_gid}, shop)

    def order_with_transactions_by_id(self, shopify_gid: str, shop: ShopKey = DEFAULT_SHOP) -> Order:
        return self.fetch(queries.ORDER_WITH_TRANSACTIONS, Order, {"id": shopify_gid}, shop)
