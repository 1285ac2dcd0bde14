import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Self, TypeVar

from httpx import Client

from ...cache import RequestCache
from ...settings import SyncSettings, load_settings
from ..odoo.client import OdooClient, OdooEnvironment
from ..odoo.master_data import MasterDataManager
from ..shopify.client import AdminApiClient
from .base import ShopifyOdooImporter, SyncResult
from .importers.company_importer import CompanyImporter
from .importers.customer_importer import CustomerImporter
from .importers.order_importer import OrderImporter
from .importers.transaction_importer import TransactionImporter

_logger = logging.getLogger(__name__)

ImporterT = TypeVar("ImporterT", bound=ShopifyOdooImporter)


@dataclass(frozen=True)
class RequestScope:
    """State owned by a single unit of work: its cache and its Odoo environment."""

    cache: RequestCache
    env: OdooEnvironment


class SyncService:
    """Wires the remote clients together and runs one import per call.

    Clients and the master data snapshot live as long as the service. Every
    ``sync_*`` call gets a fresh :class:`RequestScope`, so nothing cached for
    one webhook leaks into the next.
    """

    def __init__(
        self,
        settings: SyncSettings | None = None,
        *,
        odoo_http_client: Client | None = None,
        shopify_http_client: Client | None = None,
        master_data_http_client: Client | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.odoo = OdooClient(self.settings, odoo_http_client)
        self.admin_api = AdminApiClient(self.settings, shopify_http_client)
        self.master_data = MasterDataManager(self.settings, master_data_http_client)

    def close(self) -> None:
        self.odoo.close()
        self.admin_api.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @contextmanager
    def request_scope(self) -> Iterator[RequestScope]:
        self.master_data.load()
        cache = RequestCache()
        scope = RequestScope(cache=cache, env=OdooEnvironment(self.odoo, cache))
        yield scope
        _logger.debug(f"Request scope closed with {len(cache)} cached entries")

    def _run(self, importer_class: type[ImporterT], action: Callable[[ImporterT], SyncResult]) -> SyncResult:
        with self.request_scope() as scope:
            importer = importer_class(scope.env, self.master_data, self.admin_api)
            return action(importer)

    def sync_customer(self, shopify_gid: str) -> SyncResult:
        return self._run(CustomerImporter, lambda importer: importer.import_one(shopify_gid))

    def sync_company(self, shopify_gid: str) -> SyncResult:
        return self._run(CompanyImporter, lambda importer: importer.import_one(shopify_gid))

    def sync_order(self, shopify_gid: str) -> SyncResult:
        return self._run(OrderImporter, lambda importer: importer.import_one(shopify_gid))

    def sync_transaction(self, order_gid: str, transaction_gid: str) -> SyncResult:
        return self._run(TransactionImporter, lambda importer: importer.import_one(order_gid, transaction_gid))
