import logging
import time
from collections.abc import Callable

from httpx import Client, HTTPError, Timeout
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from ...cache import ReadWriteLock
from ...helpers import (
    COMPANY_FM,
    COMPANY_QF,
    AmbiguousMatchError,
    ConfigurationError,
    MasterDataError,
    NotFoundError,
    ValidationError,
)
from ...settings import SyncSettings
from .client import OdooEnvironment
from .domain import map_to_domain

_logger = logging.getLogger(__name__)


class MasterDataModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class PartnerRoles(MasterDataModel):
    wholesale: int = 0


class Websites(MasterDataModel):
    qualifirst: int = Field(0, alias="qf")


class Pricelists(MasterDataModel):
    qualizon: int = 0
    qf_wholesale: int = 0
    fm_wholesale: int = 0


class CustomerTypes(MasterDataModel):
    individual: int = 0
    business: int = 0


class PaymentMethods(MasterDataModel):
    shopify: int = 0


class PaymentAcquirers(MasterDataModel):
    shopify: int = 0


class PaymentAcquirersPerCompany(MasterDataModel):
    qf: PaymentAcquirers = Field(default_factory=PaymentAcquirers, alias="QF")
    fm: PaymentAcquirers = Field(default_factory=PaymentAcquirers, alias="FM")


class SalesTeam(MasterDataModel):
    id: int = 0
    user_id: int = 0


class SalesTeams(MasterDataModel):
    consumer: SalesTeam = Field(default_factory=SalesTeam)
    leads: SalesTeam = Field(default_factory=SalesTeam)


class Sources(MasterDataModel):
    shopify: int = 0


class Tax(MasterDataModel):
    id: int
    name: str = ""
    description: str = ""
    amount: float = 0.0


class TaxesPerCompany(MasterDataModel):
    qf: list[Tax] = Field(default_factory=list, alias="QF")
    fm: list[Tax] = Field(default_factory=list, alias="FM")


class State(MasterDataModel):
    id: int


class Country(MasterDataModel):
    id: int
    states: dict[str, State] = Field(default_factory=dict)


class DeliveryProducts(MasterDataModel):
    webship: int = 0
    twoship: int = 0


class DeliveryCarrier(MasterDataModel):
    id: int
    name: str = ""
    product_id: int = 0
    delivery_type: str = ""


class MasterData(MasterDataModel):
    csrf_token: str = ""
    partner_roles: PartnerRoles = Field(default_factory=PartnerRoles)
    websites: Websites = Field(default_factory=Websites)
    pricelists: Pricelists = Field(default_factory=Pricelists)
    customer_types: CustomerTypes = Field(default_factory=CustomerTypes)
    delivery_products: DeliveryProducts = Field(default_factory=DeliveryProducts)
    delivery_carriers: list[DeliveryCarrier] = Field(default_factory=list)
    payment_methods: PaymentMethods = Field(default_factory=PaymentMethods)
    payment_acquirers: PaymentAcquirersPerCompany = Field(default_factory=PaymentAcquirersPerCompany)
    sales_teams: SalesTeams = Field(default_factory=SalesTeams)
    sources: Sources = Field(default_factory=Sources)
    taxes: TaxesPerCompany = Field(default_factory=TaxesPerCompany)
    countries: dict[str, Country] = Field(default_factory=dict)

    def taxes_for_company(self, company_id: int) -> list[Tax]:
        if company_id == COMPANY_QF:
            return self.taxes.qf
        if company_id == COMPANY_FM:
            return self.taxes.fm
        raise ValidationError(f"invalid company ID {company_id}")


class MasterDataManager:
    """Process-wide snapshot of Odoo reference data.

    The snapshot is fetched once. A failed fetch is remembered and re-raised
    without contacting Odoo until the cooldown has elapsed.
    """

    def __init__(
        self,
        settings: SyncSettings,
        http_client: Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._http_client = http_client
        self._clock = clock
        self._lock = ReadWriteLock()
        self._data: MasterData | None = None
        self._error: MasterDataError | None = None
        self._last_fetch = 0.0

    @property
    def data(self) -> MasterData:
        with self._lock.reading():
            data = self._data
        if data is None:
            raise MasterDataError("Odoo master data has not been loaded")
        return data

    def _cooling_down(self) -> bool:
        return self._error is not None and self._clock() - self._last_fetch < self.settings.master_data_cooldown

    def load(self) -> MasterData:
        with self._lock.reading():
            if self._data is not None:
                return self._data
            if self._cooling_down():
                raise self._error

        with self._lock.writing():
            if self._data is not None:
                return self._data
            if self._cooling_down():
                raise self._error
            self._last_fetch = self._clock()
            try:
                self._data = self._fetch()
            except MasterDataError as error:
                _logger.warning(f"Loading Odoo master data failed: {error}")
                self._error = error
                raise
            self._error = None
            _logger.info("Loaded Odoo master data")
            return self._data

    def _fetch(self) -> MasterData:
        try:
            url = self.settings.master_data_url()
        except ConfigurationError as error:
            raise MasterDataError(f"error loading Odoo master data: {error}") from error
        headers = {
            "Odoo-Access-Key": self.settings.odoo_access_key or "",
            "Cloudflare-Bypass-WAF": self.settings.cloudflare_bypass_waf,
        }
        client = self._http_client or Client(timeout=Timeout(self.settings.request_timeout, connect=10.0))
        try:
            response = client.get(url, headers=headers)
        except HTTPError as error:
            raise MasterDataError(f"error loading Odoo master data: request error: {error}") from error
        finally:
            if self._http_client is None:
                client.close()
        if response.status_code != 200:
            raise MasterDataError(
                "error loading Odoo master data: non-200 response",
                status_code=response.status_code,
                response_body=response.text,
            )
        try:
            return MasterData.model_validate_json(response.text)
        except PydanticValidationError as error:
            raise MasterDataError(
                "error loading Odoo master data: error decoding result",
                status_code=response.status_code,
                response_body=response.text,
            ) from error

    # Lookups

    def get_country_and_state_ids(self, env: OdooEnvironment, country_code: str, state_code: str) -> tuple[int, int]:
        country = self.data.countries.get(country_code)
        if country is not None:
            state = country.states.get(state_code)
            return country.id, state.id if state else 0
        return self._fetch_country_and_state_ids(env, country_code, state_code)

    def _fetch_country_and_state_ids(self, env: OdooEnvironment, country_code: str, state_code: str) -> tuple[int, int]:
        country_key = ("res.country", country_code)
        country_id, found = env.cache.get(country_key, 0)
        if not found:
            country_id = _search_id_or_zero(env, "res.country", [("code", "=", country_code)])
        if not country_id:
            return 0, 0
        env.cache.set(country_key, country_id)

        state_key = ("res.country.state", country_id, state_code)
        state_id, found = env.cache.get(state_key, 0)
        if not found:
            state_id = _search_id_or_zero(
                env,
                "res.country.state",
                [("country_id", "=", country_id), ("code", "=", state_code)],
            )
            if state_id:
                env.cache.set(state_key, state_id)
        return country_id, state_id

    def get_tax(self, env: OdooEnvironment, name: str, percentage: float, company_id: int) -> int:
        for tax in self.data.taxes_for_company(company_id):
            if tax.description == name and tax.amount == percentage:
                return tax.id

        cache_key = ("tax", name, company_id)
        tax_id, found = env.cache.get(cache_key, 0)
        if found:
            return tax_id
        values = {
            "name": name,
            "description": name,
            "amount_type": "percent",
            "type_tax_use": "sale",
            "amount": percentage,
            "company_id": company_id,
        }
        tax_id = env.find_first_or_create("account.tax", map_to_domain(values), values)
        env.cache.set(cache_key, tax_id)
        return tax_id

    def get_delivery_carrier(self, env: OdooEnvironment, name: str, delivery_type: str, product_id: int) -> int:
        for carrier in self.data.delivery_carriers:
            if carrier.name == name and carrier.delivery_type == delivery_type and carrier.product_id == product_id:
                return carrier.id

        cache_key = ("carrier", name, delivery_type, product_id)
        carrier_id, found = env.cache.get(cache_key, 0)
        if found:
            return carrier_id
        values = {
            "name": name,
            "product_id": product_id,
            "delivery_type": delivery_type,
            "company_id": False,
            "integration_level": "rate",
        }
        carrier_id = env.find_first_or_create("delivery.carrier", map_to_domain(values), values)
        env.cache.set(cache_key, carrier_id)
        return carrier_id


def _search_id_or_zero(env: OdooEnvironment, model: str, domain: list) -> int:
    try:
        return env.search_id(model, domain)
    except (NotFoundError, AmbiguousMatchError) as error:
        _logger.warning(f"Lookup on {model} failed: {error}")
        return 0
