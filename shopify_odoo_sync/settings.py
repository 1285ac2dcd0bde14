from typing import ClassVar, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .helpers import ConfigurationError

ShopKey = Literal["FM", "QF"]

DEFAULT_SHOP: ShopKey = "FM"


class SyncSettings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Odoo JSON-RPC
    odoo_domain: str | None = Field(None, alias="ODOO_DOMAIN")
    odoo_db: str | None = Field(None, alias="ODOO_DB")
    odoo_user_id: int = Field(0, alias="ODOO_USER_ID")
    odoo_password: str | None = Field(None, alias="ODOO_PASSWORD")
    odoo_access_key: str | None = Field(None, alias="ODOO_ACCESS_KEY")
    cloudflare_bypass_waf: str = Field("", alias="CLOUDFLARE_BYPASS_WAF")

    # Shopify Admin API, one store per company
    shopify_domain_fm: str | None = Field(None, alias="SHOPIFY_DOMAIN_FM")
    shopify_domain_qf: str | None = Field(None, alias="SHOPIFY_DOMAIN_QF")
    shopify_token_fm: str | None = Field(None, alias="SHOPIFY_ADMIN_API_ACCESS_TOKEN_FM")
    shopify_token_qf: str | None = Field(None, alias="SHOPIFY_ADMIN_API_ACCESS_TOKEN_QF")
    shopify_api_version: str = Field("2025-04", alias="SHOPIFY_API_VERSION")

    # Timing
    request_timeout: float = Field(30.0, alias="SYNC_REQUEST_TIMEOUT")
    deadline_seconds: float = Field(9.5, alias="SYNC_DEADLINE_SECONDS")
    master_data_cooldown: float = Field(10.0, alias="SYNC_MASTER_DATA_COOLDOWN")

    def odoo_rpc_url(self) -> str:
        self.require_odoo()
        return f"https://{self.odoo_domain}/jsonrpc"

    def master_data_url(self) -> str:
        if not self.odoo_domain or not self.odoo_access_key:
            raise ConfigurationError("ODOO_DOMAIN and ODOO_ACCESS_KEY are required to load master data")
        return f"https://{self.odoo_domain}/website/action/shopify-master-data"

    def require_odoo(self) -> None:
        missing = [
            name
            for name, value in (
                ("ODOO_DOMAIN", self.odoo_domain),
                ("ODOO_DB", self.odoo_db),
                ("ODOO_USER_ID", self.odoo_user_id),
                ("ODOO_PASSWORD", self.odoo_password),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Odoo connection settings are not set: {', '.join(missing)}")

    def shopify_credentials(self, shop: ShopKey = DEFAULT_SHOP) -> tuple[str, str]:
        if shop == "QF":
            domain, token = self.shopify_domain_qf, self.shopify_token_qf
        else:
            domain, token = self.shopify_domain_fm, self.shopify_token_fm
        if not domain or not token:
            raise ConfigurationError(
                f"Shopify credentials (SHOPIFY_DOMAIN_{shop} and SHOPIFY_ADMIN_API_ACCESS_TOKEN_{shop}) are not set"
            )
        return domain, token

    def shopify_graphql_url(self, shop: ShopKey = DEFAULT_SHOP) -> str:
        domain, _token = self.shopify_credentials(shop)
        return f"https://{domain}/admin/api/{self.shopify_api_version}/graphql.json"


def load_settings() -> SyncSettings:
    return SyncSettings()
