"""
DTE-CL Bridge Core Configuration
Lioren / Shopify API URLs and application settings.
"""

from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class LiorenEnvironment(str, Enum):
    TEST = "test"
    PRODUCTION = "production"


class Settings(BaseSettings):
    app_name: str = "DTE-CL Bridge"
    app_version: str = "1.0.0"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    rate_limit: str = "60/minute"

    # Lioren (issuing service)
    lioren_environment: LiorenEnvironment = LiorenEnvironment.PRODUCTION
    lioren_api_key: str = ""

    # Shopify (order source + metafield store)
    shopify_shop: str = "tu-tienda.myshopify.com"
    shopify_access_token: str = ""
    shopify_api_version: str = "2024-01"
    shopify_webhook_secret: str = ""

    # Outbound calls
    http_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def shopify_admin_url(self) -> str:
        return f"https://{self.shopify_shop}/admin/api/{self.shopify_api_version}"


settings = Settings()


# ─────────────────────────────────────────────────────────────
# LIOREN API URL REGISTRY
# One endpoint per document family: boletas (39), DTEs (33),
# notas de crédito (61).
# ─────────────────────────────────────────────────────────────

LIOREN_URLS = {
    LiorenEnvironment.TEST: {
        "base":          "https://www.lioren.cl/api",
        "boletas":       "/boletas",
        "dtes":          "/dtes",
        "notas_credito": "/notas-credito",
    },
    LiorenEnvironment.PRODUCTION: {
        "base":          "https://www.lioren.cl/api",
        "boletas":       "/boletas",
        "dtes":          "/dtes",
        "notas_credito": "/notas-credito",
    },
}


def get_lioren_url(service: str, cfg: Settings = settings) -> str:
    """Get the full Lioren URL for a service based on the configured environment."""
    urls = LIOREN_URLS.get(cfg.lioren_environment)
    if not urls:
        raise ValueError(f"Unknown Lioren environment: {cfg.lioren_environment}")
    path = urls.get(service)
    if not path or service == "base":
        raise ValueError(f"Unknown Lioren service: {service}")
    return f"{urls['base']}{path}"
