from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "OrderScan"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    # Order store tables
    ORDERS_TABLE: str = "orders"
    INVENTORY_TABLE: str = "inventory"
    PROCESSED_EMAILS_TABLE: str = "processed_emails"

    # Gmail API
    GMAIL_CLIENT_ID: str = ""
    GMAIL_CLIENT_SECRET: str = ""
    GMAIL_REFRESH_TOKEN: str = ""

    # Ingestion
    ORDER_SEARCH_QUERY: str = 'from:auto-confirm@amazon.com subject:"Your Amazon.com order of"'
    MAX_EMAILS_PER_RUN: int = 10

    # Whitelist / confidence hints
    VENDOR_ALLOWLIST: List[str] = ["Amazon", "Nike"]
    WHITELIST_SUBJECTS: List[str] = ["order", "confirmation", "invoice"]
    WHITELIST_SENDERS: List[str] = []
    WHITELIST_FORWARDERS: List[str] = []
    WHITELIST_KEYWORDS: List[str] = ["order", "purchase"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
