from __future__ import annotations

import os

from dotenv import load_dotenv

from utils import parse_bool


load_dotenv()


class Config:
    def __init__(self):
        self.APP_ENV = (os.getenv("APP_ENV", "development") or "development").strip().lower()
        self.IS_PRODUCTION = self.APP_ENV in {"prod", "production"}

        self.LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

        self.STORAGE_BACKEND = (os.getenv("STORAGE_BACKEND", "memory") or "memory").strip().lower()
        self.DATABASE_URL = (os.getenv("DATABASE_URL", "") or "").strip() or "sqlite:///./portal.db"
        self.DB_ECHO = parse_bool(os.getenv("DB_ECHO"), default=False)

        self.SEED_DEFAULTS = parse_bool(os.getenv("SEED_DEFAULTS"), default=True)
        self.STRICT_IDENTITY = parse_bool(os.getenv("STRICT_IDENTITY"), default=False)

        self.UPLOAD_DIR = (os.getenv("UPLOAD_DIR", "./uploads") or "./uploads").strip()
        self.MAX_DOC_UPLOAD_MB = int(os.getenv("MAX_DOC_UPLOAD_MB", "20") or "20")

        self.SYSTEM_EMAIL_DOMAIN = (os.getenv("SYSTEM_EMAIL_DOMAIN", "wugweb.design") or "wugweb.design").strip().lower()
        # Temporary password handed to HR-provisioned accounts.
        self.DEFAULT_EMPLOYEE_PASSWORD = os.getenv("DEFAULT_EMPLOYEE_PASSWORD", "" if self.IS_PRODUCTION else "WugWeb123@") or ""

        self.REFERENCE_CACHE_TTL_SECONDS = int(os.getenv("REFERENCE_CACHE_TTL_SECONDS", "60") or "60")

        self.COMPANY_NAME = (os.getenv("COMPANY_NAME", "WugWeb Design Pvt. Ltd.") or "").strip()
        self.COMPANY_ADDRESS = (os.getenv("COMPANY_ADDRESS", "") or "").strip()

    def validate(self) -> None:
        if self.STORAGE_BACKEND not in {"memory", "sql"}:
            raise ValueError(f"Unknown STORAGE_BACKEND: {self.STORAGE_BACKEND}")
        if self.MAX_DOC_UPLOAD_MB <= 0:
            raise ValueError("MAX_DOC_UPLOAD_MB must be positive")
        if self.REFERENCE_CACHE_TTL_SECONDS <= 0:
            raise ValueError("REFERENCE_CACHE_TTL_SECONDS must be positive")
        if not self.SYSTEM_EMAIL_DOMAIN or "@" in self.SYSTEM_EMAIL_DOMAIN:
            raise ValueError("SYSTEM_EMAIL_DOMAIN must be a bare domain")

        if self.IS_PRODUCTION:
            if not self.DEFAULT_EMPLOYEE_PASSWORD:
                raise ValueError("DEFAULT_EMPLOYEE_PASSWORD is required in production")
            if self.STORAGE_BACKEND == "sql" and self.DATABASE_URL.startswith("sqlite"):
                raise ValueError("DATABASE_URL must point at a server database in production")
