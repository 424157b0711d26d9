"""
Configuration management for the Scheduler Task API.
"""

import os
from pathlib import Path
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()


def _csv_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DEFAULT_ADMIN_EMAILS = [
    "systems@brightbraintech.com",
    "neelam.p@brightbraintech.com",
    "meghna.j@brightbraintech.com",
    "zoya.a@brightbraintech.com",
    "shweta.g@brightbraintech.com",
    "hitesh.r@brightbraintech.com",
]

DEFAULT_CORS_ORIGINS = [
    "https://scheduler-ui-roan.vercel.app",
    "http://localhost:3000",
    "http://localhost:3001",
]


class Settings:
    """API server configuration."""

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent

    # Server
    API_TITLE: str = "Scheduler Task API"
    API_DESCRIPTION: str = "REST API for delivery workflows, tasks and daily time allocations"
    API_VERSION: str = "1.0.0"
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3001"))

    # CORS
    CORS_ORIGINS: List[str] = _csv_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    CORS_METHODS: List[str] = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]

    # BigQuery
    PROJECT_ID: str = os.getenv("GOOGLE_PROJECT_ID", "")
    DATASET: str = os.getenv("BIGQUERY_DATASET", "")
    TASK_TABLE: str = os.getenv("BIGQUERY_TABLE", "")
    PER_KEY_TABLE: str = os.getenv("BIGQUERY_PER_KEY_TABLE", "Per_Key_Per_Day")
    PER_PERSON_TABLE: str = os.getenv("BIGQUERY_PER_PERSON_TABLE", "Per_Person_Per_Day")
    ADMIN_TABLE: str = os.getenv("BIGQUERY_ADMIN_TABLE", "")
    CLIENT_EMAIL: str = os.getenv("BIGQUERY_CLIENT_EMAIL", "")
    # Keys pasted into .env usually carry literal "\n" sequences
    PRIVATE_KEY: str = os.getenv("BIGQUERY_PRIVATE_KEY", "").replace("\\n", "\n")

    # Access control
    ADMIN_SOURCE: str = os.getenv("ADMIN_SOURCE", "static").lower()
    ADMIN_EMAILS: List[str] = _csv_env("ADMIN_EMAILS", DEFAULT_ADMIN_EMAILS)
    ADMIN_CACHE_TTL: int = int(os.getenv("ADMIN_CACHE_TTL", "300"))

    # Google Sheets
    SHEET_ID: str = os.getenv("SHEET_ID", "")
    SHEET_ADMIN_RANGE: str = os.getenv("SHEET_ADMIN_RANGE", "Admins!A2:A")
    SHEET_MAPPING_RANGE: str = os.getenv("SHEET_MAPPING_RANGE", "Mapping!A2:B")

    # Paging
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "500"))

    def table(self, name: str) -> str:
        """Fully-qualified, backticked BigQuery table reference."""
        return f"`{self.PROJECT_ID}.{self.DATASET}.{name}`"

    def summary(self) -> List[Tuple[str, str]]:
        """Label/value pairs for the startup banner. Secrets are redacted."""
        return [
            ("Project", self.PROJECT_ID or "(unset)"),
            ("Dataset", self.DATASET or "(unset)"),
            ("Task table", self.TASK_TABLE or "(unset)"),
            ("Per-key table", self.PER_KEY_TABLE),
            ("Per-person table", self.PER_PERSON_TABLE),
            ("Client email", self.CLIENT_EMAIL or "(application default)"),
            ("Private key", "set" if self.PRIVATE_KEY else "missing"),
            ("Admin source", self.ADMIN_SOURCE),
            ("CORS origins", ", ".join(self.CORS_ORIGINS)),
            ("Listen", f"{self.HOST}:{self.PORT}"),
        ]


settings = Settings()
