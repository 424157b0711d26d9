"""
BigQuery client wrapper.

Runs parameterized queries and DML statements against the task dataset
and returns plain dict rows.
"""

import logging
from typing import Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import bigquery
from google.oauth2 import service_account

from .config import settings as default_settings
from .errors import WarehouseError

logger = logging.getLogger(__name__)

BIGQUERY_SCOPES = ["https://www.googleapis.com/auth/bigquery"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def infer_param_type(value) -> str:
    """Map a Python value to a BigQuery standard SQL type name."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "BOOL"
    if isinstance(value, int):
        return "INT64"
    if isinstance(value, float):
        return "FLOAT64"
    return "STRING"


def build_query_parameters(
    params: Optional[Dict] = None,
    types: Optional[Dict[str, str]] = None
) -> list:
    """
    Convert a name -> value mapping into BigQuery query parameters.

    Args:
        params: Parameter values keyed by name (without the leading @)
        types: Optional explicit type names; required for NULL values
               that are not STRING

    Returns:
        List of ScalarQueryParameter / ArrayQueryParameter
    """
    params = params or {}
    types = types or {}
    query_params = []

    for name, value in params.items():
        if isinstance(value, (list, tuple)):
            element_type = types.get(name) or (
                infer_param_type(value[0]) if value else "STRING"
            )
            query_params.append(
                bigquery.ArrayQueryParameter(name, element_type, list(value))
            )
        else:
            param_type = types.get(name) or infer_param_type(value)
            query_params.append(
                bigquery.ScalarQueryParameter(name, param_type, value)
            )

    return query_params


class WarehouseClient:
    """
    Thin adapter over google.cloud.bigquery.Client.

    The underlying client is created lazily so the API can start (and be
    tested) without credentials.
    """

    def __init__(self, client: Optional[bigquery.Client] = None, settings=None):
        self.settings = settings or default_settings
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self) -> bigquery.Client:
        s = self.settings
        if s.CLIENT_EMAIL and s.PRIVATE_KEY:
            credentials = service_account.Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "project_id": s.PROJECT_ID,
                    "client_email": s.CLIENT_EMAIL,
                    "private_key": s.PRIVATE_KEY,
                    "token_uri": TOKEN_URI,
                },
                scopes=BIGQUERY_SCOPES,
            )
            logger.info(f"BigQuery client using service account {s.CLIENT_EMAIL}")
            return bigquery.Client(project=s.PROJECT_ID, credentials=credentials)

        logger.info("BigQuery client using application default credentials")
        return bigquery.Client(project=s.PROJECT_ID or None)

    def _run(self, sql: str, params: Optional[Dict], types: Optional[Dict[str, str]]):
        job_config = bigquery.QueryJobConfig(
            query_parameters=build_query_parameters(params, types)
        )
        logger.debug(f"BigQuery SQL: {sql.strip()}")
        logger.debug(f"BigQuery params: {params}")
        job = self.client.query(sql, job_config=job_config)
        result = job.result()
        return job, result

    def query(
        self,
        sql: str,
        params: Optional[Dict] = None,
        types: Optional[Dict[str, str]] = None
    ) -> List[Dict]:
        """
        Execute a parameterized SELECT.

        Returns:
            List of result rows as dicts
        """
        try:
            _, result = self._run(sql, params, types)
            return [dict(row.items()) for row in result]
        except GoogleAPIError as e:
            raise WarehouseError(str(e)) from e

    def execute(
        self,
        sql: str,
        params: Optional[Dict] = None,
        types: Optional[Dict[str, str]] = None
    ) -> int:
        """
        Execute a DML statement and wait for it to finish.

        Returns:
            Number of rows affected
        """
        try:
            job, _ = self._run(sql, params, types)
            return job.num_dml_affected_rows or 0
        except GoogleAPIError as e:
            raise WarehouseError(str(e)) from e

    def close(self):
        """Close the underlying client if one was created."""
        if self._client is not None:
            self._client.close()
            self._client = None
