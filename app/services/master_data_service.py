"""
Master Data Service
===================
Read-only client for the REST backend that owns the insurance company and
policy category masters.

The backend answers either with a bare list or with a {success, data}
envelope. normalize_master_payload() is the one place both shapes are
turned into a plain list.
"""

import json
import logging
from typing import Any, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from app.core.config import settings
from app.core.exceptions import MasterDataError
from app.utils.helpers import truncate_text

logger = logging.getLogger(__name__)


class InsuranceCompany(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str


class PolicyType(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    category_name: str


def normalize_master_payload(payload: Any) -> List[Any]:
    """
    Accept a bare list or a {success, data} envelope and return a plain list.

    Anything else, including an unsuccessful envelope, is an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and payload.get("success") and isinstance(payload.get("data"), list):
        return payload["data"]
    return []


def _looks_like_markup(text: str) -> bool:
    return text.startswith('<') or '<b>' in text or 'Fatal error' in text


class MasterDataService:
    """Service for fetching selectable companies and policy categories"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.MASTER_DATA_BASE_URL).rstrip('/')
        self.timeout = timeout or settings.MASTER_DATA_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def call_api(self, endpoint: str) -> Any:
        """
        GET a backend endpoint and decode its JSON body.

        Returns:
            Decoded JSON, or an empty list for an empty or null body

        Raises:
            MasterDataError: On network failure, an error status or a body
                that is not JSON
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(
                url,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"❌ Network error calling {url}: {e}")
            raise MasterDataError("Network request failed. Please check your internet connection.") from e

        text = response.text.strip()

        if not response.ok:
            logger.error(f"❌ API error {response.status_code} from {url}: {truncate_text(text)}")
            raise MasterDataError(self._error_message(response.status_code, text))

        if text == '' or text == 'null':
            return []

        try:
            result = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"❌ Invalid JSON from {url}: {truncate_text(text)}")
            if _looks_like_markup(text):
                raise MasterDataError(
                    "Server returned an unexpected error message instead of data. Please contact support."
                ) from e
            raise MasterDataError("Invalid response format from server") from e

        return [] if result is None else result

    @staticmethod
    def _error_message(status_code: int, text: str) -> str:
        try:
            error_json = json.loads(text)
        except json.JSONDecodeError:
            error_json = None

        if isinstance(error_json, dict) and error_json.get("message"):
            return str(error_json["message"])
        if 'Fatal error' in text or 'mysqli_sql_exception' in text:
            return "Database error: A required column or table might be missing on the server."
        return f"Server error ({status_code})"

    def _fetch(self, endpoint: str, model):
        records = []
        for item in normalize_master_payload(self.call_api(endpoint)):
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(f"⚠️  Skipping malformed {model.__name__} record {item!r}: {e.error_count()} error(s)")
        return records

    def get_companies(self) -> List[InsuranceCompany]:
        companies = self._fetch(settings.COMPANIES_ENDPOINT, InsuranceCompany)
        logger.info(f"🏢 Loaded {len(companies)} insurance companies")
        return companies

    def get_policy_types(self) -> List[PolicyType]:
        policy_types = self._fetch(settings.POLICY_TYPES_ENDPOINT, PolicyType)
        logger.info(f"📁 Loaded {len(policy_types)} policy categories")
        return policy_types


# Create singleton instance
master_data_service = MasterDataService()
