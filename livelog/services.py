"""Client for the service directory that gates stream selection."""

import logging

import jsonschema
import requests

from livelog.models import Service

logger = logging.getLogger(__name__)

SERVICES_PATH = "/api/services"

SERVICE_LIST_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["id", "name"],
        "properties": {
            "id": {"type": "string", "minLength": 1},
            "name": {"type": "string"},
            "description": {"type": ["string", "null"]},
        },
    },
}


class ServiceDirectoryError(Exception):
    """The service list could not be fetched or was malformed."""


class ServiceDirectory:
    def __init__(self, api_base_url: str, session_token: str | None = None,
                 cookie_name: str = "better-auth.session_token", timeout: float = 10.0,
                 session: requests.Session | None = None):
        self._url = api_base_url.rstrip("/") + SERVICES_PATH
        self._session_token = session_token
        self._cookie_name = cookie_name
        self._timeout = timeout
        self._session = session or requests.Session()
        self._validator = jsonschema.Draft202012Validator(SERVICE_LIST_SCHEMA)

    def list_services(self) -> list[Service]:
        """Fetch selectable services. Raises ServiceDirectoryError on any failure."""
        cookies = {self._cookie_name: self._session_token} if self._session_token else {}
        try:
            response = self._session.get(self._url, cookies=cookies, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ServiceDirectoryError(f"Service request to {self._url} failed: {e}") from e
        except ValueError as e:
            raise ServiceDirectoryError(f"Service list from {self._url} is not JSON") from e

        errors = sorted(self._validator.iter_errors(data), key=lambda err: list(err.path))
        if errors:
            raise ServiceDirectoryError(f"Malformed service list: {errors[0].message}")

        services = [
            Service(id=item["id"], name=item["name"], description=item.get("description"))
            for item in data
        ]
        logger.info("Loaded %d service(s) from %s", len(services), self._url)
        return services
