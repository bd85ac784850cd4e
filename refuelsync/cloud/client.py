"""
Remote key-value service client.

Pushes local key changes to, and fetches the current values from, an
HTTP key-value service shared by every device of the user.
The access token is passed via configuration and never logged.
"""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class CloudSyncError(Exception):
    """Raised when the remote key-value service cannot be reached or errors."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CloudSyncClient:
    """
    Client for the remote key-value service.
    
    Wire format (both directions):
        {"values": {"<key>": "<string value>" | null}}
    
    A null value in a push removes the key remotely.
    
    Usage:
        with CloudSyncClient(base_url="https://kv.example.com", access_token="...") as client:
            client.push({"refuel_entries_json": "[]"})
            values = client.fetch()
    """
    
    KV_ENDPOINT = "/v1/kv"
    
    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        """
        Initialize cloud client.
        
        Args:
            base_url: Service URL (e.g., https://kv.example.com)
            access_token: Bearer token (never logged)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
        """
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.timeout = timeout
        
        self._session = requests.Session()
        
        # PUT replaces the given keys wholesale, so it is safe to repeat
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "PUT"],
        )
        
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)
        
        self._session.headers.update({
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        
        logger.info(f"Cloud client initialized for {self.base_url}")
    
    def __repr__(self) -> str:
        """Never expose token in repr."""
        return f"CloudSyncClient(base_url='{self.base_url}')"
    
    @property
    def kv_url(self) -> str:
        return f"{self.base_url}{self.KV_ENDPOINT}"
    
    def _request(self, method: str, json_body: Optional[dict] = None) -> Optional[dict]:
        """
        Make authenticated request to the key-value endpoint.
        
        Args:
            method: HTTP method
            json_body: Request body
            
        Returns:
            Parsed JSON response, or None for an empty body
            
        Raises:
            CloudSyncError: If request fails
        """
        try:
            response = self._session.request(
                method,
                self.kv_url,
                json=json_body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            
            if not response.content:
                return None
            return response.json()
            
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            error_msg = f"Cloud service error: {e}"
            logger.error(error_msg)
            raise CloudSyncError(error_msg, status_code=status_code) from e
            
        except requests.exceptions.RequestException as e:
            error_msg = f"Cloud request failed: {e}"
            logger.error(error_msg)
            raise CloudSyncError(error_msg) from e
            
        except ValueError as e:
            raise CloudSyncError(f"Cloud service returned invalid JSON: {e}") from e
    
    def push(self, values: dict[str, Optional[str]]) -> None:
        """
        Send changed keys to the service.
        
        Args:
            values: Key to new value, None to remove the key
        """
        logger.debug(f"Pushing {len(values)} keys")
        self._request("PUT", {"values": values})
    
    def fetch(self) -> dict[str, str]:
        """
        Fetch every key currently held by the service.
        
        Returns:
            Mapping of key to string value. Non-string values are dropped.
        """
        data = self._request("GET") or {}
        
        values = data.get("values") if isinstance(data, dict) else None
        if not isinstance(values, dict):
            raise CloudSyncError("Cloud service response has no 'values' object")
        
        result = {}
        for key, value in values.items():
            if isinstance(value, str):
                result[key] = value
            else:
                logger.warning(f"Ignoring non-string cloud value for {key}")
        
        logger.debug(f"Fetched {len(result)} keys")
        return result
    
    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
        logger.debug("Cloud client session closed")
    
    def __enter__(self) -> "CloudSyncClient":
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
