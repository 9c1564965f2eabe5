"""Base HTTP Client for the WordMaster API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class WordMasterError(Exception):
    """Raised when the API call fails or returns an error envelope"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class APIClient:
    """HTTP client for the WordMaster API"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def _handle_response(self, response: httpx.Response) -> Any:
        """Unwrap the response envelope, raising on errors"""
        try:
            data = response.json()
        except ValueError:
            raise WordMasterError(
                f"Invalid JSON response: {response.status_code}", response.status_code
            ) from None

        if response.status_code >= 400 or not data.get("ok", False):
            error_msg = data.get("error", {}).get("message", "Unknown error")
            console.print(Panel(f"[red]{error_msg}[/red]", title="API Error"))
            raise WordMasterError(
                f"API Error {response.status_code}: {error_msg}", response.status_code
            )

        return data.get("data")

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make GET request"""
        try:
            response = self.client.get(f"/v1{path}", params=params)
        except httpx.RequestError as e:
            raise WordMasterError(f"Connection failed: {e}") from None
        return self._handle_response(response)

    def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        """Make POST request"""
        try:
            response = self.client.post(f"/v1{path}", json=json)
        except httpx.RequestError as e:
            raise WordMasterError(f"Connection failed: {e}") from None
        return self._handle_response(response)
