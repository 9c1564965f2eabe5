"""API Endpoint Wrappers"""

from typing import Any

from .base import APIClient
from ..utils.config_manager import config


class WordMasterClient:
    """High-level client with one method per endpoint"""

    def __init__(self, base_url: str | None = None, **client_kwargs: Any):
        api_config = config.load_config().get("api", {})
        self.api = APIClient(
            base_url=base_url or api_config.get("base_url", "http://localhost:8000"),
            timeout=api_config.get("timeout", 30),
            **client_kwargs,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    def health_check(self) -> dict[str, Any]:
        return self.api.get("/healthz")

    # Catalog
    def list_collections(self) -> list[dict[str, Any]]:
        return self.api.get("/collections")

    # Review
    def get_review_queue(
        self, collection_id: str, limit: int = 20, mix_new: float = 0.2
    ) -> dict[str, Any]:
        params = {"collection_id": collection_id, "limit": limit, "mix_new": mix_new}
        return self.api.get("/review/queue", params)

    def submit_review(
        self,
        item_id: int,
        quality: str | None = None,
        known: bool | None = None,
        duration_s: int = 0,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        """Record a review by explicit quality or by known/duration"""
        data: dict[str, Any] = {"item_id": item_id, "duration_s": duration_s}
        if quality is not None:
            data["quality"] = quality
        if known is not None:
            data["known"] = known
        if session_id is not None:
            data["session_id"] = session_id
        return self.api.post("/review/record", data)

    def get_review_state(self, item_id: int) -> dict[str, Any]:
        return self.api.get(f"/review/state/{item_id}")

    def preview_intervals(self, item_id: int) -> dict[str, Any]:
        return self.api.get(f"/review/state/{item_id}/preview")

    def get_study_summary(
        self,
        session_id: str | None = None,
        collection_id: str | None = None,
        day: str | None = None,
    ) -> dict[str, Any]:
        params = {"session_id": session_id, "collection_id": collection_id, "day": day}
        return self.api.get("/review/summary", {k: v for k, v in params.items() if v is not None})
