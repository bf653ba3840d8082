"""
HTTP client for the encrypted value store
"""
from typing import Any, Dict, List, Optional

import requests


class EncryptedStoreClient:
    """
    Thin wrapper over the store / retrieve / search endpoints

    Any object with requests-style ``get``/``post`` methods can be passed
    as ``session`` (for example FastAPI's TestClient).
    """

    def __init__(self,
                 server_url: str = "http://localhost:3000",
                 session: Optional[Any] = None,
                 timeout: float = 60.0):
        self.server_url = server_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Dict:
        """Make HTTP request to server and return the decoded JSON body"""
        url = f"{self.server_url}{endpoint}"

        if method == "GET":
            response = self.session.get(url, timeout=self.timeout)
        elif method == "POST":
            response = self.session.post(url, json=data, timeout=self.timeout)
        else:
            raise ValueError(f"Unsupported method: {method}")

        response.raise_for_status()
        return response.json()

    def health(self) -> Dict:
        return self._make_request("GET", "/health")

    def store(self, value: int) -> str:
        """Store a value and return its identifier"""
        return self._make_request("POST", "/store", {"value": value})["id"]

    def retrieve(self, record_id: str) -> int:
        return self._make_request("GET", f"/retrieve/{record_id}")["value"]

    def search(self, value: int) -> Dict:
        """Full search response including skipped records"""
        return self._make_request("GET", f"/search/{value}")

    def search_ids(self, value: int) -> List[str]:
        return [match["id"] for match in self.search(value)["matches"]]
