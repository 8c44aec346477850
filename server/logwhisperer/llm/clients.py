import requests
from typing import Any, Dict, List, Optional
from logwhisperer.core.config import settings


class ChatClient:
    def __init__(self, api_url: str, api_key: str = ""):
        self.api_url = api_url
        self.api_key = api_key

    def infer(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: int = 2048,
        response_format: Optional[Dict[str, Any]] = None,
        temperature: float = 0.2,
        timeout: int = 900,
    ) -> Any:
        """Return the backend's decoded JSON body untouched; callers normalize it."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format:
            payload["response_format"] = response_format

        resp = requests.post(
            self.api_url,
            json=payload,
            headers=headers,
            verify=settings.ssl_verify_path,
            timeout=timeout,
        )
        resp.raise_for_status()
        return resp.json()


class EmbeddingsClient:
    def __init__(self, api_url: str, model_name: str, dims: int = 1024, api_key: str = ""):
        self.api_url = api_url
        self.model_name = model_name
        self.dims = dims
        self.api_key = api_key

    def embed(self, texts: List[str], input_type: str = "passage", timeout: int = 60) -> List[List[float]]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        resp = requests.post(
            self.api_url,
            json={
                "model": self.model_name,
                "input": texts,
                "input_type": input_type,
                "dimensions": self.dims,
            },
            headers=headers,
            verify=settings.ssl_verify_path,
            timeout=timeout,
        )
        if resp.status_code >= 400:
            raise requests.HTTPError(
                f"Embeddings error {resp.status_code}: {resp.text[:300]}",
                response=resp,
            )

        data = resp.json()
        rows = data.get("data", data.get("embeddings", []))
        vecs = [
            [float(x) for x in (row["embedding"] if isinstance(row, dict) else row)[: self.dims]]
            for row in rows
        ]
        if len(vecs) != len(texts):
            raise ValueError(f"Embeddings endpoint returned {len(vecs)} vectors for {len(texts)} inputs")
        return vecs

    def embed_query(self, text: str) -> List[float]:
        return self.embed([text], input_type="query")[0]
