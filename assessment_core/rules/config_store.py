"""
Configuration store backends for policy documents.

A store answers `get(path, key)` with the stored document (a dict) or None
when nothing is stored there. Backends raise ConfigStoreError when the store
itself cannot be reached; the PolicyReader turns that into "absent".

Document layout:
    adminConfig/selectionRules                        {"global": {...}}
    adminConfig/quizControls                          {"global": {...}}
    adminConfig/selectionRulesOverrides/exams/<id>    {"overrides": {...}}
    adminConfig/quizControlsOverrides/exams/<id>      {"overrides": {...}}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import httpx
from loguru import logger


class ConfigStoreError(Exception):
    """Raised when a configuration store cannot serve a request."""


class ConfigStore(Protocol):
    """Read-only document store consumed by the rule resolver."""

    async def get(self, path: str, key: str) -> dict[str, Any] | None: ...


class MemoryConfigStore:
    """Dict-backed store, keyed by (path, key)."""

    def __init__(self, documents: dict[tuple[str, str], dict[str, Any]] | None = None):
        self.documents: dict[tuple[str, str], dict[str, Any]] = dict(documents or {})
        self.fetch_count = 0

    def put(self, path: str, key: str, document: dict[str, Any] | None) -> None:
        if document is None:
            self.documents.pop((path, key), None)
        else:
            self.documents[(path, key)] = document

    async def get(self, path: str, key: str) -> dict[str, Any] | None:
        self.fetch_count += 1
        return self.documents.get((path, key))


class JsonDirectoryConfigStore:
    """
    Store backed by a directory tree of JSON files.

    The document at (path, key) lives in `<root>/<path>/<key>.json`.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _document_path(self, path: str, key: str) -> Path:
        return self.root.joinpath(*path.split("/"), f"{key}.json")

    async def get(self, path: str, key: str) -> dict[str, Any] | None:
        file_path = self._document_path(path, key)
        if not file_path.exists():
            return None

        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigStoreError(f"Unreadable policy document {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigStoreError(f"Policy document {file_path} is not a JSON object")
        return data


class HttpConfigStore:
    """
    Store served over HTTP: GET {base_url}/{path}/{key} returns the document.

    404 means "no document". Any other failure raises ConfigStoreError.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def get(self, path: str, key: str) -> dict[str, Any] | None:
        url = f"{self.base_url}/{path.strip('/')}/{key}"
        try:
            response = await self.client.get(url)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.debug("Config store request to {} failed: {}", url, e)
            raise ConfigStoreError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise ConfigStoreError(f"GET {url} returned invalid JSON") from e

        if data is None:
            return None
        if not isinstance(data, dict):
            raise ConfigStoreError(f"GET {url} did not return a JSON object")
        return data
