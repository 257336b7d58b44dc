"""Standards corpus loading.

The standards are a set of named markdown documents consumed as opaque text.
They come either from an HTTP(S) base URL (one GET per document) or from a
local directory, such as a clone of the standards repository. A load either
returns every requested document or fails; a partial cache is never handed
to the pipeline.

Typical usage::

    loader = StandardsLoader(settings.standards)
    cache = await loader.load()
    cache.excerpt("CODING_STANDARDS.md", 2000)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

import httpx

from repoforge.config import StandardsSettings
from repoforge.errors import StandardsError


class StandardsCache(Mapping[str, str]):
    """Read-only mapping from document name to full text."""

    def __init__(self, documents: Mapping[str, str]) -> None:
        self._documents = MappingProxyType(dict(documents))

    def __getitem__(self, name: str) -> str:
        return self._documents[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __repr__(self) -> str:
        return f"StandardsCache({list(self._documents)})"

    def excerpt(self, name: str, limit: int) -> str:
        """Return the first *limit* characters of document *name*."""
        return self._documents[name][:limit]

    def missing(self, names: list[str]) -> list[str]:
        return [n for n in names if n not in self._documents]


class StandardsLoader:
    """Loads the configured standards documents into a ``StandardsCache``."""

    def __init__(self, settings: StandardsSettings) -> None:
        self.settings = settings

    @property
    def is_remote(self) -> bool:
        return self.settings.source.startswith(("http://", "https://"))

    async def load(self) -> StandardsCache:
        """Load every configured document.

        Returns:
            A ``StandardsCache`` keyed by document name.

        Raises:
            StandardsError: If any document is missing, empty, or unreadable.
        """
        if not self.settings.documents:
            raise StandardsError("No standards documents configured")

        if self.is_remote:
            documents = await self._load_remote()
        else:
            documents = await asyncio.to_thread(self._load_local)

        empty = [name for name, text in documents.items() if not text.strip()]
        if empty:
            raise StandardsError(f"Empty standards document(s): {', '.join(empty)}", missing=empty)
        return StandardsCache(documents)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _load_local(self) -> dict[str, str]:
        root = Path(self.settings.source).expanduser()
        if not root.is_dir():
            raise StandardsError(f"Standards directory not found: {root}")

        documents: dict[str, str] = {}
        missing: list[str] = []
        for name in self.settings.documents:
            # Accept both a flat directory and a repository checkout.
            candidates = [root / name, root / "docs" / "standards" / name]
            path = next((c for c in candidates if c.is_file()), None)
            if path is None:
                missing.append(name)
                continue
            try:
                documents[name] = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise StandardsError(f"Could not read {path}: {exc}") from exc

        if missing:
            raise StandardsError(
                f"Missing standards document(s) in {root}: {', '.join(missing)}",
                missing=missing,
            )
        return documents

    async def _load_remote(self) -> dict[str, str]:
        base_url = self.settings.source.rstrip("/")
        timeout = httpx.Timeout(self.settings.timeout, connect=10.0)

        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:

            async def _fetch(name: str) -> tuple[str, str | None, str]:
                url = f"{base_url}/{name}"
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    return name, None, f"HTTP {exc.response.status_code}"
                except httpx.HTTPError as exc:
                    return name, None, f"{type(exc).__name__}: {exc}"
                return name, response.text, ""

            results = await asyncio.gather(*(_fetch(n) for n in self.settings.documents))

        failures = [(name, error) for name, text, error in results if text is None]
        if failures:
            detail = "; ".join(f"{name} ({error})" for name, error in failures)
            raise StandardsError(
                f"Failed to fetch standards from {base_url}: {detail}",
                missing=[name for name, _ in failures],
            )
        return {name: text for name, text, _ in results if text is not None}
