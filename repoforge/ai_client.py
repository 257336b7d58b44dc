"""Async client for the AI code generation service.

Wraps an Ollama-compatible ``/api/generate`` endpoint with retry and
exponential backoff for transient failures (transport errors, timeouts,
HTTP 408, 429 and 5xx) and validates the shape of every answer before
handing it to a stage. Non-transient failures (authentication, malformed requests) fail
on the first attempt.

The client never raises for service errors: every call returns a
``CodegenResponse`` whose ``success`` flag and ``reason`` tell the caller
what happened.

Typical usage::

    client = CodegenClient(settings.codegen)
    resp = await client.generate(PromptContext(stage="generate-tests", task="...", config=cfg))
    if resp.success:
        print(resp.text)
"""

from __future__ import annotations

import asyncio
import re
import time

import httpx
from pydantic import BaseModel, Field

from repoforge.config import CodegenSettings
from repoforge.models import ProjectConfig

# Reasons attached to failed responses.
REASON_TRANSIENT_EXHAUSTED = "transient-exhausted"
REASON_NON_TRANSIENT = "non-transient"
REASON_INVALID_SHAPE = "invalid-shape"

SYSTEM_PROMPT = """You are a senior software architect and security engineer \
generating production-ready project code.

Rules:
1. Follow the supplied engineering standards.
2. Annotate every security or compliance control you implement with a marker \
comment naming the framework and control, for example `@nist: AC-2`, \
`@soc2: CC6.1`, `@gdpr: Art.32`, `@hipaa: 164.312`, `@pci-dss: 8.2`.
3. Produce complete, working code. No placeholders, no stubs, no TODOs.
4. Include error handling, input validation and structured logging.
5. Answer with the file content only, in a single fenced code block.
"""

_PLACEHOLDER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\{\{\s*[A-Z][A-Z0-9_]*\s*\}\}"),
    re.compile(r"<\s*(?:YOUR|INSERT)_[A-Z0-9_]+\s*>"),
    re.compile(r"<\s*PLACEHOLDER[^>]*>", re.IGNORECASE),
    re.compile(r"\[\s*(?:INSERT|PLACEHOLDER)\b[^\]]*\]", re.IGNORECASE),
    re.compile(r"__PLACEHOLDER__"),
]

# Request Timeout and Too Many Requests; every 5xx is transient as well.
_TRANSIENT_STATUS = frozenset({408, 429})

_FENCE_RE = re.compile(r"```[\w+-]*[^\n]*\n(.*?)\n?```", re.DOTALL)


class PromptContext(BaseModel):
    """Everything a single generation request needs."""

    stage: str = Field(..., description="Name of the requesting stage")
    task: str = Field(..., description="What to generate")
    config: ProjectConfig
    excerpts: dict[str, str] = Field(
        default_factory=dict, description="Bounded excerpts of relevant standards documents"
    )
    output_language: str = Field(default="", description="Code fence language hint")

    def render(self) -> str:
        """Render the user prompt sent alongside ``SYSTEM_PROMPT``."""
        lines = [
            f"# Task ({self.stage})",
            "",
            self.task.strip(),
            "",
            "# Project configuration",
            "",
            "```json",
            self.config.to_prompt_json(),
            "```",
            "",
        ]
        for name, text in self.excerpts.items():
            lines.extend([f"# Standards: {name}", "", text.strip(), ""])
        if self.output_language == "markdown":
            lines.append("Respond with the markdown document only.")
        elif self.output_language:
            lines.append(f"Respond with a single ```{self.output_language} code block.")
        return "\n".join(lines)


class CodegenResponse(BaseModel):
    """Structured response from a generation call."""

    text: str = Field(default="", description="Validated generated text")
    model: str = Field(default="", description="Model that produced the response")
    duration_ms: float = Field(default=0.0, description="Wall-clock time across all attempts in ms")
    attempts: int = Field(default=0, description="Requests sent, including retries")
    success: bool = Field(default=True, description="Whether the request succeeded")
    error: str | None = Field(default=None, description="Error message on failure")
    reason: str | None = Field(default=None, description="Failure category on failure")


class _TransientError(Exception):
    def __init__(self, message: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class _PermanentError(Exception):
    pass


class CodegenClient:
    """Async client for an Ollama-compatible generation API."""

    def __init__(self, settings: CodegenSettings | None = None) -> None:
        self.settings = settings or CodegenSettings()
        self.base_url = self.settings.url.rstrip("/")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our base URL and timeout."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.settings.timeout, connect=10.0),
        )

    def backoff_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay before retrying after failed *attempt* (1-based)."""
        if retry_after is not None:
            return min(retry_after, self.settings.backoff_max)
        return min(self.settings.backoff_base * 2 ** (attempt - 1), self.settings.backoff_max)

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        value = response.headers.get("retry-after")
        try:
            return float(value) if value is not None else None
        except ValueError:
            return None

    async def _request(self, payload: dict) -> dict:
        """Send one request, classifying failures as transient or permanent."""
        try:
            async with self._client() as client:
                response = await client.post("/api/generate", json=payload)
        # Misconfigured URL or a request httpx itself rejects: retrying cannot help.
        except (httpx.UnsupportedProtocol, httpx.LocalProtocolError) as exc:
            raise _PermanentError(f"{type(exc).__name__}: {exc}") from exc
        except httpx.TransportError as exc:
            raise _TransientError(f"{type(exc).__name__}: {exc}") from exc
        except httpx.HTTPError as exc:
            # DecodingError, TooManyRedirects
            raise _PermanentError(f"{type(exc).__name__}: {exc}") from exc

        status = response.status_code
        if status in _TRANSIENT_STATUS or status >= 500:
            raise _TransientError(
                f"HTTP {status}: {response.text[:200]}", retry_after=self._retry_after(response)
            )
        if status >= 400:
            raise _PermanentError(f"HTTP {status}: {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise _PermanentError(f"Malformed JSON response: {exc}") from exc
        if not isinstance(data, dict):
            raise _PermanentError("Malformed response: expected a JSON object")
        if data.get("error"):
            raise _PermanentError(f"Service error: {data['error']}")
        return data

    # ------------------------------------------------------------------
    # Response shape
    # ------------------------------------------------------------------

    @staticmethod
    def extract_code(text: str, whole_only: bool = False) -> str:
        """Strip a markdown fence around the answer.

        A fence wrapping the whole answer is always removed. Unless
        *whole_only* is set, an answer containing exactly one fenced block
        surrounded by prose is reduced to that block's body.
        """
        stripped = text.strip()
        if not stripped:
            return ""
        lines = stripped.splitlines()
        if len(lines) >= 2 and lines[0].startswith("```") and lines[-1].strip() == "```":
            body = "\n".join(lines[1:-1]).strip("\n")
            return body + "\n" if body.strip() else ""
        if not whole_only:
            blocks = _FENCE_RE.findall(stripped)
            if len(blocks) == 1:
                return blocks[0].strip("\n") + "\n"
        return stripped + "\n"

    @staticmethod
    def find_placeholders(text: str) -> list[str]:
        """Return every unresolved placeholder token in *text*."""
        found: list[str] = []
        for pattern in _PLACEHOLDER_PATTERNS:
            found.extend(m.group(0) for m in pattern.finditer(text))
        return found

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(self, context: PromptContext) -> CodegenResponse:
        """Generate text for *context*, retrying transient failures.

        Args:
            context: Stage, task, project configuration and standards
                excerpts rendered into the user prompt.

        Returns:
            A successful ``CodegenResponse`` with validated text, or a failed
            one whose ``reason`` is ``transient-exhausted``,
            ``non-transient`` or ``invalid-shape``.
        """
        model = self.settings.model
        payload: dict = {
            "model": model,
            "system": SYSTEM_PROMPT,
            "prompt": context.render(),
            "stream": False,
            "options": {
                "temperature": self.settings.temperature,
                "num_predict": self.settings.max_tokens,
            },
        }

        start = time.monotonic()
        last_error = ""
        for attempt in range(1, self.settings.max_attempts + 1):
            try:
                data = await self._request(payload)
            except _PermanentError as exc:
                return self._failure(model, str(exc), REASON_NON_TRANSIENT, attempt, start)
            except _TransientError as exc:
                last_error = str(exc)
                if attempt < self.settings.max_attempts:
                    await asyncio.sleep(self.backoff_delay(attempt, exc.retry_after))
                continue

            text = self.extract_code(
                data.get("response", ""), whole_only=context.output_language == "markdown"
            )
            if not text.strip():
                return self._failure(model, "Empty response", REASON_INVALID_SHAPE, attempt, start)
            placeholders = self.find_placeholders(text)
            if placeholders:
                return self._failure(
                    model,
                    f"Unresolved placeholder(s): {', '.join(sorted(set(placeholders))[:5])}",
                    REASON_INVALID_SHAPE,
                    attempt,
                    start,
                )
            return CodegenResponse(
                text=text,
                model=data.get("model", model),
                duration_ms=(time.monotonic() - start) * 1000.0,
                attempts=attempt,
                success=True,
            )

        return self._failure(
            model,
            f"Gave up after {self.settings.max_attempts} attempt(s): {last_error}",
            REASON_TRANSIENT_EXHAUSTED,
            self.settings.max_attempts,
            start,
        )

    async def is_available(self) -> bool:
        """Return ``True`` if the service responds to ``/api/tags`` with HTTP 200.

        Transport errors count as unavailable.
        """
        try:
            async with self._client() as client:
                response = await client.get("/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    @staticmethod
    def _failure(
        model: str, error: str, reason: str, attempts: int, start: float
    ) -> CodegenResponse:
        return CodegenResponse(
            model=model,
            success=False,
            error=error,
            reason=reason,
            attempts=attempts,
            duration_ms=(time.monotonic() - start) * 1000.0,
        )
