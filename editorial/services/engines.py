"""Generative backend adapters.

Each adapter talks to one provider and hands back an `EngineReply`; nothing
past this module needs to know a provider's response shape.
"""
import base64
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from editorial.config import settings

logger = logging.getLogger(__name__)

MIN_TIMEOUT = 20.0
MAX_TIMEOUT = 32.0

IMAGE_SYSTEM_PROMPT = (
    "Generador de imagen editorial. Devuelve JSON {\"image_url\": string} o una URL de imagen. "
    "Reglas: sin texto, sin logos, sin marcas, sin propaganda, sin violencia explícita, "
    "sin rostros reales identificables. Estilo fotoperiodístico realista y sobrio."
)


def clamp_timeout(seconds: float) -> float:
    return max(MIN_TIMEOUT, min(MAX_TIMEOUT, float(seconds)))


@dataclass
class EngineReply:
    engine: str
    ok: bool
    text: str = ""
    image_url: str = ""
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    image_content_type: str = ""
    status: Optional[int] = None
    reason: Optional[str] = None
    elapsed_ms: int = 0
    meta: Dict[str, Any] = field(default_factory=dict)

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status,
            "reason": self.reason,
            "elapsed_ms": self.elapsed_ms,
            "chars": len(self.text or ""),
            **self.meta,
        }


def _failure(engine: str, reason: str, started: float, status: Optional[int] = None) -> EngineReply:
    return EngineReply(engine=engine, ok=False, status=status, reason=reason,
                       elapsed_ms=int((time.monotonic() - started) * 1000))


def _host(url: str) -> str:
    try:
        return urlparse(url).netloc
    except ValueError:
        return ""


class SiEngine:
    """First-party editorial service: generic `{system, user, constraints}` contract."""

    name = "si"

    def __init__(self, endpoint: Optional[str] = None, api_key: Optional[str] = None,
                 image_endpoint: Optional[str] = None, timeout: Optional[float] = None):
        self.endpoint = endpoint if endpoint is not None else settings.si_endpoint
        self.api_key = api_key if api_key is not None else settings.si_api_key
        self.image_endpoint = image_endpoint if image_endpoint is not None else (settings.si_image_endpoint or self.endpoint)
        self.timeout = clamp_timeout(timeout if timeout is not None else settings.si_timeout)

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        with httpx.Client(timeout=httpx.Timeout(self.timeout, connect=5)) as c:
            return c.post(url, headers=headers, json=payload)

    def complete(self, system: str, user: str, max_output_chars: int = 9000) -> EngineReply:
        started = time.monotonic()
        if not self.configured:
            return _failure(self.name, "not_configured", started)
        payload = {
            "system": system,
            "user": user,
            "constraints": {"content_type": "blog", "max_output_chars": max_output_chars},
        }
        try:
            r = self._post(self.endpoint, payload)
        except httpx.TimeoutException:
            return _failure(self.name, "timeout", started)
        except httpx.HTTPError as e:
            logger.warning("[si] request error: %s", e)
            return _failure(self.name, "network_error", started)
        if r.status_code >= 400:
            return _failure(self.name, f"http_{r.status_code}", started, r.status_code)
        try:
            data = r.json()
        except ValueError:
            # plain-text bodies are acceptable; extraction handles them
            data = {"text": r.text}
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            return _failure(self.name, "empty_response", started, r.status_code)
        return EngineReply(engine=self.name, ok=True, text=text.strip()[:max_output_chars],
                           status=r.status_code, elapsed_ms=int((time.monotonic() - started) * 1000))

    def generate_image(self, prompt: str) -> EngineReply:
        started = time.monotonic()
        if not (self.image_endpoint and self.api_key):
            return _failure(self.name, "not_configured", started)
        payload = {"system": IMAGE_SYSTEM_PROMPT, "user": prompt,
                   "constraints": {"content_type": "image", "max_output_chars": 1400}}
        try:
            r = self._post(self.image_endpoint, payload)
        except httpx.TimeoutException:
            return _failure(self.name, "timeout", started)
        except httpx.HTTPError:
            return _failure(self.name, "network_error", started)
        if r.status_code >= 400:
            return _failure(self.name, f"http_{r.status_code}", started, r.status_code)
        image_url = ""
        try:
            data = r.json()
            if isinstance(data, dict):
                image_url = str(data.get("image_url") or "").strip()
        except ValueError:
            m = re.search(r"https?://\S+", r.text or "")
            image_url = m.group(0).strip() if m else ""
        if not image_url.startswith(("http://", "https://")):
            return _failure(self.name, "no_image_url", started, r.status_code)
        return EngineReply(engine=self.name, ok=True, image_url=image_url, status=r.status_code,
                           elapsed_ms=int((time.monotonic() - started) * 1000))


class OpenAIEngine:
    """OpenAI-compatible chat completions and image generations."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 model: Optional[str] = None, image_model: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        base = (base_url if base_url is not None else settings.openai_base_url).rstrip("/")
        self.base_url = base[:-3] if base.endswith("/v1") else base
        self.model = model or settings.openai_model
        self.image_model = image_model or settings.openai_image_model
        self.timeout = clamp_timeout(timeout if timeout is not None else settings.openai_timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        with httpx.Client(timeout=httpx.Timeout(self.timeout, connect=5)) as c:
            return c.post(f"{self.base_url}{path}", headers=headers, json=payload)

    def complete(self, system: str, user: str, max_output_chars: int = 9000) -> EngineReply:
        started = time.monotonic()
        if not self.configured:
            return _failure(self.name, "not_configured", started)
        payload: Dict[str, Any] = {
            "model": self.model,
            "temperature": 0.4,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        # Some compatible providers reject response_format
        if "openai.com" in _host(self.base_url):
            payload["response_format"] = {"type": "json_object"}
        try:
            r = self._post("/v1/chat/completions", payload)
        except httpx.TimeoutException:
            return _failure(self.name, "timeout", started)
        except httpx.HTTPError as e:
            logger.warning("[openai] request error: %s", e)
            return _failure(self.name, "network_error", started)
        if r.status_code >= 400:
            return _failure(self.name, f"http_{r.status_code}", started, r.status_code)
        try:
            data = r.json()
            text = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            return _failure(self.name, "bad_response", started, r.status_code)
        if not text.strip():
            return _failure(self.name, "empty_response", started, r.status_code)
        return EngineReply(engine=self.name, ok=True, text=text.strip()[:max_output_chars],
                           status=r.status_code, elapsed_ms=int((time.monotonic() - started) * 1000),
                           meta={"model": self.model})

    def generate_image(self, prompt: str) -> EngineReply:
        started = time.monotonic()
        if not self.configured:
            return _failure(self.name, "not_configured", started)
        # Most compatible providers do not implement /images
        if "openai.com" not in _host(self.base_url):
            return _failure(self.name, "images_unsupported_base_url", started)
        try:
            r = self._post("/v1/images/generations",
                           {"model": self.image_model, "prompt": prompt, "size": "1024x1024"})
        except httpx.TimeoutException:
            return _failure(self.name, "timeout", started)
        except httpx.HTTPError:
            return _failure(self.name, "network_error", started)
        if r.status_code >= 400:
            return _failure(self.name, f"http_{r.status_code}", started, r.status_code)
        try:
            item = r.json()["data"][0]
        except (ValueError, KeyError, IndexError, TypeError):
            return _failure(self.name, "bad_response", started, r.status_code)
        elapsed = int((time.monotonic() - started) * 1000)
        if isinstance(item.get("url"), str) and item["url"].strip():
            return EngineReply(engine=self.name, ok=True, image_url=item["url"].strip(), status=r.status_code,
                               elapsed_ms=elapsed, meta={"model": self.image_model})
        if isinstance(item.get("b64_json"), str):
            try:
                raw = base64.b64decode(item["b64_json"])
            except ValueError:
                return _failure(self.name, "bad_response", started, r.status_code)
            return EngineReply(engine=self.name, ok=True, image_bytes=raw, image_content_type="image/png",
                               status=r.status_code, elapsed_ms=elapsed, meta={"model": self.image_model})
        return _failure(self.name, "bad_response", started, r.status_code)


def build_engines() -> Dict[str, Any]:
    """Both adapters keyed by name, configured or not (diagnostics report both)."""
    return {SiEngine.name: SiEngine(), OpenAIEngine.name: OpenAIEngine()}
