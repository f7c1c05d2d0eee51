"""Tolerant recovery of the engine JSON schema from free-form model output."""
import json
import re
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from editorial.services.variants import CHANNEL_BUDGETS, body_summary, clamp, first_line

SENTIMENTS = {"positive", "negative", "neutral"}

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


class PlatformVariants(BaseModel):
    long_form: str = ""
    net_a: str = ""
    net_b: str = ""
    forum: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""


class EngineOutput(BaseModel):
    title: str = ""
    sentiment: str = "neutral"
    seo_keywords: List[str] = Field(default_factory=list)
    master_editorial: str = ""
    platform_variants: PlatformVariants = Field(default_factory=PlatformVariants)
    image_keywords: Optional[List[str]] = None
    # how the object was recovered: raw | fenced | balanced | plain_text
    extraction: str = "raw"

    @field_validator("seo_keywords", "image_keywords", mode="before")
    @classmethod
    def _keywords(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, list):
            return []
        return [str(k).strip().lstrip("#") for k in v if isinstance(k, str) and k.strip()][:16]

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v: Any) -> str:
        s = str(v or "").strip().lower()
        return s if s in SENTIMENTS else "neutral"

    @field_validator("platform_variants", mode="before")
    @classmethod
    def _variants(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @field_validator("title", "master_editorial", mode="before")
    @classmethod
    def _str(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @model_validator(mode="after")
    def _fill(self) -> "EngineOutput":
        pv = self.platform_variants
        if not pv.long_form and self.master_editorial:
            pv.long_form = self.master_editorial
        if not self.master_editorial and pv.long_form:
            self.master_editorial = pv.long_form
        if not self.title:
            self.title = first_line(pv.long_form)[:220]
        return self

    @property
    def long_form(self) -> str:
        return self.platform_variants.long_form

    def combined_text(self) -> str:
        pv = self.platform_variants
        parts = [self.title, self.master_editorial, pv.long_form, pv.net_a, pv.net_b, pv.forum]
        return "\n\n".join(p for p in parts if p)


def strip_fences(text: str) -> Optional[str]:
    m = _FENCE_RE.search(text or "")
    return m.group(1).strip() if m else None


def balanced_objects(text: str) -> List[str]:
    """Top-level `{...}` substrings, honoring JSON string quoting."""
    out: List[str] = []
    depth = 0
    start = -1
    in_str = False
    escape = False
    for i, ch in enumerate(text or ""):
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"' and depth > 0:
            in_str = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                out.append(text[start: i + 1])
    return out


def _loads(candidate: Optional[str]) -> Optional[dict]:
    if not candidate:
        return None
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _validate(data: Optional[dict], method: str) -> Optional[EngineOutput]:
    if data is None:
        return None
    try:
        out = EngineOutput.model_validate({**data, "extraction": method})
    except ValidationError:
        return None
    return out if out.long_form else None


def synthesize_from_text(text: str) -> EngineOutput:
    """Treat raw text as the long-form article and derive the rest deterministically."""
    body = (text or "").strip()
    return EngineOutput(
        title=first_line(body)[:220],
        master_editorial=body,
        platform_variants=PlatformVariants(
            long_form=body,
            net_a=body_summary(body, CHANNEL_BUDGETS["facebook"]),
            net_b=clamp(body_summary(body, 600).replace("\n", " "), CHANNEL_BUDGETS["x"]),
            forum=body_summary(body, CHANNEL_BUDGETS["reddit"]),
        ),
        extraction="plain_text",
    )


def extract_output(text: str) -> Tuple[Optional[EngineOutput], str]:
    """Recover an EngineOutput: raw → fenced → largest balanced object → plain text.

    Returns (None, "malformed") when the text looks like JSON but carries no
    usable article, since reading it as prose would publish markup.
    """
    raw = (text or "").strip()
    if not raw:
        return None, "empty"

    out = _validate(_loads(raw), "raw")
    if out:
        return out, "raw"

    out = _validate(_loads(strip_fences(raw)), "fenced")
    if out:
        return out, "fenced"

    for candidate in sorted(balanced_objects(raw), key=len, reverse=True):
        out = _validate(_loads(candidate), "balanced")
        if out:
            return out, "balanced"

    prose = _FENCE_RE.sub("", raw).strip()
    if not prose or prose.startswith("{") or prose.startswith("["):
        return None, "malformed"
    return synthesize_from_text(prose), "plain_text"
