"""Post-processing of the winning engine output into publishable content."""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from editorial.db import models
from editorial.policy import EditorialPolicy
from editorial.services.extraction import EngineOutput
from editorial.services.seeding import seeded_choice
from editorial.services.signals import NewsSignal
from editorial.services.variants import ENGINE_SLOTS, PRIMARY, ensure_variants, first_line

SUBTITLE_VERBS = ["impulsa", "apuesta por", "defiende", "prioriza", "propone fortalecer"]

ALIGNMENT_TEMPLATES = [
    "Este hecho se conecta con la propuesta de **{name}**{ballot} sobre {axis}.",
    "Desde la agenda de **{name}**{ballot}, la respuesta pasa por {axis}.",
    "Para **{name}**{ballot}, situaciones como esta confirman la urgencia de {axis}.",
    "La propuesta de **{name}**{ballot} en torno a {axis} ofrece una ruta concreta frente a este tema.",
]

_BULLET_RE = re.compile(r"^\s*(?:#{1,6}|[-*•·]|\d+[.)])\s*")
_SECTION_RE = re.compile(r"c[oó]mo\s+encaja", re.IGNORECASE)


@dataclass
class NormalizedContent:
    title: str
    subtitle: str
    body: str
    variants: Dict[str, str]
    seo_keywords: List[str]
    image_keywords: List[str]
    axis: str
    sentiment: str = "neutral"
    flags: List[str] = field(default_factory=list)


def _ballot(candidate: models.Candidate) -> str:
    return str(candidate.ballot_number or "").strip()


def _tidy(text: str) -> str:
    s = re.sub(r"\(\s*\)|\[\s*\]", " ", text or "")
    s = re.sub(r"\s+([,.;:!?])", r"\1", s)
    s = re.sub(r"([,;:])\1+", r"\1", s)
    s = re.sub(r"\s{2,}", " ", s)
    return s.strip(" \t-–—:|,;.#*\"'")


def sanitize_headline(title: str, candidate: models.Candidate, seed: str, policy: EditorialPolicy) -> str:
    """Strip the candidate's name and ballot number from a headline.

    Falls back to a seeded generic regional headline when what is left is too
    short to stand on its own.
    """
    s = (title or "").replace("**", " ")
    name = (candidate.name or "").strip()
    if name:
        s = re.sub(re.escape(name), " ", s, flags=re.IGNORECASE)
        for token in name.split():
            if len(token) >= 4:
                s = re.sub(rf"\b{re.escape(token)}\b", " ", s, flags=re.IGNORECASE)
    ballot = _ballot(candidate)
    if ballot:
        s = re.sub(rf"\b(?:tarjet[oó]n|n[uú]mero|no\.)\s*#?\s*(?=(?<!\d){re.escape(ballot)}(?!\d))", " ", s,
                   flags=re.IGNORECASE)
        s = re.sub(rf"(?<!\d){re.escape(ballot)}(?!\d)", " ", s)
    s = _tidy(s)
    if len(s) < policy.headline_min_chars or len(s.split()) < policy.headline_min_words:
        region = (candidate.region or "").strip() or "Colombia"
        s = seeded_choice(f"{seed}|headline", policy.generic_headlines).format(region=region)
    return s[:1].upper() + s[1:]


def extract_program_axes(proposals: str, policy: EditorialPolicy) -> List[str]:
    """Headings and bullets of the platform text first, then plain sentences."""
    lines = [l.strip() for l in (proposals or "").replace("\r", "").split("\n") if l.strip()]
    marked, plain = [], []
    for line in lines:
        cleaned = _tidy(_BULLET_RE.sub("", line))
        if not (policy.axis_min_chars <= len(cleaned) <= policy.axis_max_chars):
            continue
        (marked if _BULLET_RE.match(line) else plain).append(cleaned)
    if marked:
        return marked
    sentences = re.split(r"(?<=[.!?])\s+", " ".join(lines))
    return plain + [
        _tidy(s) for s in sentences
        if policy.axis_min_chars <= len(_tidy(s)) <= policy.axis_max_chars and _tidy(s) not in plain
    ]


def pick_axis(candidate: models.Candidate, seed: str, policy: EditorialPolicy) -> str:
    axes = extract_program_axes(candidate.proposals or "", policy)
    axis = seeded_choice(f"{seed}|axis", axes) if axes else policy.fallback_axis
    return axis[:1].lower() + axis[1:]


def build_subtitle(candidate: models.Candidate, axis: str, seed: str) -> str:
    verb = seeded_choice(f"{seed}|subtitle", SUBTITLE_VERBS)
    parts = [candidate.name]
    if candidate.office:
        parts.append(candidate.office)
    ballot = _ballot(candidate)
    who = ", ".join(p for p in parts if p)
    if ballot:
        who += f" (tarjetón {ballot})"
    return f"{who} {verb} {axis}"


def _mentions_axis(text: str, axes: List[str]) -> bool:
    low = text.lower()
    for axis in axes:
        words = [w for w in re.findall(r"\w+", axis.lower()) if len(w) >= 5]
        if not words and axis.strip() and axis.strip().lower() in low:
            return True
        if words and sum(1 for w in words if w in low) >= min(2, len(words)):
            return True
    return False


def has_alignment(body: str, candidate: models.Candidate, axes: List[str]) -> bool:
    """True when one paragraph bolds the candidate with the ballot and ties the piece to a platform axis."""
    bold = f"**{(candidate.name or '').strip()}**".lower()
    ballot = _ballot(candidate)
    for para in re.split(r"\n\s*\n", body or ""):
        if bold not in para.lower():
            continue
        if ballot and not re.search(rf"(?<!\d){re.escape(ballot)}(?!\d)", para):
            continue
        if _mentions_axis(para, axes):
            return True
    return False


def inject_alignment(body: str, candidate: models.Candidate, axis: str, seed: str,
                     axes: Optional[List[str]] = None) -> str:
    """Add one candidate-alignment paragraph unless the text already carries one."""
    name = (candidate.name or "").strip()
    if not name or has_alignment(body, candidate, [axis, *(axes or [])]):
        return body
    ballot = _ballot(candidate)
    cue = seeded_choice(f"{seed}|alignment", ALIGNMENT_TEMPLATES).format(
        name=name, ballot=f" (tarjetón {ballot})" if ballot else "", axis=axis)

    lines = (body or "").rstrip().split("\n")
    at = None
    for i, line in enumerate(lines):
        if _SECTION_RE.search(line):
            at = len(lines)
            for j in range(i + 1, len(lines)):
                if lines[j].lstrip().startswith("#") or lines[j].strip().lower().startswith("fuente:"):
                    at = j
                    break
            break
    if at is None:
        at = next((i for i, l in enumerate(lines) if l.strip().lower().startswith("fuente:")), len(lines))
    while at > 0 and not lines[at - 1].strip():
        at -= 1
    return "\n".join(lines[:at] + ["", cue, ""] + lines[at:]).strip()


def backfill_seo(keywords: List[str], candidate: models.Candidate, policy: EditorialPolicy,
                 minimum: int = 8, maximum: int = 14) -> List[str]:
    out: List[str] = []
    seen = set()

    def add(k: Optional[str]) -> None:
        k = (k or "").strip()
        if k and k.lower() not in seen:
            seen.add(k.lower())
            out.append(k)

    for k in keywords or []:
        add(k)
    if len(out) < minimum:
        ballot = _ballot(candidate)
        for k in [candidate.name, f"{candidate.name} {ballot}" if ballot else None,
                  candidate.region, candidate.office, *policy.civic_seo_terms]:
            add(k)
    return out[:maximum]


def _replace_title(body: str, headline: str) -> str:
    lines = (body or "").strip().split("\n")
    for i, line in enumerate(lines):
        if line.strip():
            lines[i] = headline
            return "\n".join(lines)
    return headline


def normalize(output: EngineOutput, candidate: models.Candidate, signal: Optional[NewsSignal],
              seed: str, policy: EditorialPolicy) -> NormalizedContent:
    headline = sanitize_headline(output.title or first_line(output.long_form), candidate, seed, policy)
    axis = pick_axis(candidate, seed, policy)
    body = _replace_title(output.long_form, headline)
    body = inject_alignment(body, candidate, axis, seed, extract_program_axes(candidate.proposals or "", policy))
    flags = []
    if signal is not None and signal.url and signal.provider != "reframe" and "fuente:" not in body.lower():
        body = f"{body}\n\nFuente: {signal.url}"
        flags.append("citation_appended")

    seo = backfill_seo(output.seo_keywords, candidate, policy)
    image_keywords = [k for k in (output.image_keywords or []) if k] or \
        [k for k in seo if k.lower() != (candidate.name or "").lower()][:8]

    given = {channel: getattr(output.platform_variants, slot) for slot, channel in ENGINE_SLOTS.items()
             if channel != PRIMARY}
    given[PRIMARY] = body
    variants = ensure_variants(body, given, seo, candidate.name or "", _ballot(candidate))

    return NormalizedContent(
        title=headline,
        subtitle=build_subtitle(candidate, axis, seed),
        body=body,
        variants=variants,
        seo_keywords=seo,
        image_keywords=image_keywords,
        axis=axis,
        sentiment=output.sentiment,
        flags=flags,
    )
