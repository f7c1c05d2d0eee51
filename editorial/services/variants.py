import re
from typing import Dict, Iterable, List, Optional

CHANNELS = ("facebook", "instagram", "threads", "x", "telegram", "reddit")
PRIMARY = "blog"

# Character budgets per channel.
CHANNEL_BUDGETS: Dict[str, int] = {
    "facebook": 1100,
    "instagram": 1100,
    "threads": 500,
    "x": 280,
    "telegram": 1500,
    "reddit": 3800,
    PRIMARY: 12000,
}

# How the engine schema's variant slots map onto channels.
ENGINE_SLOTS = {"net_a": "facebook", "net_b": "x", "forum": "reddit", "long_form": PRIMARY}

INFO_PATH = "/centro-informativo"


def clamp(text: str, max_chars: int) -> str:
    """Trim to `max_chars`, preferring a word boundary and marking the cut."""
    s = (text or "").strip()
    if len(s) <= max_chars:
        return s
    cut = s[: max_chars - 1]
    space = cut.rfind(" ")
    if space > max_chars * 0.6:
        cut = cut[:space]
    return cut.rstrip(" ,;:.-") + "…"


def first_line(text: str) -> str:
    for line in (text or "").replace("\r", "").split("\n"):
        line = line.strip().lstrip("#").strip()
        if line:
            return line
    return ""


def body_summary(text: str, max_chars: int) -> str:
    """First two paragraphs after the title line."""
    lines = (text or "").replace("\r", "").strip().split("\n")
    rest = "\n".join(l.strip() for l in lines[1:]).strip()
    paras = [p.strip() for p in re.split(r"\n{2,}", rest) if p.strip()]
    return clamp("\n\n".join(paras[:2]) or rest, max_chars)


def hashtags(keywords: Iterable[str], max_count: int = 6) -> str:
    tags = []
    for k in list(keywords)[:max_count]:
        tag = re.sub(r"[^0-9a-záéíóúñü]+", "", str(k), flags=re.IGNORECASE)[:28]
        if tag:
            tags.append(f"#{tag}")
    return " ".join(tags)


def _join(parts: List[str]) -> str:
    return "\n".join(p for p in parts if p is not None).strip()


def ensure_variants(blog_text: str, given: Optional[Dict[str, str]] = None,
                    seo_keywords: Optional[List[str]] = None,
                    candidate_name: str = "", ballot: str = "") -> Dict[str, str]:
    """Return all six channel variants plus the primary, deriving any missing one from the long form."""
    given = {k: (v or "").strip() for k, v in (given or {}).items() if isinstance(v, str)}
    title = first_line(blog_text) or "Centro informativo ciudadano"
    summary = body_summary(blog_text, 900)
    tags = hashtags(seo_keywords or [])
    flat = summary.replace("\n", " ")

    if candidate_name:
        who = f"Con {candidate_name}{f' (tarjetón {ballot})' if ballot else ''}, trabajamos por seguridad proactiva y ciudadanía."
    else:
        who = "Seguridad proactiva y ciudadanía: lo que está en juego."

    fallbacks = {
        # news bulletin with context
        "facebook": _join([title, "", clamp(summary, 820), "", f"Lee más en {INFO_PATH}", f"\n{tags}" if tags else ""]),
        # short, pairs with the image
        "instagram": _join([title, "", who, "", clamp(flat, 300), "", tags]),
        # conversational
        "threads": _join([title, "", clamp(summary, 360), "", "¿Qué cambiarías tú para que esto no se repita? Te leo."]),
        "x": _join([title, "", clamp(flat, 200), "", INFO_PATH]),
        # bulletin / communiqué
        "telegram": _join([f"COMUNICADO · {title}", "", clamp(summary, 1300), "",
                           f"Consulta el análisis completo en {INFO_PATH}", f"\n{tags}" if tags else ""]),
        # explanatory, least promotional
        "reddit": _join([title, "", clamp(summary, 1200), "", f"Contexto: {INFO_PATH}", "",
                         "Pregunta abierta: ¿cómo debería responder el Estado y la ciudadanía ante este tipo de situaciones?"]),
    }

    out = {ch: clamp(given.get(ch) or fallbacks[ch], CHANNEL_BUDGETS[ch]) for ch in CHANNELS}
    out[PRIMARY] = clamp(given.get(PRIMARY) or blog_text, CHANNEL_BUDGETS[PRIMARY])
    return out
