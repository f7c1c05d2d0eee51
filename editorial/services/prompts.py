from textwrap import dedent
from typing import List, Optional

from editorial.db import models
from editorial.policy import EditorialPolicy
from editorial.services.signals import NewsSignal

SYSTEM_PROMPT = (
    "Asistente de redacción cívica y política para Colombia. Sé sobrio, institucional, verificable y ético. "
    "Prohibido: desinformación, urgencia falsa, miedo, ataques personales, incitación a la violencia, "
    "segmentación psicológica o demográfica. No inventes cifras ni datos. Escribe en español de Colombia. "
    "Responde SOLO con JSON válido, sin markdown."
)

SCHEMA = dedent('''
{
  "title": string,
  "sentiment": "positive" | "negative" | "neutral",
  "seo_keywords": string[],
  "master_editorial": string,
  "platform_variants": {
    "long_form": string,
    "net_a": string,
    "net_b": string,
    "forum": string
  },
  "image_keywords": string[]
}''').strip()

INCLINATIONS = {
    "neutral": "Informativo y equilibrado, sin llamado a la acción.",
    "persuasivo_suave": "Informativo con cierre propositivo y un llamado a la acción suave.",
    "correctivo": "Aclara el contexto y corrige percepciones erróneas con datos verificables de la fuente.",
}

STYLES = {
    "noticiero_portada": "Estilo portada de noticiero: titular fuerte, entradilla, contexto y cierre.",
    "analisis": "Estilo análisis: contexto, causas, consecuencias y opciones de política pública.",
    "cronica": "Estilo crónica: narración sobria centrada en la ciudadanía afectada.",
}

DEFAULT_INCLINATION = "persuasivo_suave"
DEFAULT_STYLE = "noticiero_portada"


def _signal_block(signal: Optional[NewsSignal], reframe_body: Optional[str]) -> List[str]:
    if signal is None:
        return [
            "No se encontró noticia nueva relevante.",
            "Redacta sobre los temas cívicos generales de la región y los ejes del programa, sin inventar hechos.",
        ]
    if signal.provider == "reframe":
        return [
            "No hay noticia nueva. Reescritura: toma la nota anterior como base, cambia título, enfoque y SEO; "
            "mantén la verificabilidad.",
            f"Titular anterior: {signal.title}",
            f"Nota anterior:\n{(reframe_body or '')[:2500]}",
        ]
    lines = ["Noticia seleccionada:"]
    if signal.title:
        lines.append(f"Titular: {signal.title}")
    lines.append(f"URL: {signal.url}")
    if signal.source_name:
        lines.append(f"Medio: {signal.source_name}")
    if signal.published_at:
        lines.append(f"Fecha: {signal.published_at.isoformat()}")
    lines.append(f"Clasificación: {signal.classification}")
    return lines


def build_generation_prompt(candidate: models.Candidate, signal: Optional[NewsSignal], policy: EditorialPolicy,
                            inclination: str = DEFAULT_INCLINATION, style: str = DEFAULT_STYLE,
                            notes: Optional[str] = None, reframe_body: Optional[str] = None) -> str:
    citation = f"Fuente: {signal.url}" if signal is not None and signal.url else "Fuente: (sin enlace)"
    parts = [
        f"Candidato: {candidate.name} ({candidate.office})",
        f"Partido: {candidate.party}" if candidate.party else "",
        f"Región: {candidate.region}",
        f"Número en tarjetón: {candidate.ballot_number}" if candidate.ballot_number else "",
        "",
        "Biografía (resumen):",
        (candidate.biography or "")[:1500],
        "",
        "Programa / Propuestas (extracto):",
        (candidate.proposals or "")[:2000],
        "",
        *_signal_block(signal, reframe_body),
        "",
        f"Inclinación editorial: {INCLINATIONS.get(inclination, INCLINATIONS[DEFAULT_INCLINATION])}",
        f"Estilo: {STYLES.get(style, STYLES[DEFAULT_STYLE])}",
        f"Notas del editor: {notes.strip()[:600]}" if notes and notes.strip() else "",
        "",
        "Reglas:",
        f"- long_form: artículo de {policy.word_count_min + 20} a {policy.word_count_max - 60} palabras; "
        "primera línea = título; incluye una sección \"Cómo encaja con la agenda\".",
        "- El título NO menciona al candidato ni su número.",
        f"- Menciona en negrilla **{candidate.name}** con su número y conecta la noticia con 1-2 ejes del programa.",
        f"- Última línea del long_form: \"{citation}\".",
        "- net_a: 700-900 caracteres; net_b: máximo 280 caracteres; forum: tono analítico, 6-10 líneas.",
        "- seo_keywords: 8-14 keywords sin hashtags; image_keywords: 6-12 palabras para buscar fotos.",
        "",
        "Devuelve JSON con el esquema:",
        SCHEMA,
    ]
    return "\n".join(p for p in parts if p is not None)


def build_corrective_prompt(long_form: str, problems: List[str], policy: EditorialPolicy, reserve: int = 0) -> str:
    """`reserve` is the number of words added after generation (alignment cue, source line)."""
    low = policy.word_count_min + 20
    high = max(low + 20, policy.word_count_max - 60 - reserve)
    asks = []
    if "language" in problems:
        asks.append("- Traduce el texto completo al español de Colombia.")
    if any(p.startswith("too_short") for p in problems):
        asks.append(f"- Reestructura y amplía el contexto hasta {low}-{high} "
                    "palabras usando solo la información ya presente.")
    if any(p.startswith("too_long") for p in problems):
        asks.append(f"- Condensa a {low}-{high} palabras.")
    return "\n".join([
        "Corrige el siguiente artículo sin inventar hechos, cifras ni citas nuevas.",
        *asks,
        "- Conserva el título, la mención del candidato y la línea \"Fuente:\".",
        "",
        "Artículo:",
        long_form,
        "",
        "Devuelve JSON con el esquema:",
        SCHEMA,
    ])


def build_image_prompt(keywords: List[str], region: str) -> str:
    topic = ", ".join(k for k in keywords[:8] if k) or "vida cotidiana y ciudadanía"
    return f"Fotografía editorial realista en {region or 'Colombia'}: {topic}. Luz natural, composición sobria."
