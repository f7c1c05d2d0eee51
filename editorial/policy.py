"""Editorial policy data.

Keyword catalogs, heuristic thresholds and denylists are hand-tuned editorial
choices rather than derived constants. They live here as defaults and can be
replaced wholesale or per field by a JSON file named in EDITORIAL_POLICY_PATH.
"""
import json
import logging
import os
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from editorial.config import settings

logger = logging.getLogger(__name__)


class EditorialPolicy(BaseModel):
    # --- news ranking ---
    grave_keywords: List[str] = Field(default_factory=lambda: [
        "secuestro", "extors", "homicid", "asesin", "sicari", "masacre", "atent",
        "captur", "allan", "incaut", "narcot", "corrup", "fraude", "abuso",
        "violenc", "robo", "atraco", "accidente", "choque", "muert", "herid",
        "incendio", "explos", "amenaza", "emergencia", "inundac", "desliz",
    ])
    severity_keywords: List[str] = Field(default_factory=lambda: [
        "secuestro", "extors", "homicid", "asesin", "sicari", "masacre", "atent",
        "captur", "allan", "incaut", "narcot", "corrup", "fraude", "abuso",
        "violenc", "robo", "atraco", "accidente", "incendio", "bloqueo", "paro",
        "denuncia", "amenaza", "emergencia",
    ])
    viral_keywords: List[str] = Field(default_factory=lambda: [
        "viral", "tendencia", "faránd", "farand", "concierto", "música", "musica",
        "fútbol", "futbol", "festival", "show", "entreten", "redes sociales",
    ])
    severity_hit_points: int = 2
    severity_cap: int = 10
    severity_weight: int = 2
    query_hit_points: int = 2
    query_cap: int = 10
    query_term_min_len: int = 4
    # (max_hours_ago, points), checked in order
    recency_buckets: List[Tuple[float, int]] = Field(default_factory=lambda: [
        (6, 12), (12, 9), (24, 6), (48, 3),
    ])
    recency_stale_points: int = 1
    topic_keywords: List[str] = Field(default_factory=lambda: ["seguridad", "orden público"])
    national_query: str = "Colombia seguridad"
    denylisted_domains: List[str] = Field(default_factory=lambda: [
        "facebook.com", "instagram.com", "tiktok.com", "twitter.com", "x.com",
        "youtube.com", "youtu.be", "pinterest.com", "change.org",
    ])
    region_providers: Dict[str, List[str]] = Field(default_factory=lambda: {
        "meta": ["villavicencio", "meta", "granada", "acacias", "puerto gaitan", "puerto lópez"],
        "bogota": ["bogotá", "bogota"],
        "colombia": ["colombia"],
        "default": ["colombia"],
    })

    # --- language / length ---
    spanish_function_words: List[str] = Field(default_factory=lambda: [
        "de", "la", "que", "el", "en", "y", "los", "del", "se", "las", "por", "un",
        "para", "con", "no", "una", "su", "al", "lo", "como", "más", "pero", "sus",
        "le", "ya", "o", "este", "porque", "esta", "entre", "cuando", "muy", "sin",
        "sobre", "también", "hasta", "desde", "donde", "durante", "todos", "nos",
    ])
    english_function_words: List[str] = Field(default_factory=lambda: [
        "the", "and", "of", "to", "is", "in", "that", "for", "with", "on", "as",
        "are", "was", "this", "by", "be", "it", "from", "at", "or", "have", "which",
    ])
    spanish_min_function_ratio: float = 0.12
    spanish_accent_ratio: float = 0.008
    spanish_accent_min_function_ratio: float = 0.06
    spanish_english_margin: float = 1.5
    word_count_min: int = 500
    word_count_max: int = 800

    # --- safety baseline (regex, case-insensitive) ---
    safety_patterns: List[str] = Field(default_factory=lambda: [
        r"\b(matar|maten|asesinen|eliminen)\s+a\s+(los|las|todos|ese|esa|esos)\b",
        r"\bquemen\b.{0,40}\b(casas?|sedes?|iglesias?)\b",
        r"\btomen(\s+las)?\s+armas\b",
        r"\b(limpieza\s+social|exterminio|exterminar)\b",
        r"\bmuerte\s+a\s+(los|las)\b",
        r"\b(viva|vivan)\s+(el\s+)?(eln|farc|paramilitar\w*|autodefensas)\b",
        r"\bjusticia\s+por\s+mano\s+propia\b",
        r"\b(kill|exterminate)\s+(them|all|the)\b",
        r"\bcómo\s+(fabricar|hacer)\s+(una\s+)?(bomba|explosivo)\b",
    ])

    # --- normalizer ---
    civic_seo_terms: List[str] = Field(default_factory=lambda: [
        "seguridad ciudadana", "participación ciudadana", "Colombia 2026",
        "agenda regional", "convivencia",
    ])
    headline_min_chars: int = 24
    headline_min_words: int = 4
    generic_headlines: List[str] = Field(default_factory=lambda: [
        "{region}: lo que está en juego para la ciudadanía esta semana",
        "{region}: claves de la agenda pública que marcan la semana",
        "Agenda ciudadana en {region}: hechos, contexto y propuestas",
        "{region}: seguridad y convivencia en el centro del debate",
    ])
    fallback_axis: str = "seguridad y convivencia ciudadana"
    axis_min_chars: int = 12
    axis_max_chars: int = 90
    internal_line_prefixes: List[str] = Field(default_factory=lambda: [
        "seo:", "hashtags:", "nota interna", "[interno]", "meta:", "prompt:",
        "motor:", "keywords:", "image_keywords:",
    ])

    # --- images ---
    image_denylist: List[str] = Field(default_factory=lambda: [
        "logo", "icon", "icono", "escudo", "bandera", "flag", "coat_of_arms",
        ".svg", ".pdf", "pdf.jpg", "pdf.png", "/page1-", "/page2-", "/page3-",
        ".djvu", ".tif", "boletin", "boletín", "gaceta", "diario oficial",
        "resolucion", "resolución", "decreto", "acta", "oficio", "manual",
        "sentencia", "ley_", "ley-", "documento", "formulario", "circular",
        "mapa", "map_", "diagram", "screenshot",
    ])
    raster_mimes: List[str] = Field(default_factory=lambda: [
        "image/jpeg", "image/jpg", "image/png", "image/webp", "image/avif",
    ])
    allowed_license_markers: List[str] = Field(default_factory=lambda: [
        "cc by", "cc-by", "creative commons attribution", "attribution-sharealike",
        "public domain", "pd-", "cc0",
    ])
    image_top_slice: int = 6

    # --- avoid-lists ---
    avoid_lookback_candidate: int = 30
    avoid_lookback_global: int = 80


def load_policy(path: Optional[str] = None) -> EditorialPolicy:
    """Build the policy from defaults, overlaid with the JSON file at `path` if present."""
    path = path if path is not None else settings.editorial_policy_path
    if not path:
        return EditorialPolicy()
    if not os.path.exists(path):
        logger.warning("editorial policy file %s not found; using defaults", path)
        return EditorialPolicy()
    with open(path, "r", encoding="utf-8") as fh:
        overrides = json.load(fh)
    return EditorialPolicy.model_validate(overrides)
