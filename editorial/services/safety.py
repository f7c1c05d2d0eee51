import re
from dataclasses import dataclass
from typing import List, Optional
from editorial.policy import EditorialPolicy

_WORD_RE = re.compile(r"[a-záéíóúüñ]+", re.IGNORECASE)
_ACCENTS = set("áéíóúüñ¿¡")


def word_count(text: str) -> int:
    return len(re.findall(r"\S+", text or ""))


def safety_violations(text: str, policy: EditorialPolicy) -> List[str]:
    """Return the safety patterns `text` matches (empty list = clean)."""
    hits = []
    for pattern in policy.safety_patterns:
        if re.search(pattern, text or "", flags=re.IGNORECASE | re.DOTALL):
            hits.append(pattern)
    return hits


@dataclass
class LanguageScore:
    words: int
    spanish_ratio: float
    english_ratio: float
    accent_ratio: float
    is_spanish: bool


def score_spanish(text: str, policy: EditorialPolicy) -> LanguageScore:
    """Function-word and accent scoring; thresholds come from the policy."""
    words = [w.lower() for w in _WORD_RE.findall(text or "")]
    if not words:
        return LanguageScore(0, 0.0, 0.0, 0.0, False)
    es_words = set(policy.spanish_function_words)
    en_words = set(policy.english_function_words)
    es = sum(1 for w in words if w in es_words) / len(words)
    en = sum(1 for w in words if w in en_words) / len(words)
    letters = [c for c in (text or "").lower() if c.isalpha()]
    accents = sum(1 for c in (text or "").lower() if c in _ACCENTS) / max(1, len(letters))

    dominant = es > en * policy.spanish_english_margin
    by_words = es >= policy.spanish_min_function_ratio
    by_accents = accents >= policy.spanish_accent_ratio and es >= policy.spanish_accent_min_function_ratio
    return LanguageScore(len(words), round(es, 4), round(en, 4), round(accents, 4), dominant and (by_words or by_accents))


def length_problem(text: str, policy: EditorialPolicy) -> Optional[str]:
    n = word_count(text)
    if n < policy.word_count_min:
        return f"too_short:{n}"
    if n > policy.word_count_max:
        return f"too_long:{n}"
    return None
