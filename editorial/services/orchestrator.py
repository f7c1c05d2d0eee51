"""End-to-end editorial run: signal -> generation -> normalization -> image -> draft -> publish gate."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from editorial.db import base, crud, models
from editorial.policy import EditorialPolicy, load_policy
from editorial.services import dispatch, generator, images, news_selector, normalizer, publisher
from editorial.services.generator import GenerationFailure
from editorial.services.prompts import DEFAULT_INCLINATION, DEFAULT_STYLE
from editorial.services.run_config import RunConfig, load_run_config
from editorial.services.safety import length_problem, safety_violations, score_spanish
from editorial.services.seeding import short_hash
from editorial.services.variants import PRIMARY, ensure_variants

logger = logging.getLogger(__name__)

OPPOSITE_MODE = {"grave": "viral", "viral": "grave", "any": "viral"}


class OrchestrationError(Exception):
    def __init__(self, status_code: int, error: str, engines: Optional[Dict[str, Any]] = None,
                 detail: Optional[str] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.engines = engines or {}
        self.detail = detail


@dataclass
class RunOptions:
    candidate_id: int
    max_items: int = 1
    news_mode: str = "grave"
    inclination: str = DEFAULT_INCLINATION
    style: str = DEFAULT_STYLE
    news_links: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    test_mode: bool = False


@dataclass
class ItemResult:
    draft_id: int
    source_engine: str
    arbitration_reason: str
    article_found: bool
    published_post_id: Optional[int] = None


def avoid_lists(db: Session, candidate_id: int, run_config: RunConfig, policy: EditorialPolicy):
    """Recent source and image URLs, per candidate and across candidates."""
    per_candidate = run_config.avoid_lookback_runs or policy.avoid_lookback_candidate
    globally = max(run_config.avoid_lookback_runs or 0, policy.avoid_lookback_global)
    sources = crud.recent_source_urls(db, candidate_id, per_candidate) + crud.recent_source_urls(db, None, globally)
    image_urls = crud.recent_image_urls(db, candidate_id, per_candidate) + crud.recent_image_urls(db, None, globally)
    return sources, image_urls


def run_seed(db: Session, candidate: models.Candidate, signal_url: Optional[str]) -> str:
    day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return short_hash(candidate.id, signal_url or "none", day, crud.count_drafts(db, candidate.id))


def final_gate(text: str, policy: EditorialPolicy) -> Optional[str]:
    if safety_violations(text, policy):
        return "unsafe_output"
    if length_problem(text, policy):
        return "length_out_of_range"
    if not score_spanish(text, policy).is_spanish:
        return "language_mismatch"
    return None


def verify_persisted(draft_id: int, request_id: str) -> None:
    """Re-read the draft through a fresh session; a missing row is a hard failure."""
    fresh = base.SessionLocal()
    try:
        row = crud.get_draft(fresh, draft_id)
        visible = row is not None and bool((row.variants or {}).get(PRIMARY)) and bool(row.image_url)
    finally:
        fresh.close()
    if not visible:
        logger.critical("[%s] draft %s not visible after commit", request_id, draft_id)
        raise OrchestrationError(500, "assertion_failed", detail=f"draft {draft_id} not readable after write")


def _save_draft(db: Session, data: Dict[str, Any], request_id: str) -> models.Draft:
    try:
        draft = crud.create_draft(db, data)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[%s] draft insert failed: %s", request_id, e)
        raise OrchestrationError(500, "db_error", detail=str(e.__class__.__name__))
    verify_persisted(draft.id, request_id)
    return draft


def run_item(db: Session, candidate: models.Candidate, mode: str, options: RunOptions,
             run_config: RunConfig, policy: EditorialPolicy, request_id: str) -> ItemResult:
    exclude_sources, avoid_images = avoid_lists(db, candidate.id, run_config, policy)
    selection = news_selector.select_signal(db, candidate, mode, exclude_sources, policy, options.news_links)
    signal = selection.signal
    logger.info("[%s] signal provider=%s url=%s", request_id,
                signal.provider if signal else None, signal.url if signal else None)
    seed = run_seed(db, candidate, signal.url if signal else None)

    def render(output):
        return normalizer.normalize(output, candidate, signal, seed, policy).variants[PRIMARY]

    gen = generator.generate(candidate, signal, policy, options.inclination, options.style,
                             options.notes, selection.reframe_body, request_id=request_id, render=render)
    if isinstance(gen, GenerationFailure):
        raise OrchestrationError(gen.status_code, gen.reason, engines=gen.engines)

    content = normalizer.normalize(gen.output, candidate, signal, seed, policy)
    problem = final_gate(content.variants[PRIMARY], policy)
    if problem:
        logger.warning("[%s] output rejected: %s", request_id, problem)
        raise OrchestrationError(502, problem, engines=gen.engines)

    image = images.acquire_image(candidate.id, content.image_keywords, candidate.region, seed, avoid_images, policy)
    is_news = signal is not None and signal.provider in ("rss", "news_search", "manual")
    meta = {
        "request_id": request_id,
        "seed": seed,
        "news_mode": mode,
        "source_engine": gen.source_engine,
        "arbitration_reason": gen.arbitration_reason,
        "extraction": gen.extraction,
        "corrected": gen.corrected,
        "engines": gen.engines,
        "title": content.title,
        "subtitle": content.subtitle,
        "seo_keywords": content.seo_keywords,
        "sentiment": content.sentiment,
        "axis": content.axis,
        "flags": content.flags,
        "image": image.to_meta(),
        "signal": signal.to_meta() if signal else None,
        "reframe_post_id": selection.reframe_post_id,
        "queries": selection.queries,
    }
    draft = _save_draft(db, {
        "candidate_id": candidate.id,
        "content_type": "blog",
        "topic": (signal.title if signal and signal.title else content.title)[:512],
        "tone": options.inclination,
        "generated_text": content.body,
        "variants": content.variants,
        "meta": meta,
        "image_keywords": content.image_keywords,
        "source_url": signal.url if is_news else None,
        "image_url": image.url,
        "status": "pending_review",
    }, request_id)

    result = ItemResult(draft_id=draft.id, source_engine=gen.source_engine,
                        arbitration_reason=gen.arbitration_reason, article_found=selection.article_found)
    opened, why = publisher.gate_open(run_config, candidate)
    if not opened:
        logger.info("[%s] draft %s kept for review (%s)", request_id, draft.id, why)
        return result
    try:
        post = publisher.publish_draft(db, draft, candidate, content.title, content.subtitle, policy, request_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[%s] publish of draft %s failed: %s", request_id, draft.id, e)
        raise OrchestrationError(500, "db_error", detail="publish failed")
    result.published_post_id = post.id
    dispatch.dispatch(db, post, draft, request_id)
    return result


def run_test_item(db: Session, candidate: models.Candidate, request_id: str) -> models.Draft:
    """Persist one labelled draft without calling any external service."""
    text = "\n".join(p for p in [
        "MODO PRUEBA · Orquestación editorial (sin APIs externas)",
        "",
        f"Candidato: {candidate.name} ({candidate.office})",
        f"Región: {candidate.region}",
        f"Número: {candidate.ballot_number}" if candidate.ballot_number else None,
        "",
        "Ejecución de prueba para validar el circuito automatización → backend → borradores.",
        "No se consultaron noticias ni motores generativos.",
    ] if p is not None)
    seed = short_hash(candidate.id, "test", request_id)
    image = images.placeholder(candidate.id, seed, set())
    return _save_draft(db, {
        "candidate_id": candidate.id,
        "content_type": "blog",
        "topic": "MODO PRUEBA · Orquestación editorial",
        "tone": "test",
        "generated_text": text,
        "variants": ensure_variants(text, candidate_name=candidate.name, ballot=candidate.ballot_number or ""),
        "meta": {"request_id": request_id, "test": True, "image": image.to_meta()},
        "image_url": image.url,
        "status": "test",
    }, request_id)


def orchestrate(db: Session, options: RunOptions, request_id: str,
                policy: Optional[EditorialPolicy] = None) -> Dict[str, Any]:
    candidate = crud.get_candidate(db, options.candidate_id)
    if candidate is None:
        raise OrchestrationError(404, "not_found")
    if not candidate.auto_blog_enabled:
        return {"ok": True, "skipped": True, "reason": "auto_blog_disabled", "request_id": request_id}

    if options.test_mode:
        draft = run_test_item(db, candidate, request_id)
        return {"ok": True, "test": True, "id": draft.id, "ids": [draft.id], "source_engine": None,
                "arbitration_reason": "test_mode", "article_found": False, "request_id": request_id}

    run_config = load_run_config(db)
    policy = policy or load_policy()
    modes = [options.news_mode]
    if options.max_items == 2:
        modes.append(OPPOSITE_MODE.get(options.news_mode, "viral"))

    items: List[ItemResult] = []
    partial = None
    for mode in modes:
        try:
            items.append(run_item(db, candidate, mode, options, run_config, policy, request_id))
        except OrchestrationError as e:
            if not items:
                raise
            logger.warning("[%s] second item failed: %s", request_id, e.error)
            partial = {"error": e.error, "engines": e.engines}
            break

    try:
        crud.touch_last_auto_blog(db, candidate)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("[%s] could not stamp last_auto_blog_at: %s", request_id, e)

    first = items[0]
    body: Dict[str, Any] = {
        "ok": True,
        "id": first.draft_id,
        "ids": [i.draft_id for i in items],
        "source_engine": first.source_engine,
        "arbitration_reason": first.arbitration_reason,
        "article_found": first.article_found,
        "request_id": request_id,
    }
    published = [i.published_post_id for i in items if i.published_post_id]
    if published:
        body["published_post_id"] = published[0]
        body["published_post_ids"] = published
    if partial:
        body["partial"] = partial
    return body
