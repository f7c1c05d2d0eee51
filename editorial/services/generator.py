"""Dual-engine generation with arbitration and one corrective pass."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from editorial.config import settings
from editorial.db import models
from editorial.policy import EditorialPolicy
from editorial.services import engines
from editorial.services.engines import EngineReply
from editorial.services.extraction import EngineOutput, extract_output
from editorial.services.prompts import (
    DEFAULT_INCLINATION,
    DEFAULT_STYLE,
    SYSTEM_PROMPT,
    build_corrective_prompt,
    build_generation_prompt,
)
from editorial.services.safety import length_problem, safety_violations, score_spanish, word_count
from editorial.services.signals import NewsSignal

logger = logging.getLogger(__name__)

# past the adapter's own httpx timeout
DEADLINE_GRACE = 2.0


@dataclass
class Evaluation:
    engine: str
    reply: EngineReply
    output: Optional[EngineOutput] = None
    extraction: str = ""
    problem: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.output is not None and self.problem is None

    def diagnostics(self) -> Dict[str, Any]:
        d = self.reply.diagnostics()
        d["extraction"] = self.extraction or None
        d["valid"] = self.valid
        if self.problem:
            d["problem"] = self.problem
        return d


@dataclass
class GenerationResult:
    output: EngineOutput
    source_engine: str
    arbitration_reason: str
    extraction: str
    engines: Dict[str, Dict[str, Any]]
    corrected: bool = False
    quality_problems: List[str] = field(default_factory=list)


@dataclass
class GenerationFailure:
    reason: str
    engines: Dict[str, Dict[str, Any]]

    @property
    def status_code(self) -> int:
        return 503 if self.reason == "not_configured" else 502


def preferred_order(backends: Dict[str, Any]) -> List[str]:
    names = list(backends)
    pref = (settings.preferred_engine or "").strip().lower()
    if pref in backends:
        names.remove(pref)
        names.insert(0, pref)
    return names


def call_concurrently(backends: Dict[str, Any], method: str, *args) -> Dict[str, EngineReply]:
    """Run `method` on every backend at once, each bounded by its own deadline from submit time."""
    pool = ThreadPoolExecutor(max_workers=max(1, len(backends)), thread_name_prefix="engine")
    try:
        started = time.monotonic()
        futures = {name: pool.submit(getattr(b, method), *args) for name, b in backends.items()}
        replies: Dict[str, EngineReply] = {}
        for name, fut in futures.items():
            deadline = getattr(backends[name], "timeout", engines.MAX_TIMEOUT) + DEADLINE_GRACE
            try:
                replies[name] = fut.result(timeout=max(0.0, started + deadline - time.monotonic()))
            except FuturesTimeout:
                replies[name] = EngineReply(engine=name, ok=False, reason="timeout",
                                            elapsed_ms=int(deadline * 1000))
        return replies
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def evaluate(name: str, reply: EngineReply, policy: EditorialPolicy) -> Evaluation:
    ev = Evaluation(engine=name, reply=reply)
    if not reply.ok:
        ev.problem = reply.reason or "failed"
        return ev
    output, method = extract_output(reply.text)
    ev.extraction = method
    if output is None:
        ev.problem = f"unparseable:{method}"
        return ev
    ev.output = output
    if safety_violations(output.combined_text(), policy):
        ev.problem = "unsafe"
    return ev


def quality_problems(output: EngineOutput, primary: str, policy: EditorialPolicy) -> List[str]:
    """Language over everything the engine wrote; the word window over the publishable primary text."""
    problems = []
    if not score_spanish(output.combined_text(), policy).is_spanish:
        problems.append("language")
    length = length_problem(primary, policy)
    if length:
        problems.append(length)
    return problems


def arbitrate(evals: Dict[str, Evaluation], order: List[str]) -> Union[Tuple[Evaluation, str], str]:
    """Pick the winning evaluation, or return the failure reason."""
    valid = [n for n in order if evals[n].valid]
    if not valid:
        if all(evals[n].problem == "not_configured" for n in order):
            return "not_configured"
        return "engines_failed"
    if len(valid) == len(order):
        return evals[valid[0]], f"both_valid:preferred={valid[0]}"
    winner = valid[0]
    losers = ",".join(f"{n}={evals[n].problem}" for n in order if n != winner)
    return evals[winner], f"only_{winner}_valid:{losers}"


def _corrective(backends: Dict[str, Any], evals: Dict[str, Evaluation], order: List[str],
                output: EngineOutput, problems: List[str], policy: EditorialPolicy,
                reserve: int = 0) -> Optional[Evaluation]:
    for name in order:
        backend = backends[name]
        if not getattr(backend, "configured", False) or not evals[name].reply.ok:
            continue
        reply = backend.complete(SYSTEM_PROMPT, build_corrective_prompt(output.long_form, problems, policy, reserve))
        return evaluate(name, reply, policy)
    return None


def generate(candidate: models.Candidate, signal: Optional[NewsSignal], policy: EditorialPolicy,
             inclination: str = DEFAULT_INCLINATION, style: str = DEFAULT_STYLE, notes: Optional[str] = None,
             reframe_body: Optional[str] = None, backends: Optional[Dict[str, Any]] = None,
             request_id: str = "",
             render: Optional[Callable[[EngineOutput], str]] = None) -> Union[GenerationResult, GenerationFailure]:
    """Call both engines, arbitrate, and run at most one corrective pass.

    `render` maps an engine output to the text that will be published; the word
    window is checked against that text.
    """
    render = render or (lambda out: out.long_form)
    backends = backends if backends is not None else engines.build_engines()
    order = preferred_order(backends)
    prompt = build_generation_prompt(candidate, signal, policy, inclination, style, notes, reframe_body)

    replies = call_concurrently(backends, "complete", SYSTEM_PROMPT, prompt)
    evals = {name: evaluate(name, replies[name], policy) for name in order}
    diagnostics = {name: ev.diagnostics() for name, ev in evals.items()}

    picked = arbitrate(evals, order)
    if isinstance(picked, str):
        logger.warning("[%s] generation failed (%s): %s", request_id, picked, diagnostics)
        return GenerationFailure(reason=picked, engines=diagnostics)
    winner, reason = picked
    logger.info("[%s] arbitration: %s (extraction=%s)", request_id, reason, winner.extraction)

    output = winner.output
    primary = render(output)
    problems = quality_problems(output, primary, policy)
    result = GenerationResult(output=output, source_engine=winner.engine, arbitration_reason=reason,
                              extraction=winner.extraction, engines=diagnostics, quality_problems=problems)
    if not problems:
        return result

    # words the caller adds on top of the engine text
    reserve = max(0, word_count(primary) - word_count(output.long_form))
    fix = _corrective(backends, evals, order, output, problems, policy, reserve)
    if fix is None:
        return result
    diagnostics["corrective"] = {"engine": fix.engine, "problems": problems, **fix.diagnostics()}
    if not fix.valid:
        logger.info("[%s] corrective pass rejected: %s", request_id, fix.problem)
        return result
    fixed = fix.output
    if not fixed.seo_keywords:
        fixed.seo_keywords = output.seo_keywords
    if fixed.image_keywords is None:
        fixed.image_keywords = output.image_keywords
    result.output = fixed
    result.corrected = True
    result.quality_problems = quality_problems(fixed, render(fixed), policy)
    result.arbitration_reason = f"{reason};corrected_by={fix.engine}"
    return result


def generate_image(prompt: str, backends: Optional[Dict[str, Any]] = None) -> Tuple[Optional[EngineReply], Dict[str, Any]]:
    """Ask both backends for an image; the preferred one wins when both succeed."""
    backends = backends if backends is not None else engines.build_engines()
    order = preferred_order(backends)
    replies = call_concurrently(backends, "generate_image", prompt)
    diagnostics = {name: replies[name].diagnostics() for name in order}
    for name in order:
        r = replies[name]
        if r.ok and (r.image_url or r.image_bytes):
            return r, diagnostics
    return None, diagnostics
