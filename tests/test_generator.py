import threading
import time

from editorial.services import generator
from editorial.services.generator import GenerationFailure, GenerationResult


def _generate(candidate, policy):
    return generator.generate(candidate, None, policy, request_id="t")


def test_both_unconfigured_is_503_with_diagnostics(make_candidate, policy, fake_engines):
    fake_engines()
    result = _generate(make_candidate(), policy)
    assert isinstance(result, GenerationFailure)
    assert result.reason == "not_configured"
    assert result.status_code == 503
    assert set(result.engines) == {"si", "openai"}
    assert result.engines["si"]["reason"] == "not_configured"


def test_both_failing_is_502(make_candidate, policy, fake_engines, fake):
    fake_engines(si=fake("si", reason="timeout"), openai=fake("openai", reason="http_500"))
    result = _generate(make_candidate(), policy)
    assert isinstance(result, GenerationFailure)
    assert result.reason == "engines_failed"
    assert result.status_code == 502
    assert result.engines["si"]["reason"] == "timeout"
    assert result.engines["openai"]["status"] == 500


def test_preferred_engine_wins_when_both_valid(make_candidate, policy, fake_engines, fake, article, payload):
    fake_engines(si=fake("si", text=payload(article(title="Texto del primer motor sobre seguridad"))),
                 openai=fake("openai", text=payload(article())))
    result = _generate(make_candidate(), policy)
    assert isinstance(result, GenerationResult)
    assert result.source_engine == "si"
    assert result.arbitration_reason == "both_valid:preferred=si"
    assert result.output.title == "Texto del primer motor sobre seguridad"


def test_fenced_output_from_preferred_engine_is_used(make_candidate, policy, fake_engines, fake, article, payload):
    fenced = "Aquí va el JSON:\n```json\n" + payload(article()) + "\n```"
    fake_engines(si=fake("si", text=fenced), openai=fake("openai", text=payload(article())))
    result = _generate(make_candidate(), policy)
    assert result.source_engine == "si"
    assert result.extraction == "fenced"
    assert result.engines["si"]["extraction"] == "fenced"


def test_unsafe_output_counts_as_engine_failure(make_candidate, policy, fake_engines, fake, article, payload):
    unsafe = payload(article() + "\n\nEs hora de la limpieza social en el barrio.")
    fake_engines(si=fake("si", text=unsafe), openai=fake("openai", text=payload(article())))
    result = _generate(make_candidate(), policy)
    assert result.source_engine == "openai"
    assert result.arbitration_reason.startswith("only_openai_valid:si=unsafe")


def test_short_output_gets_one_corrective_pass(make_candidate, policy, fake_engines, fake, article, payload):
    def reply(prompt):
        if prompt.startswith("Corrige"):
            return payload(article())
        return payload(article(sentences=10))

    si = fake("si", text=reply)
    fake_engines(si=si)
    result = _generate(make_candidate(), policy)
    assert result.corrected
    assert result.quality_problems == []
    assert "corrected_by=si" in result.arbitration_reason
    assert result.engines["corrective"]["problems"][0].startswith("too_short")
    assert len(si.prompts) == 2


def test_rejected_correction_keeps_original(make_candidate, policy, fake_engines, fake, article, payload):
    def reply(prompt):
        if prompt.startswith("Corrige"):
            return payload(article() + "\nMuerte a los vecinos.")
        return payload(article(sentences=10))

    fake_engines(si=fake("si", text=reply))
    result = _generate(make_candidate(), policy)
    assert not result.corrected
    assert result.quality_problems and result.quality_problems[0].startswith("too_short")
    assert result.engines["corrective"]["problem"] == "unsafe"


def test_image_arbitration_prefers_preferred_engine(fake):
    backends = {"si": fake("si", image_url="https://img.example/si.png"),
                "openai": fake("openai", image_url="https://img.example/oa.png")}
    reply, diagnostics = generator.generate_image("calle", backends)
    assert reply.image_url == "https://img.example/si.png"
    assert set(diagnostics) == {"si", "openai"}

    backends["si"] = fake("si")
    reply, _ = generator.generate_image("calle", backends)
    assert reply.engine == "openai"


def test_english_reply_gets_one_translating_pass(make_candidate, policy, fake_engines, fake, article, english, payload):
    def reply(prompt):
        if prompt.startswith("Corrige"):
            return payload(article())
        return payload(english())

    si = fake("si", text=reply)
    fake_engines(si=si)
    result = _generate(make_candidate(), policy)
    assert result.corrected
    assert result.engines["corrective"]["problems"] == ["language"]
    assert "Traduce" in si.prompts[1]
    assert result.quality_problems == []


def test_length_is_judged_on_the_rendered_text(make_candidate, policy, fake_engines, fake, article, payload):
    def reply(prompt):
        if prompt.startswith("Corrige"):
            return payload(article())
        return payload(article(sentences=46))

    si = fake("si", text=reply)
    fake_engines(si=si)
    padding = " palabra" * 40
    result = generator.generate(make_candidate(), None, policy, request_id="t",
                                render=lambda out: out.long_form + padding)
    assert result.engines["corrective"]["problems"][0].startswith("too_long")
    assert result.corrected
    # the rewrite is asked to leave room for what the caller adds
    assert "Condensa a 520-700 palabras." in si.prompts[1]


def test_hung_engine_times_out_and_the_other_wins(make_candidate, policy, fake_engines, fake, article, payload,
                                                  monkeypatch):
    monkeypatch.setattr(generator, "DEADLINE_GRACE", 0.0)
    release = threading.Event()

    def hang(prompt):
        release.wait(5)
        return payload(article())

    si = fake("si", text=hang)
    si.timeout = 0.2
    fake_engines(si=si, openai=fake("openai", text=payload(article())))
    try:
        result = _generate(make_candidate(), policy)
    finally:
        release.set()
    assert result.source_engine == "openai"
    assert result.engines["si"]["reason"] == "timeout"
    assert result.arbitration_reason == "only_openai_valid:si=timeout"


def test_engine_deadlines_run_from_submit_time(fake, monkeypatch):
    monkeypatch.setattr(generator, "DEADLINE_GRACE", 0.0)
    release = threading.Event()

    def hang(prompt):
        release.wait(5)
        return "{}"

    backends = {"si": fake("si", text=hang), "openai": fake("openai", text=hang)}
    for b in backends.values():
        b.timeout = 0.5
    started = time.monotonic()
    try:
        replies = generator.call_concurrently(backends, "complete", "sys", "user")
    finally:
        release.set()
    assert time.monotonic() - started < 0.9
    assert {r.reason for r in replies.values()} == {"timeout"}
