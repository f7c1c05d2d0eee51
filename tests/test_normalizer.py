import pytest

from editorial.services import normalizer
from editorial.services.extraction import extract_output
from editorial.services.seeding import seeded_index
from editorial.services.variants import CHANNEL_BUDGETS, CHANNELS, PRIMARY


def test_seeded_index_is_deterministic_and_in_range():
    picks = [seeded_index(f"seed-{i}", 4) for i in range(50)]
    assert picks == [seeded_index(f"seed-{i}", 4) for i in range(50)]
    assert set(picks) <= {0, 1, 2, 3}
    assert len(set(picks)) > 1
    with pytest.raises(ValueError):
        seeded_index("x", 0)


def test_headline_drops_name_surnames_and_ballot(make_candidate, policy):
    c = make_candidate()
    title = "Ana María Restrepo (104) propone más seguridad para los barrios de Villavicencio"
    out = normalizer.sanitize_headline(title, c, "s1", policy)
    assert "Restrepo" not in out and "María" not in out
    assert "104" not in out
    assert out.startswith("Propone más seguridad")


def test_headline_surname_alone_and_tarjeton_are_removed(make_candidate, policy):
    c = make_candidate()
    out = normalizer.sanitize_headline("Restrepo, tarjetón 104: así será la seguridad en los barrios del Meta", c, "s", policy)
    assert "Restrepo" not in out and "104" not in out
    assert "seguridad en los barrios del Meta" in out


def test_short_headline_falls_back_to_seeded_regional_one(make_candidate, policy):
    c = make_candidate()
    first = normalizer.sanitize_headline("Ana María Restrepo 104", c, "seed-a", policy)
    again = normalizer.sanitize_headline("Ana María Restrepo 104", c, "seed-a", policy)
    assert first == again
    assert "Meta" in first
    assert first in [h.format(region="Meta") for h in policy.generic_headlines]


def test_program_axes_prefer_bullets(policy):
    axes = normalizer.extract_program_axes("Intro larga sin viñeta alguna.\n- Vías terciarias\n* Empleo joven en la región", policy)
    assert axes == ["Vías terciarias", "Empleo joven en la región"]


def test_subtitle_carries_candidate(make_candidate):
    c = make_candidate()
    sub = normalizer.build_subtitle(c, "vías terciarias", "s")
    assert sub.startswith("Ana María Restrepo, Cámara (tarjetón 104) ")
    assert sub.endswith("vías terciarias")


def test_alignment_goes_inside_como_encaja_section(make_candidate):
    c = make_candidate()
    body = "Titular\n\nContexto.\n\n## Cómo encaja con la agenda\n\nPárrafo de agenda.\n\nFuente: https://x.co/a"
    out = normalizer.inject_alignment(body, c, "vías terciarias", "s")
    lines = out.split("\n")
    cue = next(i for i, l in enumerate(lines) if "**Ana María Restrepo**" in l)
    assert lines.index("Párrafo de agenda.") < cue < lines.index("Fuente: https://x.co/a")


def test_alignment_goes_before_source_line_without_section(make_candidate):
    c = make_candidate()
    out = normalizer.inject_alignment("Titular\n\nContexto.\nFuente: https://x.co/a", c, "empleo", "s")
    assert out.endswith("Fuente: https://x.co/a")
    assert out.index("**Ana María Restrepo**") < out.index("Fuente:")


def test_alignment_is_not_duplicated(make_candidate):
    c = make_candidate()
    body = ("Titular\n\nComo propone **Ana María Restrepo** (tarjetón 104), el empleo joven es la salida.\n\n"
            "Fuente: https://x.co/a")
    assert normalizer.inject_alignment(body, c, "empleo joven en la región", "s") == body


def test_bold_name_alone_is_not_an_alignment_cue(make_candidate):
    c = make_candidate()
    body = "Texto con **Ana María Restrepo** y nada más."
    out = normalizer.inject_alignment(body, c, "vías terciarias para el campo", "s")
    assert out != body
    assert "tarjetón 104" in out
    assert "vías terciarias para el campo" in out


def test_injected_cue_is_recognized_on_a_second_pass(make_candidate):
    c = make_candidate()
    once = normalizer.inject_alignment("Titular\n\nContexto.\n\nFuente: https://x.co/a", c, "empleo joven en la región", "s")
    assert normalizer.inject_alignment(once, c, "empleo joven en la región", "s") == once


def test_ballot_words_are_kept_when_not_next_to_the_ballot(make_candidate, policy):
    c = make_candidate()
    out = normalizer.sanitize_headline("El número de homicidios baja en el Meta, pero el alcalde dijo que no.",
                                       c, "s", policy)
    assert "número de homicidios" in out
    assert out.endswith("dijo que no")
    assert "104" not in normalizer.sanitize_headline("Vías para el Meta: la apuesta del número 104 en la región",
                                                     c, "s", policy)


def test_normalize_completes_variants_and_seo(make_candidate, policy, article, payload):
    c = make_candidate()
    output, _ = extract_output(payload(article(title="Ana María Restrepo y la seguridad de los barrios del Meta hoy")))
    content = normalizer.normalize(output, c, None, "seed", policy)
    assert "Restrepo" not in content.title
    assert content.body.split("\n", 1)[0] == content.title
    assert set(content.variants) == set(CHANNELS) | {PRIMARY}
    for channel in CHANNELS:
        assert content.variants[channel]
        assert len(content.variants[channel]) <= CHANNEL_BUDGETS[channel]
    assert content.variants["x"] == "Seguridad en los barrios: lo que pide la comunidad."
    assert len(content.seo_keywords) >= 8
    assert "Ana María Restrepo" in content.seo_keywords
    assert content.image_keywords == ["calle", "barrio", "Villavicencio"]


def test_normalize_is_reproducible(make_candidate, policy, article, payload):
    c = make_candidate()
    output, _ = extract_output(payload(article()))
    a = normalizer.normalize(output, c, None, "same-seed", policy)
    output2, _ = extract_output(payload(article()))
    b = normalizer.normalize(output2, c, None, "same-seed", policy)
    assert (a.title, a.subtitle, a.body) == (b.title, b.subtitle, b.body)
