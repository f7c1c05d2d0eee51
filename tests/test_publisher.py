from editorial.db import models
from editorial.services import dispatch, publisher
from editorial.services.run_config import RunConfig


def test_gate_needs_both_switches(make_candidate):
    on = make_candidate(auto_publish_enabled=True)
    off = make_candidate(slug="otro", auto_publish_enabled=False)
    assert publisher.gate_open(RunConfig(auto_publish_global_enabled=True), on) == (True, "open")
    assert publisher.gate_open(RunConfig(auto_publish_global_enabled=False), on)[1] == "kill_switch_off"
    assert publisher.gate_open(RunConfig(auto_publish_global_enabled=True), off)[1] == "candidate_auto_publish_off"


def test_public_text_drops_internal_lines(policy):
    body = "Titular\n\nPárrafo.\nSEO: uno, dos\n**Nota interna:** revisar\n\n\n\nFuente: https://a.co/x"
    assert publisher.render_public_text(body, policy) == "Titular\n\nPárrafo.\n\nFuente: https://a.co/x"


def test_slugs_are_ascii_and_unique(db, make_candidate):
    c = make_candidate()
    assert publisher.slugify("¡Vías del Meta: qué sigue!") == "vias-del-meta-que-sigue"
    db.add(models.PublishedPost(candidate_id=c.id, slug="vias-del-meta", title="t", body="b"))
    db.commit()
    assert publisher.unique_slug(db, "Vías del Meta") == "vias-del-meta-2"


def _dest(i, name, target=None, url=None, scope="page", status="approved"):
    return models.SocialDestination(id=i, candidate_id=1, network_name=name, network_type=scope, target_id=target,
                                    profile_or_page_url=url, credential_ref=f"cred-{i}",
                                    authorization_status=status, active=True)


def test_routing_table_normalizes_and_dedupes():
    routes = dispatch.build_routing_table([
        _dest(1, "Twitter", url="https://twitter.com/@anamaria"),
        _dest(2, "X", target="anamaria"),
        _dest(3, "FB", target="12345"),
        _dest(4, "MySpace", target="nope"),
        _dest(5, "reddit", target="r_meta", scope="subreddit"),
    ])
    assert routes == [
        {"network": "x", "scope": "page", "target_id": "anamaria", "credential_ref": "cred-1"},
        {"network": "facebook", "scope": "page", "target_id": "12345", "credential_ref": "cred-3"},
        {"network": "reddit", "scope": "community", "target_id": "r_meta", "credential_ref": "cred-5"},
    ]


def test_dispatch_is_skipped_when_disabled(db, make_candidate):
    c = make_candidate()
    post = models.PublishedPost(id=1, candidate_id=c.id, slug="s", title="t", body="b")
    draft = models.Draft(id=1, candidate_id=c.id, generated_text="x", image_url="https://i.co/a.jpg")
    assert dispatch.dispatch(db, post, draft, "rid") is None


def test_dispatch_runs_in_background_and_swallows_failures(db, make_candidate, monkeypatch):
    from editorial.config import settings

    c = make_candidate()
    db.add(models.SocialDestination(candidate_id=c.id, network_name="telegram", target_id="@canal",
                                    authorization_status="approved", active=True))
    db.commit()
    monkeypatch.setattr(settings, "dispatch_enabled", True)
    monkeypatch.setattr(settings, "dispatch_webhook_url", "https://hooks.example/publish")
    sent = []

    def boom(payload):
        sent.append(payload)
        raise RuntimeError("webhook down")

    monkeypatch.setattr(dispatch, "send", boom)
    post = models.PublishedPost(id=9, candidate_id=c.id, slug="s", title="t", body="b")
    draft = models.Draft(id=3, candidate_id=c.id, generated_text="x", image_url="https://i.co/a.jpg",
                         variants={"telegram": "texto telegram", "x": "texto x"})
    fut = dispatch.dispatch(db, post, draft, "rid")
    fut.exception(timeout=5)
    assert sent[0]["channels"] == {"telegram": "texto telegram"}
    assert sent[0]["routes"][0]["target_id"] == "@canal"


def test_dispatch_returns_none_when_destination_lookup_fails(db, make_candidate, monkeypatch):
    from editorial.config import settings
    from editorial.db import crud

    c = make_candidate()
    monkeypatch.setattr(settings, "dispatch_enabled", True)
    monkeypatch.setattr(settings, "dispatch_webhook_url", "https://hooks.example/publish")

    def broken(db, candidate_id):
        raise RuntimeError("lookup failed")

    monkeypatch.setattr(crud, "approved_destinations", broken)
    post = models.PublishedPost(id=9, candidate_id=c.id, slug="s", title="t", body="b")
    draft = models.Draft(id=3, candidate_id=c.id, generated_text="x", image_url="https://i.co/a.jpg")
    assert dispatch.dispatch(db, post, draft, "rid") is None


def test_publish_commits_post_and_back_link_together(db, make_candidate, policy):
    c = make_candidate()
    draft = models.Draft(candidate_id=c.id, generated_text="Titular\n\nCuerpo.\nSEO: a, b",
                         image_url="https://i.co/a.jpg", status="pending_review", variants={"blog": "Titular"})
    db.add(draft)
    db.commit()
    post = publisher.publish_draft(db, draft, c, "Titular de prueba", "Sub", policy, "rid")
    db.expire_all()
    assert draft.published_post_id == post.id
    assert draft.status == "published"
    assert post.body == "Titular\n\nCuerpo."
    assert post.slug == "titular-de-prueba"
