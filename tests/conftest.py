import json
import os
import tempfile

# Settings are read at import time, so the environment is fixed before anything from editorial loads.
_DB_DIR = tempfile.mkdtemp(prefix="editorial-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["AUTOMATION_TOKEN"] = "test-token"
for _key in ("SI_ENDPOINT", "SI_API_KEY", "OPENAI_API_KEY", "STORAGE_URL", "STORAGE_KEY",
             "DISPATCH_WEBHOOK_URL", "EDITORIAL_POLICY_PATH"):
    os.environ[_key] = ""
os.environ["DISPATCH_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from editorial.config import settings
from editorial.db import models
from editorial.db.base import Base, SessionLocal, engine
from editorial.deps import init_db
from editorial.main import app
from editorial.policy import EditorialPolicy
from editorial.services import engines as engines_mod
from editorial.services.engines import EngineReply

TOKEN = "test-token"

SENTENCE = "La comunidad de la región pide más seguridad en los barrios y en las vías del municipio."


@pytest.fixture(autouse=True)
def fresh_db(monkeypatch):
    monkeypatch.setattr(settings, "automation_token", TOKEN)
    monkeypatch.setattr(settings, "preferred_engine", "si")
    monkeypatch.setattr(settings, "dispatch_enabled", False)
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth():
    return {"x-automation-token": TOKEN}


@pytest.fixture
def policy():
    return EditorialPolicy()


@pytest.fixture
def make_candidate(db):
    def _make(**kw):
        data = {
            "slug": "ana-maria-restrepo",
            "name": "Ana María Restrepo",
            "office": "Cámara",
            "party": "Partido Cívico",
            "region": "Meta",
            "ballot_number": "104",
            "biography": "Abogada y líder comunitaria en Villavicencio.",
            "proposals": "- Seguridad en los barrios con policía de proximidad\n"
                         "- Vías terciarias para el campo\n"
                         "- Empleo joven en la región",
            "auto_blog_enabled": True,
            "auto_publish_enabled": False,
        }
        data.update(kw)
        obj = models.Candidate(**data)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
    return _make


def spanish_article(title="Vecinos del centro piden más presencia policial en las noches",
                    sentences=35, source="https://noticias.example.co/nota-1"):
    paras = []
    for i in range(0, sentences, 5):
        paras.append(" ".join([SENTENCE] * min(5, sentences - i)))
    parts = [title, ""] + ["\n\n".join(paras[:-1]), "", "## Cómo encaja con la agenda", "", paras[-1], "",
                           f"Fuente: {source}"]
    return "\n".join(parts)


@pytest.fixture
def article():
    return spanish_article


ENGLISH_SENTENCE = "The community in the region asks for more security in the neighborhoods and on the roads of the town."


def english_article(sentences=35, source="https://news.example.com/story-1"):
    paras = [" ".join([ENGLISH_SENTENCE] * 5) for _ in range(sentences // 5)]
    return "\n\n".join(["Neighbors ask for more police patrols at night", *paras, f"Fuente: {source}"])


@pytest.fixture
def english():
    return english_article


def engine_payload(long_form, title=None, **extra):
    data = {
        "title": title or long_form.split("\n", 1)[0],
        "sentiment": "neutral",
        "seo_keywords": ["seguridad", "Meta", "barrios"],
        "master_editorial": long_form,
        "platform_variants": {
            "long_form": long_form,
            "net_a": "Resumen para la comunidad sobre seguridad en los barrios.",
            "net_b": "Seguridad en los barrios: lo que pide la comunidad.",
            "forum": "Análisis: la comunidad de la región pide más seguridad.",
        },
        "image_keywords": ["calle", "barrio", "Villavicencio"],
    }
    data.update(extra)
    return json.dumps(data, ensure_ascii=False)


@pytest.fixture
def payload():
    return engine_payload


class FakeEngine:
    """Stands in for a generative backend; replies are scripted per test."""

    def __init__(self, name, text=None, reason=None, configured=True, image_url=None):
        self.name = name
        self.text = text
        self.reason = reason
        self.configured = configured
        self.image_url = image_url
        self.timeout = 20.0
        self.prompts = []

    def complete(self, system, user, max_output_chars=9000):
        self.prompts.append(user)
        if not self.configured:
            return EngineReply(engine=self.name, ok=False, reason="not_configured")
        if self.text is None:
            return EngineReply(engine=self.name, ok=False, reason=self.reason or "http_500", status=500)
        text = self.text(user) if callable(self.text) else self.text
        return EngineReply(engine=self.name, ok=True, text=text, status=200)

    def generate_image(self, prompt):
        if self.image_url:
            return EngineReply(engine=self.name, ok=True, image_url=self.image_url, status=200)
        return EngineReply(engine=self.name, ok=False, reason="not_configured")


@pytest.fixture
def fake():
    return FakeEngine


@pytest.fixture
def fake_engines(monkeypatch):
    """Install scripted engines: fake_engines(si=FakeEngine(...), openai=FakeEngine(...))."""
    def _install(si=None, openai=None):
        backends = {
            "si": si or FakeEngine("si", configured=False),
            "openai": openai or FakeEngine("openai", configured=False),
        }
        monkeypatch.setattr(engines_mod, "build_engines", lambda: backends)
        return backends
    return _install


@pytest.fixture
def offline(monkeypatch):
    """No news search hits and no licensed photos."""
    from editorial.services import images, news_search
    monkeypatch.setattr(news_search, "search_articles", lambda query, **kw: [])
    monkeypatch.setattr(images, "search_commons", lambda query, policy: [])
