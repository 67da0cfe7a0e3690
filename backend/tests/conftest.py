"""
Shared fixtures: an in-memory SQLite database, a TestClient wired to it,
users with tokens, and a seeded blog.
"""

import os

# Must be set before blog_api.core.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from blog_api.core.database import Base, get_db
from blog_api.core.security import create_access_token, get_password_hash
from blog_api.main import app
from blog_api.models.article import Article, ArticleTag
from blog_api.models.category import Category
from blog_api.models.image import Image
from blog_api.models.setting import Setting
from blog_api.models.tag import Tag
from blog_api.models.user import User
from blog_api.storage.backup_storage import backup_storage


def make_engine():
    # StaticPool keeps one connection so the in-memory database survives
    # across sessions and TestClient threads
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def other_db():
    """A second, independent database for round-trip tests"""
    engine = make_engine()
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def backup_dir(tmp_path, monkeypatch):
    directory = tmp_path / "backups"
    monkeypatch.setattr(backup_storage, "backup_dir", directory)
    return directory


@pytest.fixture
def client(session_factory, backup_dir):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager: the lifespan (create_all on the real
    # engine, scheduler) stays out of the tests
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_user(db, username, role="user", password="secret123", is_active=True):
    user = User(
        username=username,
        password_hash=get_password_hash(password),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token, _ = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return add_user(db, "admin", role="admin")


@pytest.fixture
def author(db):
    return add_user(db, "author", role="user")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def author_headers(author):
    return auth_headers(author)


def seed_blog(db, with_images=False):
    """3 articles, 2 categories, 4 tags, 5 article-tag links, 6 settings"""
    db.add_all([
        Category(id=1, name="Tech", description="Programming", color="#111111", sort_order=1),
        Category(id=2, name="Life", color="#222222", sort_order=2),
    ])
    db.add_all([
        Tag(id=1, name="python"),
        Tag(id=2, name="sql", color="#00AA00"),
        Tag(id=3, name="travel"),
        Tag(id=4, name="notes", description="Short posts"),
    ])
    db.flush()
    db.add_all([
        Article(id=1, title="Hello", content="First post", status="published",
                category_id=1, view_count=10, is_featured=True, slug="hello",
                published_at=datetime(2024, 1, 2, 3, 4, 5)),
        Article(id=2, title="Draft", content="Work in progress", category_id=1),
        Article(id=3, title="Trip", content="Went places", category_id=2,
                excerpt="Short trip", slug="trip"),
    ])
    db.flush()
    db.add_all([
        ArticleTag(article_id=1, tag_id=1),
        ArticleTag(article_id=1, tag_id=2),
        ArticleTag(article_id=2, tag_id=1),
        ArticleTag(article_id=3, tag_id=3),
        ArticleTag(article_id=3, tag_id=4),
    ])
    db.add_all([
        Setting(key="site_title", value="My Blog", type="string", description="Title"),
        Setting(key="site_description", value="Notes", type="string"),
        Setting(key="posts_per_page", value="10", type="number"),
        Setting(key="backup_enabled", value="false", type="boolean"),
        Setting(key="theme", value='{"primary_color": "#3B82F6"}', type="json"),
        Setting(key="comments_enabled", value="true", type="boolean"),
    ])
    if with_images:
        db.add(Image(id=1, filename="a.png", original_name="photo.png", file_path="/uploads/a.png",
                     file_size=1234, mime_type="image/png", width=10, height=20, article_id=1))
    db.commit()


@pytest.fixture
def seeded_db(db):
    seed_blog(db)
    return db
