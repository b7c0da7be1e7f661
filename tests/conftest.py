"""Pytest configuration and fixtures for lapublica-backup tests."""

from collections.abc import AsyncIterator
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from lapublica_backup.config import ApiToken, Settings
from lapublica_backup.db import Database
from lapublica_backup.db.repositories import Store
from lapublica_backup.models.backup import EntityKind
from lapublica_backup.models.category import Category, CategoryType
from lapublica_backup.services import BackupService, Collector, ImportOrchestrator, build_registry
from lapublica_backup.services.reconcilers import EntityStrategy, ImportContext
from lapublica_backup.services.reference_resolver import ReferenceResolver

ADMIN_TOKEN = "admin-token-0001"
MEMBER_TOKEN = "member-token-0001"
ADMIN_EMAIL = "admin@lapublica.cat"


def utc(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def test_settings() -> Settings:
    """Test configuration settings."""
    return Settings(
        database_path=":memory:",
        max_records_default=1000,
        max_records_limit=5000,
        import_concurrency=4,
        api_tokens=[
            ApiToken(token=ADMIN_TOKEN, email=ADMIN_EMAIL, role="admin"),
            ApiToken(token=MEMBER_TOKEN, email="member@lapublica.cat", role="user"),
        ],
        log_level="INFO",
    )


@pytest_asyncio.fixture
async def memory_db() -> AsyncIterator[Database]:
    """In-memory database for fast tests."""
    db = Database(database_path=":memory:")
    await db.connect()
    await db.migrate()

    yield db

    await db.close()


@pytest_asyncio.fixture
async def store(memory_db: Database) -> Store:
    """Repositories over the in-memory database."""
    return Store(memory_db)


@pytest_asyncio.fixture
async def registry(store: Store) -> dict[EntityKind, EntityStrategy]:
    """Strategy registry."""
    return build_registry(store)


@pytest_asyncio.fixture
async def collector(store: Store, registry: dict[EntityKind, EntityStrategy]) -> Collector:
    """Export collector."""
    return Collector(store, registry)


@pytest_asyncio.fixture
async def orchestrator(
    store: Store, registry: dict[EntityKind, EntityStrategy]
) -> ImportOrchestrator:
    """Import orchestrator."""
    return ImportOrchestrator(store, registry, concurrency=4)


@pytest_asyncio.fixture
async def backup_service(store: Store, test_settings: Settings) -> BackupService:
    """Backup service facade."""
    return BackupService(store, test_settings)


@pytest_asyncio.fixture
async def admin_id(store: Store) -> str:
    """Administrator account standing in for unresolved authors."""
    return await store.users.create_user(
        email=ADMIN_EMAIL,
        username="admin",
        document={"firstName": "Admin"},
        role="admin",
        created_at=utc(2023),
    )


@pytest_asyncio.fixture
async def import_context(store: Store, admin_id: str) -> ImportContext:
    """Import context without replacement."""
    return ImportContext(references=ReferenceResolver(store, fallback_user_id=admin_id))


@pytest_asyncio.fixture
async def sample_data(store: Store, admin_id: str) -> dict:
    """Small platform: two authors, posts, a company tree and content."""
    anna = await store.users.create_user(
        email="anna@example.cat",
        username="anna",
        document={"firstName": "Anna", "lastName": "Puig"},
        created_at=utc(2024, 1, 10),
    )
    pere = await store.users.create_user(
        email="pere@example.cat",
        username="pere",
        document={"firstName": "Pere", "lastName": "Vila"},
        created_at=utc(2024, 6, 10),
    )

    tecnologia = await store.categories.create(
        Category(name="Tecnologia", type=CategoryType.COMPANY, created_at=utc(2024))
    )
    software = await store.categories.create(
        Category(
            name="Software",
            type=CategoryType.COMPANY,
            parent_id=tecnologia.id,
            created_at=utc(2024),
        )
    )
    await store.categories.create(
        Category(name="Arxivada", type=CategoryType.COMPANY, is_active=False, created_at=utc(2024))
    )

    for month in (2, 3, 4):
        await store.posts.insert(
            {"content": f"Post {month} de l'Anna", "author_id": anna},
            {"comments": [], "likes": [pere]},
            created_at=utc(2024, month, 1),
        )
    await store.posts.insert(
        {"content": "Post d'en Pere", "author_id": pere},
        {"comments": [{"text": "Bon dia", "author": anna, "createdAt": None}], "likes": []},
        created_at=utc(2024, 7, 1),
    )

    company = await store.companies.insert(
        {"name": "Innovació SL", "owner_id": anna, "category_id": software.id},
        {"description": "Consultoria"},
        created_at=utc(2024, 2, 1),
    )
    await store.job_offers.insert(
        {"title": "Desenvolupador Python", "company_id": company, "category_id": None},
        {"location": "Barcelona"},
        created_at=utc(2024, 3, 1),
    )

    return {
        "anna": anna,
        "pere": pere,
        "tecnologia": tecnologia,
        "software": software,
        "company": company,
    }
