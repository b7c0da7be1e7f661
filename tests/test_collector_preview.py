"""Tests for export collection, preview counts and document assembly."""

from unittest.mock import AsyncMock

import pytest

from lapublica_backup.db.repositories import Store
from lapublica_backup.models.backup import EntityKind, SelectionPolicy
from lapublica_backup.services import BackupService, Collector
from lapublica_backup.services.preview_service import PreviewService
from lapublica_backup.services.reconcilers import EntityStrategy


def _policy(**values) -> SelectionPolicy:
    return SelectionPolicy.model_validate(values)


@pytest.mark.asyncio
async def test_collect_only_selected_kinds(collector: Collector, sample_data: dict) -> None:
    data = await collector.collect(_policy(includeUsers=True, includePosts=True))

    assert set(data) == {EntityKind.USERS, EntityKind.POSTS}
    assert len(data[EntityKind.USERS]) == 3
    assert len(data[EntityKind.POSTS]) == 4


@pytest.mark.asyncio
async def test_user_snapshots_never_carry_passwords(
    collector: Collector, sample_data: dict
) -> None:
    data = await collector.collect(_policy(includeUsers=True))

    for snapshot in data[EntityKind.USERS]:
        assert "password" not in snapshot
        assert "password_hash" not in snapshot
        assert {"_id", "email", "username", "role", "createdAt"} <= set(snapshot)


@pytest.mark.asyncio
async def test_date_range_filter(collector: Collector, sample_data: dict) -> None:
    """Test that creation dates bound the selection inclusively."""
    data = await collector.collect(
        _policy(
            includeUsers=True,
            includePosts=True,
            dateFrom="2024-03-01T00:00:00Z",
            dateTo="2024-06-30T00:00:00Z",
        )
    )

    assert [u["email"] for u in data[EntityKind.USERS]] == ["pere@example.cat"]
    assert [p["content"] for p in data[EntityKind.POSTS]] == [
        "Post 3 de l'Anna",
        "Post 4 de l'Anna",
    ]


@pytest.mark.asyncio
async def test_author_filter_and_cap(collector: Collector, sample_data: dict) -> None:
    policy = _policy(includePosts=True, authorId=sample_data["anna"])

    assert len((await collector.collect(policy))[EntityKind.POSTS]) == 3

    capped = await collector.collect(policy.model_copy(update={"max_records": 2}))
    assert [p["content"] for p in capped[EntityKind.POSTS]] == [
        "Post 2 de l'Anna",
        "Post 3 de l'Anna",
    ]


@pytest.mark.asyncio
async def test_job_offers_filtered_through_company_owner(
    collector: Collector, sample_data: dict
) -> None:
    owned = await collector.collect(_policy(includeJobOffers=True, authorId=sample_data["anna"]))
    not_owned = await collector.collect(
        _policy(includeJobOffers=True, authorId=sample_data["pere"])
    )

    assert len(owned[EntityKind.JOB_OFFERS]) == 1
    assert owned[EntityKind.JOB_OFFERS][0]["company"]["name"] == "Innovació SL"
    assert not_owned[EntityKind.JOB_OFFERS] == []


@pytest.mark.asyncio
async def test_category_filter(collector: Collector, sample_data: dict) -> None:
    matching = await collector.collect(
        _policy(includeCompanies=True, categoryFilter=sample_data["software"].id)
    )
    other = await collector.collect(
        _policy(includeCompanies=True, categoryFilter=sample_data["tecnologia"].id)
    )

    assert len(matching[EntityKind.COMPANIES]) == 1
    assert other[EntityKind.COMPANIES] == []


@pytest.mark.asyncio
async def test_references_exported_as_natural_keys(
    collector: Collector, sample_data: dict
) -> None:
    data = await collector.collect(_policy(includePosts=True, includeCompanies=True))

    company = data[EntityKind.COMPANIES][0]
    assert company["owner"]["email"] == "anna@example.cat"
    assert company["category"]["name"] == "Software"

    pere_post = data[EntityKind.POSTS][-1]
    assert pere_post["author"]["username"] == "pere"
    assert pere_post["comments"][0]["author"]["email"] == "anna@example.cat"

    anna_post = data[EntityKind.POSTS][0]
    assert anna_post["likes"][0]["email"] == "pere@example.cat"


@pytest.mark.asyncio
async def test_categories_active_only_with_parent_keys(
    collector: Collector, sample_data: dict
) -> None:
    """Test that category exports skip inactive rows and ignore date filters."""
    data = await collector.collect(
        _policy(includeCategories=True, dateFrom="2030-01-01T00:00:00Z")
    )

    snapshots = {c["name"]: c for c in data[EntityKind.CATEGORIES]}
    assert set(snapshots) == {"Tecnologia", "Software"}
    assert snapshots["Tecnologia"]["parentCategory"] is None
    assert snapshots["Software"]["parentCategory"] == {
        "name": "Tecnologia",
        "type": "company",
        "parent": None,
    }


@pytest.mark.asyncio
async def test_failing_kind_yields_empty_list(
    collector: Collector,
    registry: dict[EntityKind, EntityStrategy],
    sample_data: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that one failing kind does not abort the others."""
    monkeypatch.setattr(
        registry[EntityKind.POSTS], "collect", AsyncMock(side_effect=RuntimeError("boom"))
    )

    data = await collector.collect(_policy(includeUsers=True, includePosts=True))

    assert data[EntityKind.POSTS] == []
    assert len(data[EntityKind.USERS]) == 3


@pytest.mark.asyncio
async def test_preview_matches_export(
    collector: Collector, backup_service: BackupService, sample_data: dict
) -> None:
    """Test that preview counts equal the sizes of an export with the same policy."""
    policy = _policy(
        includeUsers=True,
        includePosts=True,
        includeCategories=True,
        includeJobOffers=True,
        maxRecords=2,
    )

    preview = await PreviewService(collector).preview(policy)
    document = await backup_service.export(policy)

    assert preview.statistics == document.statistics
    assert preview.statistics == {"users": 2, "posts": 2, "jobOffers": 1, "categories": 2}
    assert preview.total_records == 7
    assert preview.filters["maxRecords"] == 2


@pytest.mark.asyncio
async def test_preview_without_kinds_counts_everything(
    backup_service: BackupService, sample_data: dict
) -> None:
    preview = await backup_service.preview(_policy())

    assert set(preview.statistics) == {kind.value for kind in EntityKind}
    assert preview.statistics["users"] == 3
    assert preview.statistics["blogs"] == 0
    assert preview.total_records == sum(preview.statistics.values())


@pytest.mark.asyncio
async def test_export_document(backup_service: BackupService, sample_data: dict) -> None:
    document = await backup_service.export(_policy(includeCompanies=True, includeBlogs=True))

    assert document.version == "2.0.0"
    assert document.platform == "La Pública - Backup Granular"
    assert document.statistics == {"companies": 1, "blogs": 0}
    assert document.options["includeCompanies"] is True
    assert document.filename.startswith("la-publica-backup-")


@pytest.mark.asyncio
async def test_export_is_read_only(
    store: Store, backup_service: BackupService, sample_data: dict
) -> None:
    before = await store.posts.count()
    await backup_service.export(_policy(includePosts=True))

    assert await store.posts.count() == before
