"""Tests for backup and category models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from lapublica_backup.models import (
    BackupDocument,
    Category,
    CategoryKey,
    CategoryType,
    EntityKind,
    ImportOptions,
    ImportResult,
    KindCounters,
    SelectionPolicy,
)


class TestEntityKind:
    """Test wire names and flag names."""

    def test_fourteen_kinds(self):
        assert len(EntityKind) == 14

    def test_flag_names(self):
        assert EntityKind.USERS.include_flag == "includeUsers"
        assert EntityKind.GROUP_POSTS.include_flag == "includeGroupPosts"
        assert EntityKind.FORUM_CATEGORIES.import_flag == "importForumCategories"
        assert EntityKind.JOB_OFFERS.value == "jobOffers"


class TestSelectionPolicy:
    """Test selection parsing from the flat wire form."""

    def test_include_flags(self):
        policy = SelectionPolicy.model_validate(
            {"includeUsers": True, "includePosts": "true", "includeBlogs": "false"}
        )

        assert policy.kinds == frozenset({EntityKind.USERS, EntityKind.POSTS})
        assert policy.includes(EntityKind.USERS)
        assert not policy.includes(EntityKind.BLOGS)

    def test_defaults(self):
        policy = SelectionPolicy()

        assert policy.kinds == frozenset()
        assert policy.date_from is None
        assert policy.category_filter == ()
        assert policy.max_records == 1000

    def test_blank_values_become_none(self):
        policy = SelectionPolicy.model_validate({"dateFrom": "", "dateTo": "  ", "authorId": ""})

        assert policy.date_from is None
        assert policy.date_to is None
        assert policy.author_id is None

    def test_naive_dates_are_utc(self):
        policy = SelectionPolicy.model_validate({"dateFrom": "2024-03-01T00:00:00"})

        assert policy.date_from == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_category_filter_from_comma_string(self):
        policy = SelectionPolicy.model_validate({"categoryFilter": "cat-1, cat-2,"})

        assert policy.category_filter == ("cat-1", "cat-2")

    def test_max_records_must_be_positive(self):
        with pytest.raises(ValidationError):
            SelectionPolicy.model_validate({"maxRecords": 0})

    def test_with_kinds(self):
        policy = SelectionPolicy.model_validate({"includeUsers": True, "maxRecords": 5})
        widened = policy.with_kinds(EntityKind)

        assert widened.kinds == frozenset(EntityKind)
        assert widened.max_records == 5
        assert policy.kinds == frozenset({EntityKind.USERS})

    def test_to_wire(self):
        policy = SelectionPolicy.model_validate(
            {"includeCategories": True, "authorId": "u-1", "maxRecords": 10}
        )
        wire = policy.to_wire()

        assert wire["includeCategories"] is True
        assert wire["includeUsers"] is False
        assert wire["authorId"] == "u-1"
        assert wire["categoryFilter"] is None
        assert wire["maxRecords"] == 10


class TestImportOptions:
    """Test import option parsing."""

    def test_none_selects_nothing(self):
        options = ImportOptions.model_validate(None)

        assert options.kinds == frozenset()
        assert options.replace_existing is False

    def test_import_flags(self):
        options = ImportOptions.model_validate(
            {"importUsers": True, "importCategories": 1, "replaceExisting": "true"}
        )

        assert options.kinds == frozenset({EntityKind.USERS, EntityKind.CATEGORIES})
        assert options.replace_existing is True

    def test_to_wire(self):
        wire = ImportOptions.model_validate({"importBlogs": True}).to_wire()

        assert wire["importBlogs"] is True
        assert wire["importUsers"] is False
        assert wire["replaceExisting"] is False


class TestBackupDocument:
    """Test document assembly."""

    def test_statistics_follow_data(self):
        document = BackupDocument.assemble(
            {EntityKind.POSTS: [{"content": "a"}, {"content": "b"}], EntityKind.USERS: []},
            version="2.0.0",
            platform="La Pública - Backup Granular",
        )

        assert document.statistics == {"users": 0, "posts": 2}
        assert list(document.data) == ["users", "posts"]

    def test_filename(self):
        document = BackupDocument(
            version="2.0.0",
            platform="test",
            exportDate=datetime(2024, 3, 5, 12, 30, tzinfo=timezone.utc),
        )

        assert document.filename == "la-publica-backup-2024-03-05.json"

    def test_to_wire_uses_camel_case(self):
        document = BackupDocument.assemble({}, version="2.0.0", platform="test")
        wire = document.to_wire()

        assert set(wire) == {"version", "exportDate", "platform", "options", "statistics", "data"}
        assert isinstance(wire["exportDate"], str)


class TestResults:
    """Test import result counters."""

    def test_counters_total(self):
        counters = KindCounters(created=2, updated=1, skipped=3, errors=1)
        assert counters.total == 7

    def test_results_to_wire(self):
        result = ImportResult(results={EntityKind.USERS: KindCounters(created=1)})

        assert result.results_to_wire() == {
            "users": {"created": 1, "updated": 0, "skipped": 0, "errors": 0}
        }


class TestCategory:
    """Test category validation."""

    def test_blank_color_and_icon_use_defaults(self):
        category = Category(name="Tecnologia", type="company", color="", icon=None)

        assert category.color == "#3B82F6"
        assert category.icon == "Tag"

    def test_name_length(self):
        with pytest.raises(ValidationError):
            Category(name="T", type=CategoryType.COMPANY)
        with pytest.raises(ValidationError):
            Category(name="T" * 51, type=CategoryType.COMPANY)

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            Category(name="Tecnologia", type="planet")

    def test_name_is_stripped(self):
        assert Category(name="  Salut  ", type=CategoryType.BLOG).name == "Salut"


class TestCategoryKey:
    """Test category natural keys."""

    def test_chain_and_depth(self):
        key = CategoryKey.model_validate(
            {
                "name": "Web",
                "type": "company",
                "parent": {"name": "Software", "type": "company", "parent": None},
            }
        )

        assert [link.name for link in key.chain()] == ["Software", "Web"]
        assert key.depth == 1

    def test_identity_ignores_case(self):
        upper = CategoryKey(name="TECNOLOGIA", type=CategoryType.COMPANY)
        lower = CategoryKey(name="tecnologia", type=CategoryType.COMPANY)

        assert upper.identity() == lower.identity()
        assert upper.identity() != CategoryKey(name="tecnologia", type="blog").identity()

    def test_to_wire(self):
        parent = CategoryKey(name="Tecnologia", type=CategoryType.COMPANY)
        key = CategoryKey(name="Software", type=CategoryType.COMPANY, parent=parent)

        assert key.to_wire() == {
            "name": "Software",
            "type": "company",
            "parent": {"name": "Tecnologia", "type": "company", "parent": None},
        }
