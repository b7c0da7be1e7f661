"""Tests for category dependency ordering."""

from lapublica_backup.services.dependency_resolver import DependencyResolver


def _names(tier) -> list[str]:
    return [item.record["name"] for item in tier]


def _key(name: str, parent: dict | None = None) -> dict:
    return {"name": name, "type": "company", "parent": parent}


def test_parents_come_before_children() -> None:
    """Test that children listed first are still scheduled after parents."""
    tecnologia = _key("Tecnologia")
    software = _key("Software", tecnologia)
    records = [
        {"name": "Web", "type": "company", "parentCategory": software},
        {"name": "Software", "type": "company", "parentCategory": tecnologia},
        {"name": "Tecnologia", "type": "company", "parentCategory": None},
    ]

    batch = DependencyResolver().resolve(records)

    assert [_names(tier) for tier in batch.tiers] == [["Tecnologia"], ["Software"], ["Web"]]
    assert batch.unresolved == []
    assert batch.size == 3


def test_local_ids_are_rewritten_to_keys() -> None:
    """Test that parents given by document-local id become natural keys."""
    records = [
        {"_id": "c2", "name": "Software", "type": "company", "parentCategory": "c1"},
        {"_id": "c1", "name": "Tecnologia", "type": "company", "parentCategory": None},
        {"_id": "c3", "name": "Web", "type": "company", "parentCategory": "c2"},
    ]

    batch = DependencyResolver().resolve(records)

    assert [_names(tier) for tier in batch.tiers] == [["Tecnologia"], ["Software"], ["Web"]]
    web = batch.tiers[2][0].record
    assert web["parentCategory"] == _key("Software", _key("Tecnologia"))
    assert records[2]["parentCategory"] == "c2"


def test_parent_outside_batch() -> None:
    """Test that keys and ids not in the batch are left for the store."""
    records = [
        {"name": "Orfe", "type": "company", "parentCategory": _key("Inexistent")},
        {"name": "Solt", "type": "company", "parentCategory": "6500aa11"},
        {"name": "Arrel", "type": "company"},
    ]

    batch = DependencyResolver().resolve(records)

    assert [_names(tier) for tier in batch.tiers] == [["Arrel"], ["Orfe", "Solt"]]
    assert batch.tiers[1][1].record["parentCategory"] == "6500aa11"


def test_cycles_are_unresolved() -> None:
    """Test that a parent cycle and everything below it is reported."""
    records = [
        {"_id": "a", "name": "Alfa", "type": "blog", "parentCategory": "b"},
        {"_id": "b", "name": "Beta", "type": "blog", "parentCategory": "a"},
        {"_id": "c", "name": "Gamma", "type": "blog", "parentCategory": "a"},
        {"_id": "s", "name": "Self", "type": "blog", "parentCategory": "s"},
        {"_id": "d", "name": "Delta", "type": "blog", "parentCategory": None},
    ]

    batch = DependencyResolver().resolve(records)

    assert [_names(tier) for tier in batch.tiers] == [["Delta"]]
    assert sorted(record["name"] for record, _ in batch.unresolved) == [
        "Alfa",
        "Beta",
        "Gamma",
        "Self",
    ]


def test_duplicate_keys_share_a_lock() -> None:
    records = [
        {"name": "Tecnologia", "type": "company"},
        {"name": "TECNOLOGIA", "type": "company"},
        {"name": "Tecnologia", "type": "blog"},
    ]

    batch = DependencyResolver().resolve(records)

    first, second, third = batch.tiers[0]
    assert first.lock_key == second.lock_key
    assert first.lock_key != third.lock_key


def test_malformed_records_stay_in_first_tier() -> None:
    """Test that invalid records are scheduled so they surface as errors."""
    records = ["not a record", {"type": "company"}, {"name": "Tecnologia", "type": "planet"}]

    batch = DependencyResolver().resolve(records)

    assert len(batch.tiers) == 1
    assert [item.record for item in batch.tiers[0]] == records
    assert len({item.lock_key for item in batch.tiers[0]}) == 3


def test_store_parented_duplicates_share_a_lock() -> None:
    """Test that records under the same stored parent id are serialized."""
    records = [
        {"name": "Fill", "type": "company", "parentCategory": "stored-parent"},
        {"name": "fill", "type": "company", "parentCategory": "stored-parent"},
        {"name": "Fill", "type": "company", "parentCategory": "other-parent"},
    ]

    batch = DependencyResolver().resolve(records)

    first, second, third = batch.tiers[0]
    assert first.lock_key == second.lock_key
    assert first.lock_key != third.lock_key
