import json
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from statement_extraction.errors import DuplicateStoreError
from statement_extraction.learned import (
    SIMILARITY_THRESHOLD,
    LearnedDescriptionStore,
    similarity,
)

FIXED = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def _store(path: Path | None = None) -> LearnedDescriptionStore:
    store = LearnedDescriptionStore(path, clock=lambda: FIXED)
    store.load()
    return store


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("woolworths", "woolworths", 1.0),
        ("woolworths", "woolworth", 0.8),
        ("pick n pay menlyn", "pick n pay", 0.8),
        ("checkers", "chekers", 0.875),
        ("shell", "spar", 0.2),
    ],
)
def test_similarity(a: str, b: str, expected: float) -> None:
    assert similarity(a, b) == pytest.approx(expected)
    assert similarity(b, a) == pytest.approx(expected)


def test_find_similar_store_is_reflexive_and_thresholded() -> None:
    store = _store()
    store.learn_description("Checkers", "Groceries", "Food")
    exact = store.find_similar_store("  CHECKERS ")
    assert exact is not None and exact.similarity == 1.0

    close = store.find_similar_store("Chekers")
    assert close is not None
    assert close.key == "checkers"
    assert close.similarity >= SIMILARITY_THRESHOLD

    assert store.find_similar_store("Shell") is None
    assert store.find_similar_store("   ") is None


def test_first_entry_in_insertion_order_wins() -> None:
    store = _store()
    store.learn_description("Spar Rosebank", "Groceries", "Food")
    store.learn_description("Spar", "Other groceries", "Shopping")
    match = store.find_similar_store("spar rosebank mall")
    assert match is not None
    assert match.key == "spar rosebank"


def test_get_description_learns_unseen_store_then_bumps_count() -> None:
    store = _store()
    assert store.get_description("Seattle Coffee", Decimal("40")) == "Coffee"
    entry = store.get("seattle coffee")
    assert entry is not None
    assert entry.category == "Food"
    assert entry.count == 1
    assert entry.original_store == "Seattle Coffee"

    assert store.get_description("seattle coffee ", Decimal("55")) == "Coffee"
    entry = store.get("Seattle Coffee")
    assert entry.count == 2
    assert entry.amount == Decimal("55")


def test_learned_description_is_returned_for_the_same_store() -> None:
    store = _store()
    store.learn_description("Blue Kiosk", "Airtime top-up", "Bills", Decimal("29.00"))
    assert store.get_description("Blue Kiosk", Decimal("29.00")) == "Airtime top-up"
    assert store.category_for_store("blue kiosk") == "Bills"
    assert store.get("blue kiosk").count == 2


def test_blank_store_gets_placeholders_without_learning() -> None:
    store = _store()
    assert store.get_description("  ") == "Unknown Purchase"
    assert store.category_for_store("") == "Other"
    assert len(store) == 0


def test_learn_description_upserts() -> None:
    store = _store()
    store.learn_description("Engen", "Petrol", "Transport", Decimal("600"))
    updated = store.learn_description("ENGEN", "Fuel", "Car", Decimal("650"))
    assert len(store) == 1
    assert updated.count == 2
    assert updated.description == "Fuel"
    assert updated.category == "Car"
    assert updated.amount == Decimal("650")
    assert updated.original_store == "Engen"


def test_manual_entry_keeps_description_and_category_on_learn() -> None:
    store = _store()
    created = store.create_manual_store("Corner Shop", "Milk run", "Groceries")
    assert created.is_manual is True
    assert created.count == 0

    learned = store.learn_description("corner shop", "Purchase at corner shop", "Other")
    assert learned.description == "Milk run"
    assert learned.category == "Groceries"
    assert learned.count == 1

    assert store.update_description("Corner Shop", "Bread", "Food") is True
    entry = store.get("corner shop")
    assert (entry.description, entry.category, entry.count) == ("Bread", "Food", 2)


def test_create_manual_store_rejects_duplicates() -> None:
    store = _store()
    store.learn_description("Spar", "Groceries", "Food")
    with pytest.raises(DuplicateStoreError) as excinfo:
        store.create_manual_store(" SPAR ", "x", "y")
    assert excinfo.value.key == "spar"
    assert len(store) == 1
    assert store.get("spar").description == "Groceries"


def test_update_and_delete_missing_store() -> None:
    store = _store()
    assert store.update_description("nobody", "x", "y") is False
    assert store.delete_description("nobody") is False
    store.learn_description("Somebody", "x", "y")
    assert store.delete_description("SOMEBODY") is True
    assert "somebody" not in store


def test_persistence_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "learned.json"
    store = _store(path)
    store.learn_description("Woolworths", "Groceries", "Food", Decimal("250.00"))
    store.create_manual_store("Gym", "Membership", "Health")

    blob = json.loads(path.read_text(encoding="utf-8"))
    assert [key for key, _ in blob] == ["woolworths", "gym"]
    assert blob[0][1]["originalStore"] == "Woolworths"
    assert blob[1][1]["isManual"] is True
    assert "lastUsed" in blob[0][1]

    reopened = LearnedDescriptionStore.open(path)
    assert len(reopened) == 2
    entry = reopened.get("woolworths")
    assert entry.amount == Decimal("250.00")
    assert entry.last_used == FIXED
    assert reopened.get("gym").is_manual is True


@pytest.mark.parametrize("content", ["{oops", '[["x", {"description": 1}]]', '{"a": 1}'])
def test_malformed_blob_yields_empty_store(tmp_path: Path, content: str) -> None:
    path = tmp_path / "learned.json"
    path.write_text(content, encoding="utf-8")
    store = LearnedDescriptionStore.open(path)
    assert len(store) == 0


def test_clear_persists_empty_list(tmp_path: Path) -> None:
    path = tmp_path / "learned.json"
    store = _store(path)
    store.learn_description("Spar", "Groceries", "Food")
    store.clear()
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_reporting() -> None:
    store = _store()
    store.learn_description("Spar", "Groceries", "Food")
    store.learn_description("Spar", "Groceries", "Food")
    store.learn_description("Engen", "Petrol", "Transport")
    store.create_manual_store("Dojo", "Classes", "Fitness")

    rows = store.all_descriptions()
    assert [r.store for r in rows] == ["Spar", "Engen", "Dojo"]

    assert "Fitness" in store.available_categories()
    assert store.available_categories() == sorted(store.available_categories())

    stats = store.stats()
    assert stats.total_stores == 3
    assert stats.total_transactions == 3
    assert stats.manual_stores == 1
    assert stats.learned_stores == 2
    assert stats.categories == {"Food": 1, "Transport": 1, "Fitness": 1}
    assert stats.average_transactions_per_store == 1.0
