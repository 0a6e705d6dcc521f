"""
Tests for the SQLite repository and connection pool.
"""
import sqlite3

import pytest

from catalog_api.conftest import reference_order
from catalog_api.database import (
    BikeRepository, ConnectionPool, render_predicate, render_sort,
)
from catalog_api.errors import StoreUnavailable
from catalog_api.query import (
    AllOf, AnyOf, FieldMatch, FilterCriteria, Window, compile_predicate,
    resolve_sort,
)

EVERYTHING = Window(skip=0, limit=100)


@pytest.fixture
def repo(catalog_db):
    path, _ = catalog_db
    repository = BikeRepository.from_path(path, size=2, timeout=0.1)
    yield repository
    repository.close()


def ids(docs):
    return [doc["_id"] for doc in docs]


def test_render_empty_tree():
    assert render_predicate(AllOf(())) == ("1", [])
    assert render_predicate(AnyOf(())) == ("0", [])


def test_render_nested_tree():
    tree = AllOf((
        AnyOf((FieldMatch("brand", ("Honda",)), FieldMatch("Brand", ("Honda",)))),
        AnyOf((FieldMatch("model", ("cb",), "contains"),)),
    ))
    sql, params = render_predicate(tree)
    assert sql == (
        "((json_extract(doc, ?) REGEXP ? OR json_extract(doc, ?) REGEXP ?) AND "
        "(json_extract(doc, ?) REGEXP ?))"
    )
    assert params == [
        '$."brand"', r"^(?:Honda)\Z",
        '$."Brand"', r"^(?:Honda)\Z",
        '$."model"', "(?:cb)",
    ]


def test_render_rejects_unknown_nodes():
    with pytest.raises(TypeError):
        render_predicate("brand = 'Honda'")


def test_render_sort_adds_computed_column_for_numeric_keys():
    computed, order = render_sort(resolve_sort("cc-desc"))
    assert computed == [
        "sort_number(COALESCE(json_extract(doc, '$.\"displacement\"'), "
        "json_extract(doc, '$.\"Displacement\"'))) AS _sort_displacement"
    ]
    assert order.startswith("_sort_displacement DESC, ")
    assert order.endswith("id ASC")


def test_find_without_filters_returns_everything_in_name_order(repo, catalog_db):
    _, docs = catalog_db
    found = repo.find(AllOf(()), resolve_sort("name-asc"), EVERYTHING)
    assert ids(found) == ids(reference_order(docs))
    assert repo.count(AllOf(())) == len(docs)


@pytest.mark.parametrize("mode, attribute, descending", [
    ("year-asc", "year", False),
    ("year-desc", "year", True),
    ("cc-asc", "displacement", False),
    ("cc-desc", "displacement", True),
    ("hp-asc", "power", False),
    ("hp-desc", "power", True),
])
def test_numeric_sort_matches_reference(repo, catalog_db, mode, attribute, descending):
    _, docs = catalog_db
    found = repo.find(AllOf(()), resolve_sort(mode), EVERYTHING)
    assert ids(found) == ids(reference_order(docs, attribute, descending))


def test_name_desc(repo, catalog_db):
    _, docs = catalog_db
    found = repo.find(AllOf(()), resolve_sort("name-desc"), EVERYTHING)
    brands = [doc.get("brand") or doc.get("Brand") for doc in found]
    assert brands == ["honda", "Yamaha", "Kawasaki", "Honda", "Bajaj", "BMW"]


def test_find_exposes_computed_sort_key(repo):
    found = repo.find(AllOf(()), resolve_sort("year-asc"), EVERYTHING)
    assert [doc["_sort_year"] for doc in found] == [0.0, 2019.0, 2020.0, 2021.0, 2021.0, 2022.0]


def test_find_applies_window(repo, catalog_db):
    _, docs = catalog_db
    expected = ids(reference_order(docs))
    sort = resolve_sort(None)
    assert ids(repo.find(AllOf(()), sort, Window(skip=2, limit=3))) == expected[2:5]
    assert ids(repo.find(AllOf(()), sort, Window(skip=5, limit=3))) == expected[5:]
    assert repo.find(AllOf(()), sort, Window(skip=50, limit=3)) == []


def test_compiled_predicates_agree_with_in_memory_evaluation(repo, catalog_db):
    _, docs = catalog_db
    cases = [
        FilterCriteria(brands=("honda",)),
        FilterCriteria(brands=("Honda", "Yamaha")),
        FilterCriteria(categories=("adventure", "naked")),
        FilterCriteria(model="r"),
        FilterCriteria(model="(400)"),
        FilterCriteria(search="a"),
        FilterCriteria(brands=("BMW", "Kawasaki"), search="gs"),
        FilterCriteria(model=".*"),
    ]
    for criteria in cases:
        predicate = compile_predicate(criteria)
        found = repo.find(predicate, resolve_sort(None), EVERYTHING)
        expected = [doc for doc in reference_order(docs) if predicate.matches(doc)]
        assert ids(found) == ids(expected), criteria
        assert repo.count(predicate) == len(expected)


def test_get_and_get_many(repo, catalog_db):
    _, docs = catalog_db
    first, second = docs[0]["_id"], docs[3]["_id"]
    assert repo.get(first)["Model"] == "CBR"
    assert repo.get("0" * 32) is None
    found = repo.get_many([second, "f" * 32, first, second])
    assert ids(found) == [second, first]
    assert repo.get_many([]) == []


def test_list_documents(repo):
    brands = repo.list_documents("brands")
    assert [b["name"] for b in brands] == ["Honda", "BMW"]
    with pytest.raises(ValueError):
        repo.list_documents("users")


def test_missing_schema_is_store_unavailable(tmp_path):
    path = str(tmp_path / "empty.db")
    sqlite3.connect(path).close()
    repository = BikeRepository.from_path(path)
    with pytest.raises(StoreUnavailable):
        repository.count(AllOf(()))
    repository.close()


def test_pool_blocks_then_fails_when_exhausted(catalog_db):
    path, _ = catalog_db
    pool = ConnectionPool(path, size=1, timeout=0.05)
    with pool.connection() as conn:
        assert conn.execute("SELECT 1").fetchone()[0] == 1
        with pytest.raises(StoreUnavailable):
            with pool.connection():
                pass
    with pool.connection() as again:
        assert again is conn
    pool.close()


def test_closed_pool_refuses_connections(catalog_db):
    path, _ = catalog_db
    pool = ConnectionPool(path, size=1)
    pool.close()
    with pytest.raises(StoreUnavailable):
        with pool.connection():
            pass


def test_connections_are_read_only(repo):
    with repo.pool.connection() as conn:
        with pytest.raises(sqlite3.OperationalError):
            conn.execute("DELETE FROM bikes")
