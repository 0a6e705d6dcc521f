import pytest
from fastapi.testclient import TestClient

from catalog_api.main import create_app
from catalog_api.query import canonical_value, extract_number
from catalog_loader.database import db_connect, db_init, insert_documents

BIKES = [
    {"Brand": "Honda", "Model": "CBR", "Year": "2020", "Category": "Sport",
     "Displacement": "650cc", "Power": "94 HP"},
    {"Brand": "Yamaha", "Model": "R1", "Year": "n/a", "Category": "Sport",
     "Displacement": "998 cc", "Power": "200 HP"},
    {"brand": "Kawasaki", "model": "Ninja 400", "year": 2019, "category": "Sport",
     "displacement": 399, "power": "45 hp"},
    {"brand": "honda", "model": "Africa Twin", "year": "2021", "category": "Adventure",
     "displacement": "1084cc"},
    {"Brand": "BMW", "Model": "R 1250 GS", "Year": "2021", "Category": "Adventure",
     "Displacement": "1254", "Power": "136.0 hp", "Price": "€ 21,000"},
    {"Brand": "Bajaj", "Model": "Dominar (400)", "Year": "2022", "Category": "Naked",
     "Displacement": "373.3 cc", "Power": "N/A"},
]

BRANDS = [{"name": "Honda", "country": "Japan"}, {"name": "BMW", "country": "Germany"}]

CATEGORIES = [
    {"category": "Category"},
    {"category": "Sport"},
    {"category": "Adventure"},
    {"category": "Sport"},
    {"category": ""},
    {"category": 42},
    {"other": "Naked"},
]


def reference_order(docs, attribute=None, descending=False):
    """Expected listing order, computed in Python from the raw documents."""
    def name_key(doc):
        return (canonical_value(doc, "brand"), canonical_value(doc, "model"), doc["_id"])

    if attribute is None:
        return sorted(docs, key=name_key, reverse=descending)
    ordered = sorted(docs, key=name_key)
    return sorted(ordered, key=lambda d: extract_number(canonical_value(d, attribute)), reverse=descending)


@pytest.fixture
def catalog_db(tmp_path):
    """SQLite catalog seeded with BIKES; yields (path, docs-with-ids)."""
    path = str(tmp_path / "catalog.db")
    conn = db_connect(path)
    try:
        db_init(conn)
        ids = insert_documents(conn, "bikes", BIKES)
        insert_documents(conn, "brands", BRANDS)
        insert_documents(conn, "categories", CATEGORIES)
    finally:
        conn.close()
    docs = [dict(doc, _id=item_id) for doc, item_id in zip(BIKES, ids)]
    return path, docs


@pytest.fixture
def client(catalog_db):
    path, _ = catalog_db
    with TestClient(create_app(db_path=path)) as test_client:
        yield test_client
