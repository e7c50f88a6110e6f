# tests/test_crud.py
from carshopper import crud
from carshopper.criteria import normalize_criteria
from carshopper.services import ingest_vehicle

from conftest import add_vehicle, vector


def _ids(rows):
    return [v.id for v in rows]


def test_upsert_and_get(db):
    payload = {"title": "Test Car", "price": 1000, "mileage": 85000, "marketplace_url": "http://x"}
    vid = ingest_vehicle(db, payload)
    obj = crud.get_vehicle(db, vid)
    assert obj is not None
    assert obj.title == "Test Car"
    assert obj.mileage == "85000"


def test_upsert_is_keyed_on_marketplace_url(db):
    first = ingest_vehicle(db, {"title": "Old title", "price": 1000, "marketplace_url": "http://x"})
    second = ingest_vehicle(db, {"title": "New title", "price": 900, "marketplace_url": "http://x"})
    assert first == second
    db.expire_all()
    assert crud.get_vehicle(db, first).title == "New title"
    assert crud.get_vehicle(db, first).price == 900


def test_filter_by_make(db, catalog):
    rows = crud.filter_vehicles(db, normalize_criteria({"make": "Honda"}))
    assert _ids(rows) == [catalog["honda"]]


def test_make_match_is_case_insensitive_and_exact(db, catalog):
    assert _ids(crud.filter_vehicles(db, normalize_criteria({"make": "honda"}))) == [catalog["honda"]]
    assert crud.filter_vehicles(db, normalize_criteria({"make": "Hond"})) == []


def test_empty_filters_return_newest_first(db, catalog):
    rows = crud.filter_vehicles(db, normalize_criteria({}))
    assert _ids(rows) == [catalog["toyota"], catalog["honda"]]


def test_price_and_year_bounds(db, catalog):
    assert _ids(crud.filter_vehicles(db, normalize_criteria({"max_price": 12000}))) == [catalog["honda"]]
    assert _ids(crud.filter_vehicles(db, normalize_criteria({"min_year": 2019}))) == [catalog["toyota"]]


def test_both_price_spellings_apply_together(db, catalog):
    # 20000 alone matches both; 12000 alongside it narrows to the Honda
    fs = normalize_criteria({"max_price": 20000, "maxPrice": 12000})
    assert _ids(crud.filter_vehicles(db, fs)) == [catalog["honda"]]


def test_body_type_filters(db, catalog):
    assert _ids(crud.filter_vehicles(db, normalize_criteria({"body_types": ["SUV"]}))) == [catalog["toyota"]]
    assert _ids(crud.filter_vehicles(db, normalize_criteria({"bodyType": "sedan"}))) == [catalog["honda"]]
    both = normalize_criteria({"body_types": ["SUV"], "bodyType": "sedan"})
    assert crud.filter_vehicles(db, both) == []


def test_text_query_matches_title_make_or_model(db, catalog):
    assert _ids(crud.filter_vehicles(db, normalize_criteria({}), text_query="FORTUNER")) == [catalog["toyota"]]
    assert _ids(crud.filter_vehicles(db, normalize_criteria({}), text_query="reliable")) == [catalog["honda"]]
    assert crud.filter_vehicles(db, normalize_criteria({}), text_query="100%") == []


def test_exclusions_and_limit(db, session_factory, catalog):
    for n in range(3, 8):
        add_vehicle(session_factory, n)
    rows = crud.filter_vehicles(db, normalize_criteria({}), exclude_ids={catalog["toyota"]}, limit=3)
    assert len(rows) == 3
    assert catalog["toyota"] not in _ids(rows)


def test_attach_embedding_is_write_once(db, catalog):
    assert [v.id for v in crud.vehicles_missing_embedding(db, 10)] == [catalog["honda"], catalog["toyota"]]
    assert crud.attach_embedding(db, catalog["honda"], vector(0.2)) is True
    assert crud.attach_embedding(db, catalog["honda"], vector(0.9)) is False
    assert [v.id for v in crud.vehicles_missing_embedding(db, 10)] == [catalog["toyota"]]


def test_toggle_favorite_and_hide(db, catalog):
    assert crud.toggle_favorite(db, "u1", catalog["honda"]) is True
    assert crud.favorite_vehicle_ids(db, "u1") == {catalog["honda"]}
    assert crud.toggle_favorite(db, "u1", catalog["honda"]) is False
    assert crud.favorite_vehicle_ids(db, "u1") == set()

    assert crud.hide_vehicle(db, "u1", catalog["toyota"], reason="too pricey") is True
    assert crud.hide_vehicle(db, "u1", catalog["toyota"]) is False
    assert crud.hidden_vehicle_ids(db, "u1") == {catalog["toyota"]}
    assert crud.hidden_vehicle_ids(db, "u2") == set()


def test_interests_are_listed_in_creation_order(db):
    a = crud.create_interest(db, "u1", "Daily Driver", {"make": "Honda"})
    b = crud.create_interest(db, "u1", "Weekend", {}, is_active=False)
    assert [i.id for i in crud.list_interests(db, "u1")] == [a.id, b.id]
    assert [i.id for i in crud.list_interests(db, "u1", active_only=True)] == [a.id]
    assert crud.delete_interest(db, "u2", a.id) is False
    assert crud.delete_interest(db, "u1", a.id) is True


class _NothingDeleted:
    rowcount = 0


def test_hide_race_is_not_an_error(db, session_factory, catalog, monkeypatch):
    with session_factory() as other:
        crud.hide_vehicle(other, "u1", catalog["toyota"])
    # this session's existence check ran before the other insert landed
    monkeypatch.setattr(db, "scalar", lambda *args, **kwargs: None)
    assert crud.hide_vehicle(db, "u1", catalog["toyota"]) is False
    assert crud.hidden_vehicle_ids(db, "u1") == {catalog["toyota"]}


def test_favorite_race_keeps_single_row(db, session_factory, catalog, monkeypatch):
    with session_factory() as other:
        crud.toggle_favorite(other, "u1", catalog["honda"])
    # the delete saw no row, then the insert collides with the concurrent one
    monkeypatch.setattr(db, "execute", lambda *args, **kwargs: _NothingDeleted())
    assert crud.toggle_favorite(db, "u1", catalog["honda"]) is True
    monkeypatch.undo()
    assert crud.favorite_vehicle_ids(db, "u1") == {catalog["honda"]}
