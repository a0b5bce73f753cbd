"""
Dashboard balances and the maps proxy.
"""
from unittest.mock import patch

import httpx
import pytest

from paypals.services import maps


def test_balances(login_as, make_circle, alice, bob, carol):
    flat = make_circle(alice, bob, carol, name="Flat")
    trip = make_circle(bob, alice, name="Trip")

    login_as(alice).post(f"/api/transactions/{flat.id}", json={
        "name": "Rent", "total_amount": 90,
        "participants": [{"user_id": bob.id, "amount_owed": 30}, {"user_id": carol.id, "amount_owed": 30}],
    })
    login_as(bob).post(f"/api/transactions/{trip.id}", json={
        "name": "Hotel", "total_amount": 50,
        "participants": [{"user_id": alice.id, "amount_owed": 20}],
    })

    data = login_as(alice).get("/api/dashboard/balances").json()["data"]
    assert data["owedTo"] == 60.0
    assert data["owes"] == 20.0
    assert data["net"] == 40.0
    by_circle = {c["circle_name"]: c for c in data["circles"]}
    assert by_circle["Flat"]["net"] == 60.0
    assert by_circle["Trip"]["net"] == -20.0


def test_balances_empty(login_as, alice):
    data = login_as(alice).get("/api/dashboard/balances").json()["data"]
    assert data == {"owedTo": 0.0, "owes": 0.0, "net": 0.0, "circles": []}


def test_maps_search_needs_query_or_coords(login_as, alice):
    assert login_as(alice).get("/api/maps/search").status_code == 400


def test_maps_search_without_key_is_503(login_as, alice):
    res = login_as(alice).get("/api/maps/search", params={"query": "coffee"})
    assert res.status_code == 503


def test_maps_nearby_search(login_as, alice):
    place = {
        "place_id": "abc",
        "name": "Kopi Corner",
        "vicinity": "1 Orchard Rd",
        "geometry": {"location": {"lat": 1.3, "lng": 103.8}},
    }
    with patch.object(maps, "search_nearby", return_value=[place]) as nearby:
        res = login_as(alice).get("/api/maps/search", params={"lat": 1.3, "lng": 103.8})
    assert res.status_code == 200
    nearby.assert_called_once_with(1.3, 103.8, place_type="restaurant", radius=1000)
    assert res.json()["data"]["places"][0] == {
        "place_id": "abc",
        "name": "Kopi Corner",
        "formatted_address": "1 Orchard Rd",
        "lat": 1.3,
        "lng": 103.8,
        "rating": None,
    }


def test_non_json_body_is_a_maps_error(monkeypatch):
    monkeypatch.setattr(maps.config, "GOOGLE_MAPS_API_KEY", "test-key")
    bad = httpx.Response(200, text="<html>oops</html>", request=httpx.Request("GET", maps.BASE_URL))
    with patch.object(maps.httpx, "get", return_value=bad):
        with pytest.raises(maps.MapsError):
            maps.get_place_details("p1")


def test_create_transaction_survives_non_json_place_lookup(login_as, make_circle, alice, bob, monkeypatch):
    """A garbled Places reply keeps the caller's location values instead of failing the request."""
    monkeypatch.setattr(maps.config, "GOOGLE_MAPS_API_KEY", "test-key")
    circle = make_circle(alice, bob)
    bad = httpx.Response(200, text="not json", request=httpx.Request("GET", maps.BASE_URL))
    with patch.object(maps.httpx, "get", return_value=bad):
        res = login_as(alice).post(f"/api/transactions/{circle.id}", json={
            "name": "Supper",
            "total_amount": 20,
            "participants": [{"user_id": bob.id, "amount_owed": 20}],
            "place_id": "p1",
            "location_name": "Hawker",
        })
    assert res.status_code == 201
    assert res.json()["data"]["location_name"] == "Hawker"


def test_resolve_location_keeps_input_when_lookup_fails():
    with patch.object(maps, "get_place_details", side_effect=maps.MapsError("boom")):
        loc = maps.resolve_location(place_id="p1", lat=1.0, lng=2.0, location_name="Home")
    assert loc["location_name"] == "Home"
    assert loc["place_id"] == "p1"
    assert loc["formatted_address"] is None
