"""School endpoints end to end against the in-memory store"""

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from conftest import make_school
from server import create_app


def _codes(response):
    return {s["udise_code"] for s in response.json()["data"]}


class TestCreate:

    def test_round_trip_through_hierarchical_listing(self, client, create_school):
        create_school(
            udise_code="10010100101", state="MP", district="Bhopal", block="B1", village="V1",
            management="Government", location="Rural", school_type="Co-Ed",
        )

        found = client.get("/api/data", params={"state": "MP", "district": "Bhopal"})
        missing = client.get("/api/data", params={"state": "MP", "district": "Indore"})

        assert "10010100101" in _codes(found)
        assert "10010100101" not in _codes(missing)

    def test_duplicate_code_is_a_conflict(self, client, auth_headers, create_school):
        create_school(udise_code="10010100101")
        response = client.post("/api/data", json=make_school(udise_code="10010100101"), headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "School with this UDISE code already exists"

    def test_requires_token(self, client):
        assert client.post("/api/data", json=make_school()).status_code == 401

    def test_rejects_bad_token(self, client):
        headers = {"Authorization": "Bearer not-a-token"}
        response = client.post("/api/data", json=make_school(), headers=headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token."

    def test_missing_required_field(self, client, auth_headers):
        payload = make_school()
        del payload["village"]
        response = client.post("/api/data", json=payload, headers=auth_headers)
        assert response.status_code == 422

    def test_unknown_enum_label_is_rejected(self, client, auth_headers):
        response = client.post("/api/data", json=make_school(location="Suburban"), headers=auth_headers)
        assert response.status_code == 422

    def test_enum_labels_match_case_insensitively(self, create_school):
        school = create_school(location="rural", school_type="co-ed", management="private aided")
        assert school["location"] == "Rural"
        assert school["school_type"] == "Co-Ed"
        assert school["management"] == "Private Aided"

    def test_records_owner_and_defaults(self, create_school):
        school = create_school()
        assert school["isActive"] is True
        assert school["created_by"]
        assert school["infrastructure"]["has_library"] is False


class TestList:

    def test_pagination_envelope(self, client, create_school):
        for _ in range(5):
            create_school()

        response = client.get("/api/data", params={"page": "2", "limit": "2"})
        body = response.json()

        assert response.status_code == 200
        assert len(body["data"]) == 2
        assert body["pagination"] == {
            "currentPage": 2,
            "totalPages": 3,
            "totalRecords": 5,
            "hasNextPage": True,
            "hasPrevPage": True,
            "limit": 2,
        }

    def test_pages_do_not_overlap(self, client, create_school):
        created = {create_school()["udise_code"] for _ in range(5)}
        seen = []
        for page in ("1", "2", "3"):
            seen.extend(s["udise_code"] for s in client.get("/api/data", params={"page": page, "limit": "2"}).json()["data"])
        assert sorted(seen) == sorted(created)

    def test_newest_first(self, client, create_school):
        first = create_school()["udise_code"]
        second = create_school()["udise_code"]
        codes = [s["udise_code"] for s in client.get("/api/data").json()["data"]]
        assert codes.index(second) < codes.index(first)

    def test_limit_zero_on_empty_store(self, client):
        response = client.get("/api/data", params={"limit": "0"})
        assert response.status_code == 200
        assert response.json()["pagination"]["totalPages"] == 0
        assert response.json()["data"] == []

    def test_malformed_paging_values_fall_back(self, client):
        response = client.get("/api/data", params={"page": "abc", "limit": "-4"})
        assert response.status_code == 200
        assert response.json()["pagination"]["currentPage"] == 1
        assert response.json()["pagination"]["limit"] == 20

    def test_page_far_past_the_end(self, client, create_school):
        create_school()
        response = client.get("/api/data", params={"page": "100000000000000000000"})
        assert response.status_code == 200
        assert response.json()["data"] == []
        assert response.json()["pagination"]["hasNextPage"] is False

    def test_orphan_district_filter_is_ignored(self, client, create_school):
        create_school(district="Bhopal")
        create_school(district="Indore")
        response = client.get("/api/data", params={"district": "Indore"})
        assert response.json()["pagination"]["totalRecords"] == 2

    def test_search_by_name_or_code(self, client, create_school):
        create_school(udise_code="27250100101", school_name="Zilla Parishad School Wagholi")
        create_school(udise_code="27250100102", school_name="Model High School")

        by_name = client.get("/api/data", params={"search": "wagholi"})
        by_code = client.get("/api/data", params={"search": "0102"})

        assert _codes(by_name) == {"27250100101"}
        assert _codes(by_code) == {"27250100102"}

    def test_categorical_filter(self, client, create_school):
        create_school(location="Urban", udise_code="1")
        create_school(location="Rural", udise_code="2")
        assert _codes(client.get("/api/data", params={"location": "Urban"})) == {"1"}

    def test_store_failure_is_a_server_error(self):
        unreachable = MagicMock()
        unreachable.schools.create_index = AsyncMock()
        unreachable.users.create_index = AsyncMock()
        unreachable.schools.count_documents = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
        unreachable.schools.find.return_value.to_list = AsyncMock(return_value=[])

        with TestClient(create_app(database=unreachable)) as down_client:
            response = down_client.get("/api/data")

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error while fetching schools"


class TestUpdate:

    def test_partial_update(self, client, auth_headers, create_school):
        school = create_school(total_students=100)
        response = client.put(
            f"/api/data/{school['_id']}",
            json={"school_name": "Renamed School", "infrastructure": {"has_library": True}},
            headers=auth_headers,
        )
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["school_name"] == "Renamed School"
        assert data["total_students"] == 100
        assert data["infrastructure"]["has_library"] is True
        assert data["updated_by"] == school["created_by"]

    def test_cannot_null_required_field(self, client, auth_headers, create_school):
        school = create_school()
        response = client.put(f"/api/data/{school['_id']}", json={"state": None}, headers=auth_headers)
        assert response.status_code == 422

    def test_invalid_enum_on_update(self, client, auth_headers, create_school):
        school = create_school()
        response = client.put(f"/api/data/{school['_id']}", json={"school_type": "Mixed"}, headers=auth_headers)
        assert response.status_code == 422

    def test_code_taken_by_another_record(self, client, auth_headers, create_school):
        create_school(udise_code="111")
        other = create_school(udise_code="222")
        response = client.put(f"/api/data/{other['_id']}", json={"udise_code": "111"}, headers=auth_headers)
        assert response.status_code == 409

    def test_keeping_own_code_is_fine(self, client, auth_headers, create_school):
        school = create_school(udise_code="333")
        response = client.put(f"/api/data/{school['_id']}", json={"udise_code": "333"}, headers=auth_headers)
        assert response.status_code == 200

    def test_unknown_and_malformed_ids(self, client, auth_headers):
        missing = client.put("/api/data/64b7f0c2a1b2c3d4e5f60718", json={}, headers=auth_headers)
        malformed = client.put("/api/data/not-an-id", json={}, headers=auth_headers)
        assert missing.status_code == 404
        assert malformed.status_code == 404


class TestDelete:

    def test_soft_delete_hides_from_default_listing(self, client, auth_headers, create_school):
        school = create_school()

        response = client.delete(f"/api/data/{school['_id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["isActive"] is False

        assert school["udise_code"] not in _codes(client.get("/api/data"))
        stored = client.get(f"/api/data/{school['_id']}").json()["data"]
        assert stored["isActive"] is False

    def test_soft_deleted_code_still_reserved(self, client, auth_headers, create_school):
        school = create_school()
        client.delete(f"/api/data/{school['_id']}", headers=auth_headers)
        response = client.post("/api/data", json=make_school(udise_code=school["udise_code"]), headers=auth_headers)
        assert response.status_code == 409

    def test_requires_token(self, client, create_school):
        school = create_school()
        assert client.delete(f"/api/data/{school['_id']}").status_code == 401

    def test_missing_record(self, client, auth_headers):
        response = client.delete("/api/data/64b7f0c2a1b2c3d4e5f60718", headers=auth_headers)
        assert response.status_code == 404


def test_get_one_includes_derived_fields(client, create_school):
    school = create_school(total_students=90, total_teachers=4)
    data = client.get(f"/api/data/{school['_id']}").json()["data"]
    assert data["fullAddress"] == "V1, B1, Bhopal, MP"
    assert data["stats"] == {"totalStudents": 90, "totalTeachers": 4, "teacherStudentRatio": 22.5}


class TestDistributionEndpoint:

    def test_scoped_counts(self, client, auth_headers, create_school):
        create_school(state="MP", management="Government", location="Rural")
        create_school(state="MP", management="Government", location="Urban")
        create_school(state="UP", management="Private Aided", location="Urban")
        deleted = create_school(state="MP", management="Other")
        client.delete(f"/api/data/{deleted['_id']}", headers=auth_headers)

        body = client.get("/api/data/distribution", params={"state": "MP"}).json()

        assert body["totalSchools"] == 2
        assert body["managementTypeDistribution"] == [{"label": "Government", "count": 2}]
        assert sum(g["count"] for g in body["locationDistribution"]) == 2

    def test_store_failure_is_not_reported_as_empty(self, client, monkeypatch):
        monkeypatch.setattr(
            "routers.schools.get_distribution",
            AsyncMock(side_effect=ServerSelectionTimeoutError("down")),
        )
        response = client.get("/api/data/distribution")
        assert response.status_code == 500


class TestFilterOptions:

    def test_levels_follow_selected_ancestors(self, client, create_school):
        create_school(state="MP", district="Bhopal", block="B1", village="V1")
        create_school(state="MP", district="Bhopal", block="B2", village="V9")
        create_school(state="MP", district="Indore", block="I1", village="V5")
        create_school(state="UP", district="Agra", block="A1", village="V7")

        data = client.get("/api/data/filters", params={"state": "MP", "district": "Bhopal"}).json()["data"]

        assert data == {
            "states": ["MP", "UP"],
            "districts": ["Bhopal", "Indore"],
            "blocks": ["B1", "B2"],
            "villages": [],
        }

    def test_orphan_block_gives_no_villages(self, client, create_school):
        create_school(state="MP", district="Bhopal", block="B1", village="V1")
        data = client.get("/api/data/filters", params={"block": "B1"}).json()["data"]
        assert data["districts"] == []
        assert data["villages"] == []

    def test_soft_deleted_values_are_hidden(self, client, auth_headers, create_school):
        school = create_school(state="GOA")
        client.delete(f"/api/data/{school['_id']}", headers=auth_headers)
        assert "GOA" not in client.get("/api/data/filters").json()["data"]["states"]
