import datetime


def jam_payload(**overrides):
    payload = {
        "title": "Friday funk",
        "jamTime": (
            datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=2)
        ).isoformat(),
        "desiredInstruments": ["bass", "drums"],
        "city": "Austin",
        "lat": 30.2672,
        "lng": -97.7431,
    }
    payload.update(overrides)
    return payload


def test_create_and_edit_jam(client, login, users):
    host, u2, _ = users
    login(host.id)
    resp = client.post("/jams", json=jam_payload())
    assert resp.status_code == 200
    jam = resp.json()["jam"]
    assert jam["host_id"] == host.id
    assert jam["max_attendees"] == 10
    assert jam["desired_instruments"] == ["bass", "drums"]

    resp = client.patch(f"/jams/{jam['id']}", json={"title": "Saturday funk"})
    assert resp.json()["jam"]["title"] == "Saturday funk"
    assert resp.json()["jam"]["city"] == "Austin"

    login(u2.id)
    resp = client.patch(f"/jams/{jam['id']}", json={"title": "Taken over"})
    assert resp.status_code == 403
    assert resp.json() == {"error": "Only the host can edit this jam"}


def test_jam_validation(client, login, users):
    login(users[0].id)
    assert client.post("/jams", json=jam_payload(title="")).status_code == 400
    assert client.post("/jams", json=jam_payload(desiredInstruments=[])).status_code == 400
    assert client.post("/jams", json=jam_payload(desiredInstruments=["kazoo"])).status_code == 400
    resp = client.post("/jams", json=jam_payload(maxAttendees=51))
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_membership_workflow(client, login, users, make_jam):
    host, u2, u3 = users
    jam = make_jam(host.id, max_attendees=1)

    for user in (u2, u3):
        login(user.id)
        resp = client.post(f"/jams/{jam.id}/join")
        assert resp.json() == {"success": True}

    resp = client.post(f"/jams/{jam.id}/join")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Already a member"}

    # members cannot decide
    resp = client.patch(f"/jams/{jam.id}/members/{u2.id}", json={"status": "approved"})
    assert resp.status_code == 403

    login(host.id)
    incoming = client.get("/jams/requests").json()["incoming"]
    assert {r["user_id"] for r in incoming} == {u2.id, u3.id}

    resp = client.patch(f"/jams/{jam.id}/members/{u2.id}", json={"status": "maybe"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid status"}

    # past capacity still approved
    for user in (u2, u3):
        resp = client.patch(f"/jams/{jam.id}/members/{user.id}", json={"status": "approved"})
        assert resp.json() == {"success": True}

    detail = client.get(f"/jams/{jam.id}").json()
    assert detail["counts"] == {"confirmed": 2, "pending": 0}
    assert detail["is_host"] is True

    login(u2.id)
    resp = client.delete(f"/jams/{jam.id}/members/{u2.id}")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Only pending requests can be cancelled"}

    resp = client.delete(f"/jams/{jam.id}/members/{u3.id}")
    assert resp.status_code == 403


def test_withdraw_pending_request(client, login, users, make_jam):
    host, u2, _ = users
    jam = make_jam(host.id)
    login(u2.id)
    client.post(f"/jams/{jam.id}/join")
    assert client.get("/jams/requests").json()["mine"][0]["status"] == "pending"

    assert client.delete(f"/jams/{jam.id}/members/{u2.id}").json() == {"success": True}
    assert client.get("/jams/requests").json()["mine"] == []
    assert client.delete(f"/jams/{jam.id}/members/{u2.id}").status_code == 404


def test_missing_jam(client, login, users):
    login(users[0].id)
    resp = client.get("/jams/missing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Jam not found"}
    assert client.post("/jams/missing/join").status_code == 404


def test_search(client, login, users, make_jam):
    u1, _, u3 = users
    make_jam(u1.id, title="Downtown", lat=30.2672, lng=-97.7431, desired_instruments=["bass"])
    make_jam(u3.id, title="Uptown jazz", lat=30.40, lng=-97.74, desired_instruments=["piano"])
    make_jam(u1.id, title="Dallas", lat=32.78, lng=-96.80, desired_instruments=["bass"])

    resp = client.get("/jams", params={"lat": 30.2672, "lng": -97.7431})
    assert resp.status_code == 200
    body = resp.json()
    assert [j["title"] for j in body["jams"]] == ["Downtown", "Uptown jazz"]
    assert body["jams"][0]["host"]["display_name"] == "Alice"
    assert body["results"][0]["distance_label"] == "<0.3 mi"

    resp = client.get("/jams", params={"lat": 30.2672, "lng": -97.7431, "radius": 500})
    assert len(resp.json()["jams"]) == 3

    resp = client.get("/jams", params={"instrument": "piano,drums"})
    assert [j["title"] for j in resp.json()["jams"]] == ["Uptown jazz"]

    resp = client.get("/jams", params=[("genre", "jazz"), ("genre", "metal")])
    assert [j["title"] for j in resp.json()["jams"]] == ["Uptown jazz"]

    resp = client.get("/jams", params={"q": "town"})
    assert {j["title"] for j in resp.json()["jams"]} == {"Downtown", "Uptown jazz"}


def test_cover_upload(client, login, users, storage):
    login(users[0].id)
    resp = client.post(
        "/jams/cover",
        files={"file": ("cover.PNG", b"\x89PNG...", "image/png")},
        data={"jamId": "j1"},
    )
    assert resp.status_code == 200
    path = resp.json()["path"]
    assert path.startswith("u1/j1-") and path.endswith(".png")
    assert resp.json()["publicUrl"] == f"http://testserver/storage/jam-covers/{path}"
    assert (storage.root / "jam-covers" / path).read_bytes() == b"\x89PNG..."

    resp = client.post("/jams/cover", data={"jamId": "j1"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing cover image"}


def test_cover_old_path_stays_in_the_owner_folder(client, login, users, storage):
    u1, u2, _ = users
    login(u2.id)
    theirs = client.post(
        "/jams/cover", files={"file": ("cover.png", b"bob", "image/png")}
    ).json()["path"]

    login(u1.id)
    resp = client.post(
        "/jams/cover",
        files={"file": ("cover.png", b"alice", "image/png")},
        data={"oldPath": f"{u1.id}/../{theirs}"},
    )
    assert resp.status_code == 200
    assert (storage.root / "jam-covers" / theirs).read_bytes() == b"bob"
