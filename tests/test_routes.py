"""
End-to-end API tests against an in-memory SQLite database.
"""

from climbcomp.extensions import db
from climbcomp.models import BoulderScore, Competition


def _boulder_url(cid, clid, n):
    return f"/api/competitions/{cid}/climbers/{clid}/boulders/{n}"


def _qualify(client, cid, ids, base=5.0, step=0.1):
    """Give climber ids[i] two identical lanes of base + i*step (ids[0] fastest)."""
    for i, clid in enumerate(ids):
        t = round(base + i * step, 2)
        resp = client.put(
            f"/api/speed-competitions/{cid}/qualification/{clid}",
            json={"lane_a_time": t, "lane_b_time": t, "lane_a_status": "VALID", "lane_b_status": "VALID"},
        )
        assert resp.status_code == 200


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "healthy"}


# =============================================================================
# Boulder
# =============================================================================

class TestBoulderRoutes:
    def test_score_calculator(self, client):
        resp = client.post("/api/boulder/score", json={"isTop": True, "topAttempts": 3})
        assert resp.get_json() == {"score": 24.8}

        resp = client.post("/api/boulder/score", json={"isZone": True, "zoneAttempts": 1})
        assert resp.get_json() == {"score": 10.0}

    def test_score_calculator_rejects_inconsistent_record(self, client):
        resp = client.post("/api/boulder/score", json={"isTop": False, "topAttempts": 2})
        assert resp.status_code == 400

        resp = client.post("/api/boulder/score", json={"isTop": True, "topAttempts": "lots"})
        assert resp.status_code == 400

    def test_score_calculator_requires_json_booleans(self, client):
        resp = client.post("/api/boulder/score", json={"isTop": "false", "topAttempts": 0})
        assert resp.status_code == 400

        resp = client.post("/api/boulder/score", json={"isZone": 1, "zoneAttempts": 1})
        assert resp.status_code == 400

    def test_judge_flow(self, client, boulder_comp):
        cid, ids = boulder_comp
        url = _boulder_url(cid, ids[0], 1)

        for _ in range(3):
            assert client.post(url, json={"action": "attempt"}).status_code == 200
        resp = client.post(url, json={"action": "top"})
        body = resp.get_json()

        assert resp.status_code == 200
        assert body["points"] == 24.8
        assert body["top_attempt"] == 3
        assert body["is_finalized"] is True

        # locked
        resp = client.post(url, json={"action": "attempt"})
        assert resp.status_code == 403

        resp = client.post(url, json={"action": "disqualify"})
        body = resp.get_json()
        assert body["is_disqualified"] is True
        assert body["points"] == 0.0

        assert client.get(url).get_json()["points"] == 0.0

    def test_empty_card(self, client, boulder_comp):
        cid, ids = boulder_comp
        body = client.get(_boulder_url(cid, ids[1], 2)).get_json()
        assert body["attempts"] == 0
        assert body["points"] == 0.0

    def test_bad_action_and_bounds(self, client, boulder_comp):
        cid, ids = boulder_comp
        assert client.post(_boulder_url(cid, ids[0], 1), json={"action": "flash"}).status_code == 400
        assert client.post(_boulder_url(cid, ids[0], 1), json={"action": "zone"}).status_code == 400
        assert client.post(_boulder_url(cid, ids[0], 5), json={"action": "attempt"}).status_code == 400
        assert client.post(_boulder_url(cid, 9999, 1), json={"action": "attempt"}).status_code == 404
        assert client.post(_boulder_url(9999, ids[0], 1), json={"action": "attempt"}).status_code == 404

    def test_speed_comp_rejected(self, client, speed_comp):
        cid, ids = speed_comp
        assert client.post(_boulder_url(cid, ids[0], 1), json={"action": "attempt"}).status_code == 400

    def test_leaderboard_cached_until_judge_action(self, app, client, boulder_comp):
        cid, ids = boulder_comp
        client.post(_boulder_url(cid, ids[2], 1), json={"action": "attempt"})
        client.post(_boulder_url(cid, ids[2], 1), json={"action": "zone"})

        body = client.get(f"/api/competitions/{cid}/leaderboard").get_json()
        assert body["total_boulders"] == 4
        assert body["rows"][0]["id"] == ids[2]
        assert body["rows"][0]["total_score"] == 10.0
        assert len(body["rows"]) == 3

        # written behind the API's back: still served from cache
        db.session.add(
            BoulderScore(
                competition_id=cid, climber_id=ids[0], boulder_number=2,
                attempts=1, reached_zone=True, reached_top=True, zone_attempt=1, top_attempt=1,
            )
        )
        db.session.commit()
        body = client.get(f"/api/competitions/{cid}/leaderboard").get_json()
        assert body["rows"][0]["id"] == ids[2]

        # a judge action drops the cached board
        client.post(_boulder_url(cid, ids[1], 3), json={"action": "attempt"})
        body = client.get(f"/api/competitions/{cid}/leaderboard").get_json()
        assert body["rows"][0]["id"] == ids[0]
        assert body["rows"][0]["total_score"] == 25.0


# =============================================================================
# Speed: stateless calculators
# =============================================================================

class TestSpeedCalculators:
    def test_qualification(self, client):
        resp = client.post(
            "/api/speed/qualification",
            json={"laneATime": 10.5, "laneBTime": 11.2, "laneAStatus": "VALID", "laneBStatus": "VALID"},
        )
        assert resp.get_json() == {"totalTime": 21.7, "status": "VALID"}

        resp = client.post(
            "/api/speed/qualification",
            json={"laneATime": 10.5, "laneBTime": 11.2, "laneAStatus": "FALL", "laneBStatus": "VALID"},
        )
        assert resp.get_json() == {"totalTime": None, "status": "INVALID"}

    def test_qualification_validation(self, client):
        assert client.post("/api/speed/qualification", json={"laneATime": "fast"}).status_code == 400
        assert client.post("/api/speed/qualification", json={"laneATime": -1}).status_code == 400
        assert client.post(
            "/api/speed/qualification", json={"laneATime": 5, "laneAStatus": "SLIPPED"}
        ).status_code == 400

    def test_single_run_winner(self, client):
        resp = client.post(
            "/api/speed/finals/winner",
            json={"timeA": 5.2, "timeB": 5.5, "statusA": "VALID", "statusB": "VALID",
                  "climberAId": 1, "climberBId": 2},
        )
        assert resp.get_json() == {"winnerId": 1}

        resp = client.post(
            "/api/speed/finals/winner",
            json={"statusA": "FALL", "statusB": "DNS", "climberAId": 1, "climberBId": 2,
                  "rankA": 4, "rankB": 3},
        )
        assert resp.get_json() == {"winnerId": 2}

    def test_undecidable_winner_is_null(self, client):
        resp = client.post(
            "/api/speed/finals/winner",
            json={"statusA": "FALL", "statusB": "FALL", "climberAId": 1, "climberBId": 2},
        )
        assert resp.get_json() == {"winnerId": None}

    def test_classic_winner(self, client):
        payload = {
            "climberA": {"id": 1, "rank": 1, "run1Time": 6.0, "run2Time": 6.4},
            "climberB": {"id": 2, "rank": 2, "run1Time": 7.0, "run2Time": 5.8},
        }
        assert client.post("/api/speed/finals/winner", json=payload).get_json() == {"winnerId": 2}

        payload["reduction"] = "total"
        assert client.post("/api/speed/finals/winner", json=payload).get_json() == {"winnerId": 1}

        payload["reduction"] = "worst"
        assert client.post("/api/speed/finals/winner", json=payload).status_code == 400


# =============================================================================
# Speed: qualification
# =============================================================================

class TestSpeedQualification:
    def test_ranks_whole_field(self, client, speed_comp):
        cid, ids = speed_comp
        _qualify(client, cid, list(reversed(ids[:4])))
        client.put(
            f"/api/speed-competitions/{cid}/qualification/{ids[4]}",
            json={"lane_a_time": 4.0, "lane_b_time": None},
        )

        rows = client.get(f"/api/speed-competitions/{cid}/qualification").get_json()["rows"]

        assert [r["climber_id"] for r in rows] == [ids[3], ids[2], ids[1], ids[0], ids[4]]
        assert [r["rank"] for r in rows] == [1, 2, 3, 4, None]
        assert rows[-1]["status"] == "INVALID"
        assert rows[0]["name"] == "Climber 4"

    def test_put_reranks_field_and_refreshes_cache(self, client, speed_comp):
        cid, ids = speed_comp
        _qualify(client, cid, ids[:2])
        client.get(f"/api/speed-competitions/{cid}/qualification")

        resp = client.put(
            f"/api/speed-competitions/{cid}/qualification/{ids[1]}",
            json={"lane_a_time": 4.0, "lane_b_time": 4.0},
        )
        assert resp.get_json()["rank"] == 1

        rows = client.get(f"/api/speed-competitions/{cid}/qualification").get_json()["rows"]
        assert [r["climber_id"] for r in rows] == [ids[1], ids[0]]

    def test_exact_ties_ranked_in_entry_order(self, client, speed_comp):
        cid, ids = speed_comp
        for clid in (ids[2], ids[0], ids[1]):
            client.put(
                f"/api/speed-competitions/{cid}/qualification/{clid}",
                json={"lane_a_time": 6.0, "lane_b_time": 6.0},
            )
        # re-saving a row keeps its place in the order
        client.put(
            f"/api/speed-competitions/{cid}/qualification/{ids[2]}",
            json={"lane_a_time": 6.0, "lane_b_time": 6.0},
        )

        rows = client.get(f"/api/speed-competitions/{cid}/qualification").get_json()["rows"]
        assert [(r["climber_id"], r["rank"]) for r in rows] == [(ids[2], 1), (ids[0], 2), (ids[1], 3)]

    def test_closed_while_bracket_exists(self, client, speed_comp):
        cid, ids = speed_comp
        _qualify(client, cid, ids)
        client.post(f"/api/speed-competitions/{cid}/generate-bracket", json={"topCount": 4})

        url = f"/api/speed-competitions/{cid}/qualification/{ids[5]}"
        resp = client.put(url, json={"lane_a_time": 4.0, "lane_b_time": 4.0})
        assert resp.status_code == 403

        rows = client.get(f"/api/speed-competitions/{cid}/qualification").get_json()["rows"]
        assert rows[0]["climber_id"] == ids[0]

        client.delete(f"/api/speed-competitions/{cid}/matches")
        resp = client.put(url, json={"lane_a_time": 4.0, "lane_b_time": 4.0})
        assert resp.status_code == 200
        assert resp.get_json()["rank"] == 1

    def test_finalized_row_is_locked_until_unlocked(self, client, speed_comp):
        cid, ids = speed_comp
        url = f"/api/speed-competitions/{cid}/qualification/{ids[0]}"

        client.put(url, json={"lane_a_time": 6.0, "lane_b_time": 6.0, "is_finalized": True})
        assert client.put(url, json={"lane_a_time": 5.0, "lane_b_time": 5.0}).status_code == 403

        resp = client.put(url, json={"is_finalized": False})
        assert resp.status_code == 200
        assert resp.get_json()["total_time"] == 12.0

        assert client.put(url, json={"lane_a_time": 5.0, "lane_b_time": 5.0}).status_code == 200

    def test_validation(self, client, speed_comp):
        cid, ids = speed_comp
        url = f"/api/speed-competitions/{cid}/qualification/{ids[0]}"
        assert client.put(url, json={"lane_a_time": 1000}).status_code == 400
        assert client.put(url, json={"lane_a_status": "OOPS"}).status_code == 400
        assert client.put(f"/api/speed-competitions/{cid}/qualification/9999", json={}).status_code == 404


# =============================================================================
# Speed: finals
# =============================================================================

class TestSpeedFinals:
    def _generate(self, client, cid, top_count):
        return client.post(f"/api/speed-competitions/{cid}/generate-bracket", json={"topCount": top_count})

    def _match_url(self, cid, match_id):
        return f"/api/speed-competitions/{cid}/matches/{match_id}"

    def test_full_semi_final_bracket(self, app, client, speed_comp):
        cid, ids = speed_comp
        _qualify(client, cid, ids)

        resp = self._generate(client, cid, 4)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["success"] is True
        semis = body["matches"]
        assert [(m["climber_a"], m["climber_b"]) for m in semis] == [(ids[0], ids[3]), (ids[1], ids[2])]

        # second generation is refused
        resp = self._generate(client, cid, 4)
        assert resp.status_code == 400
        assert "already exists" in resp.get_json()["error"]

        # can't advance an unscored stage
        resp = client.post(f"/api/speed-competitions/{cid}/generate-next-round", json={})
        assert resp.status_code == 400
        assert "0/2" in resp.get_json()["error"]

        r1 = client.put(self._match_url(cid, semis[0]["id"]), json={"time_a": 6.0, "time_b": 6.5})
        assert r1.get_json()["winner_id"] == ids[0]
        r2 = client.put(self._match_url(cid, semis[1]["id"]), json={"time_a": 7.0, "time_b": 6.2})
        assert r2.get_json()["winner_id"] == ids[2]

        resp = client.post(f"/api/speed-competitions/{cid}/generate-next-round", json={})
        small, big = resp.get_json()["matches"]
        assert small["stage"] == "Small Final"
        assert (small["climber_a"], small["climber_b"]) == (ids[1], ids[3])
        assert big["stage"] == "Big Final"
        assert (big["climber_a"], big["climber_b"]) == (ids[0], ids[2])

        client.put(self._match_url(cid, small["id"]), json={"time_a": 6.0, "time_b": 6.1})
        # both fall: better qualifier takes it
        resp = client.put(self._match_url(cid, big["id"]), json={"status_a": "FALL", "status_b": "FALL"})
        assert resp.get_json()["winner_id"] == ids[0]

        body = client.get(f"/api/speed-competitions/{cid}/matches").get_json()
        assert [m["stage"] for m in body["matches"]] == ["Semi Final", "Semi Final", "Small Final", "Big Final"]
        assert body["podium"] == {"1": ids[0], "2": ids[2], "3": ids[1], "4": ids[3]}
        assert all(s["scored"] for s in body["stages"])

        resp = client.post(f"/api/speed-competitions/{cid}/generate-next-round", json={})
        assert resp.status_code == 400
        assert db.session.get(Competition, cid).status == "finals"

    def test_bye_match_only_takes_climber_a(self, client, make_comp):
        cid, ids = make_comp("speed", climbers=5)
        _qualify(client, cid, ids)

        matches = self._generate(client, cid, 8).get_json()["matches"]
        assert len(matches) == 4
        bye = matches[0]
        assert bye["is_bye"] is True
        assert bye["climber_a"] == ids[0]
        assert bye["winner_id"] == ids[0]
        assert bye["status_b"] == "DNS"

        assert client.put(self._match_url(cid, bye["id"]), json={"time_b": 6.0}).status_code == 400
        resp = client.put(self._match_url(cid, bye["id"]), json={"time_a": 6.1})
        assert resp.status_code == 200
        assert resp.get_json()["winner_id"] == ids[0]

    def test_manual_winner_and_finalize(self, client, make_comp):
        cid, ids = make_comp("speed", climbers=2)
        _qualify(client, cid, ids)
        final = self._generate(client, cid, 2).get_json()["matches"][0]
        url = self._match_url(cid, final["id"])

        assert client.put(url, json={"time_a": 6.0, "time_b": 6.5, "winner_id": 12345}).status_code == 400

        resp = client.put(url, json={"time_a": 6.0, "time_b": 6.5, "winner_id": ids[1], "is_finalized": True})
        assert resp.get_json()["winner_id"] == ids[1]
        assert client.put(url, json={"time_a": 5.0}).status_code == 403

        assert client.put(url, json={"is_finalized": False}).status_code == 200
        assert client.put(url, json={"time_a": 5.0, "time_b": 6.0}).get_json()["winner_id"] == ids[0]

    def test_classic_format_best_of_two(self, client, make_comp):
        cid, ids = make_comp("speed", climbers=2, finals_format="classic")
        _qualify(client, cid, ids)
        final = self._generate(client, cid, 2).get_json()["matches"][0]

        resp = client.put(
            self._match_url(cid, final["id"]),
            json={
                "climber_a_run1_time": 6.0, "climber_a_run2_time": 6.4,
                "climber_b_run1_time": 7.0, "climber_b_run2_time": 5.8,
            },
        )
        body = resp.get_json()
        assert body["winner_id"] == ids[1]
        assert body["time_a"] == 6.0
        assert body["time_b"] == 5.8
        assert body["climber_b_run2_time"] == 5.8

    def test_classic_format_total_of_both_runs(self, client, make_comp):
        cid, ids = make_comp("speed", climbers=2, finals_format="classic", finals_reduction="total")
        _qualify(client, cid, ids)
        final = self._generate(client, cid, 2).get_json()["matches"][0]

        # best-of-two would pick B (5.8); the sums are 12.4 vs 12.8
        resp = client.put(
            self._match_url(cid, final["id"]),
            json={
                "climber_a_run1_time": 6.0, "climber_a_run2_time": 6.4,
                "climber_b_run1_time": 7.0, "climber_b_run2_time": 5.8,
            },
        )
        body = resp.get_json()
        assert body["winner_id"] == ids[0]
        assert body["time_a"] == 12.4
        assert body["time_b"] == 12.8

    def test_advanced_stage_is_closed(self, client, make_comp):
        cid, ids = make_comp("speed", climbers=4)
        _qualify(client, cid, ids)
        semis = self._generate(client, cid, 4).get_json()["matches"]
        client.put(self._match_url(cid, semis[0]["id"]), json={"time_a": 6.0, "time_b": 6.5})
        client.put(self._match_url(cid, semis[1]["id"]), json={"time_a": 6.0, "time_b": 6.5})
        small, big = client.post(
            f"/api/speed-competitions/{cid}/generate-next-round", json={}
        ).get_json()["matches"]

        # flipping a semi after the finals exist would strand its new winner
        resp = client.put(self._match_url(cid, semis[0]["id"]), json={"time_a": 7.0, "time_b": 6.5})
        assert resp.status_code == 400
        assert "Semi Final is closed" in resp.get_json()["error"]

        resp = client.put(self._match_url(cid, semis[0]["id"]), json={"winner_id": ids[3]})
        assert resp.status_code == 400

        body = client.get(f"/api/speed-competitions/{cid}/matches").get_json()
        assert body["matches"][0]["winner_id"] == ids[0]
        assert (big["climber_a"], big["climber_b"]) == (ids[0], ids[1])

        # both finals stay editable
        assert client.put(self._match_url(cid, small["id"]), json={"time_a": 6.0, "time_b": 6.1}).status_code == 200
        assert client.put(self._match_url(cid, big["id"]), json={"time_a": 6.0, "time_b": 6.1}).status_code == 200

    def test_delete_resets_bracket(self, app, client, speed_comp):
        cid, ids = speed_comp
        _qualify(client, cid, ids)
        self._generate(client, cid, 4)

        resp = client.delete(f"/api/speed-competitions/{cid}/matches")
        assert resp.get_json()["deleted"] == 2
        assert client.get(f"/api/speed-competitions/{cid}/matches").get_json()["matches"] == []
        assert self._generate(client, cid, 8).status_code == 200
        assert db.session.get(Competition, cid).status == "finals"

    def test_generate_validation(self, client, speed_comp):
        cid, ids = speed_comp
        assert self._generate(client, cid, 8).status_code == 400  # nobody qualified
        _qualify(client, cid, ids)
        assert self._generate(client, cid, 1).status_code == 400
        assert self._generate(client, cid, 17).status_code == 400
        assert self._generate(client, cid, "8").status_code == 400

    def test_other_competitions_match_is_not_found(self, client, speed_comp, make_comp):
        cid, ids = speed_comp
        _qualify(client, cid, ids)
        match_id = self._generate(client, cid, 2).get_json()["matches"][0]["id"]

        other_cid, _ = make_comp("speed", climbers=2)
        assert client.put(self._match_url(other_cid, match_id), json={"time_a": 5.0}).status_code == 404
