from fastapi.testclient import TestClient

from clothsim.main import app

client = TestClient(app)


def _create(**config) -> str:
  r = client.post("/cloth/sessions", json={"config": config})
  assert r.status_code == 200
  return r.json()["session_id"]


def test_health():
  r = client.get("/health")
  assert r.status_code == 200
  assert r.json()["status"] == "ok"


def test_create_session_without_body_uses_defaults():
  r = client.post("/cloth/sessions")
  assert r.status_code == 200
  data = r.json()
  assert data["config"]["solve_mode"] == "gauss_seidel"
  assert data["config"]["iteration_count"] == 2
  assert data["frame"]["positions"] == []
  assert data["created_at"] and data["updated_at"]


def test_tick_builds_then_steps():
  sid = _create(particles_x=5, particles_y=4)

  r = client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 1000.0})
  assert r.status_code == 200
  data = r.json()
  assert data["outcome"]["reset"] is True
  assert data["outcome"]["stepped"] is False
  assert len(data["frame"]["positions"]) == 20
  assert data["frame"]["edges"][0] == [0, 1]
  assert data["frame"]["fixed"] == [0, 16]

  r = client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 1010.0})
  assert r.json()["outcome"]["stepped"] is False

  r = client.post(f"/cloth/sessions/{sid}/tick?diagnostics=true", json={"timestamp_ms": 1020.0})
  data = r.json()
  assert data["outcome"]["stepped"] is True
  assert data["frame"]["time_step"] == 1
  assert data["stretch"]["max_error_m"] >= 0.0


def test_patch_config_reports_rejected_fields():
  sid = _create()
  r = client.patch(f"/cloth/sessions/{sid}/config", json={"stiffness": "abc", "eta": 0.4})
  assert r.status_code == 200
  data = r.json()
  assert data["config"]["stiffness"] == 5000.0
  assert data["config"]["eta"] == 0.4
  assert len(data["warnings"]) == 1


def test_patch_config_unknown_field_is_422():
  sid = _create()
  r = client.patch(f"/cloth/sessions/{sid}/config", json={"wind": 1.0})
  assert r.status_code == 422


def test_tick_rejects_non_finite_timestamps():
  sid = _create()
  for raw in ("Infinity", "NaN"):
    r = client.post(
      f"/cloth/sessions/{sid}/tick",
      content='{"timestamp_ms": ' + raw + "}",
      headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 422

  client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 1000.0})
  r = client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 1017.0})
  assert r.json()["outcome"]["stepped"] is True


def test_unknown_session_is_404():
  r = client.post("/cloth/sessions/nope/tick", json={"timestamp_ms": 0.0})
  assert r.status_code == 404


def test_reset_and_forget_impulse_triggers():
  sid = _create(particles_x=3, particles_y=3)
  client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 0.0})
  client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 20.0})

  r = client.post(f"/cloth/sessions/{sid}/forget_impulse")
  assert r.json()["status"] == "lambda_clear_pending"
  r = client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 21.0})
  assert r.json()["outcome"]["lambdas_cleared"] is True

  r = client.post(f"/cloth/sessions/{sid}/reset")
  assert r.json()["status"] == "reset_pending"
  r = client.post(f"/cloth/sessions/{sid}/tick", json={"timestamp_ms": 40.0})
  outcome = r.json()["outcome"]
  assert outcome["reset"] is True
  assert outcome["time_step"] == 0


def test_headless_run():
  sid = _create(particles_x=4, particles_y=4, solve_mode="jacobi")
  r = client.post(f"/cloth/sessions/{sid}/run", json={"duration_s": 0.2, "frame_rate": 60, "every": 4})
  assert r.status_code == 200
  data = r.json()
  meta = data["meta"]
  assert meta["solve_mode"] == "jacobi"
  assert meta["steps"] == meta["frames_count"] - 1
  assert data["frames"][0]["stepped"] is False
  assert data["frames"][-1]["frame"]["time_step"] == meta["steps"]
  assert data["stretch"]["max_relative_stretch"] >= 0.0

  # interactive state untouched
  r = client.get(f"/cloth/sessions/{sid}")
  assert r.json()["frame"]["positions"] == []


def test_headless_run_duration_limit():
  sid = _create()
  r = client.post(f"/cloth/sessions/{sid}/run", json={"duration_s": 1000.0})
  assert r.status_code == 400


def test_delete_session():
  sid = _create()
  assert client.delete(f"/cloth/sessions/{sid}").status_code == 200
  assert client.get(f"/cloth/sessions/{sid}").status_code == 404
