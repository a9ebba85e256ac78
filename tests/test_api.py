from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from vestmint.runtime.executor import VestMintExecutor
from vestmint.runtime.genesis import GenesisConfig
from vestmint.testing.sigtools import address_for, make_tx, sign_tx_dict

OWNER = address_for("owner")
ALICE = address_for("alice")


class Clock:
    def __init__(self, t: int) -> None:
        self.t = t

    def __call__(self) -> int:
        return self.t


@pytest.fixture
def clock() -> Clock:
    return Clock(1000)


@pytest.fixture
def client(tmp_path, monkeypatch: pytest.MonkeyPatch, clock: Clock):
    monkeypatch.setenv("VESTMINT_RATE_LIMIT_DISABLE", "1")
    monkeypatch.delenv("VESTMINT_SIZE_LIMIT_DISABLE", raising=False)
    monkeypatch.delenv("VESTMINT_CORS_ORIGINS", raising=False)

    from vestmint.api.app import create_app

    app = create_app(boot_runtime=False)
    app.state.executor = VestMintExecutor(
        db_path=str(tmp_path / "api.db"),
        chain_id="vestmint-test",
        genesis=GenesisConfig(owner=OWNER, chain_id="vestmint-test", genesis_time=1000),
        now_fn=clock,
    )
    with TestClient(app) as c:
        yield c


def _submit(client: TestClient, tx):
    return client.post("/v1/tx/submit", json=tx)


def test_health_reports_chain(client: TestClient) -> None:
    j = client.get("/v1/health").json()
    assert j["ok"] is True
    assert j["ready"] is True
    assert j["chain_id"] == "vestmint-test"


def test_submit_and_query_vesting(client: TestClient, clock: Clock) -> None:
    r = _submit(
        client,
        make_tx("ALLOCATION_SET", label="owner", nonce=1, payload={"pool": "team", "addresses": [ALICE], "percents": [2500]}),
    )
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["events"][0]["event"] == "AllocationsSet"

    r = _submit(client, make_tx("SCHEDULE_SET", label="owner", nonce=2, payload={"pool": "team", "start": 2000, "duration": 100}))
    assert r.status_code == 200

    pool = client.get("/v1/vesting/team").json()
    assert pool["total_percent"] == 2500
    assert pool["schedule"] == {"start": 2000, "duration": 100}

    b = client.get(f"/v1/vesting/team/{ALICE}", params={"at": 2100}).json()
    assert b["allocation"] == 2500
    assert b["locked_funds"] == pool["total_locked"] // 4
    assert b["claimable"] == b["locked_funds"]
    assert b["claimed"] == 0

    clock.t = 2100
    r = _submit(client, make_tx("VESTING_CLAIM", label="alice", nonce=1, payload={"pool": "team"}))
    assert r.status_code == 200
    assert r.json()["result"]["amount"] == b["locked_funds"]

    bal = client.get(f"/v1/fungible/balance/{ALICE}").json()
    assert bal["balance"] == b["locked_funds"]

    evs = client.get("/v1/events", params={"since": 0}).json()
    assert [e["event"] for e in evs["events"]] == ["AllocationsSet", "ScheduleChanged", "Transfer", "Claimed"]
    assert evs["next_since"] == evs["events"][-1]["seq"]


def test_apply_rejection_is_409_with_receipt(client: TestClient) -> None:
    r = _submit(client, make_tx("VESTING_CLAIM", label="alice", nonce=1, payload={"pool": "private"}))
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "config"
    assert err["details"]["reason"] == "no_allocation"
    assert err["details"]["stage"] == "apply"

    receipts = client.get(f"/v1/tx/receipts/{ALICE}").json()["receipts"]
    assert receipts[0]["seq"] == err["details"]["receipt_seq"]
    assert receipts[0]["ok"] is False


def test_admission_rejections_map_to_400_and_403(client: TestClient) -> None:
    r = _submit(client, make_tx("SCHEDULE_SET", label="owner", nonce=7, payload={"pool": "team", "start": 1, "duration": 1}))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_nonce"

    forged = sign_tx_dict(
        {"tx_type": "SCHEDULE_SET", "signer": OWNER, "nonce": 1, "payload": {"pool": "team", "start": 1, "duration": 1}},
        label="mallory",
    )
    r = _submit(client, forged)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "bad_sig"


def test_submit_schema_validation(client: TestClient) -> None:
    r = client.post("/v1/tx/submit", json={"tx_type": "SCHEDULE_SET", "signer": OWNER, "nonce": -1})
    assert r.status_code == 422
    r = client.post("/v1/tx/submit", json={"tx_type": "SCHEDULE_SET", "signer": OWNER, "nonce": 1, "extra": 1})
    assert r.status_code == 422


def test_nft_and_mint_routes(client: TestClient) -> None:
    r = client.get("/v1/nft/10000")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"

    r = client.get(f"/v1/mint/authorizations/{ALICE}")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "no_authorization"

    payload = {
        "delegate": ALICE,
        "expiry": 10**9,
        "max_total_count": 3,
        "id_range_start": 10000,
        "id_range_end": 20000,
        "type_quota": [0, 1, 2, 4, 5],
    }
    assert _submit(client, make_tx("MINT_AUTH_GRANT", label="owner", nonce=1, payload=payload)).status_code == 200
    assert _submit(client, make_tx("NFT_BASE_URI_SET", label="owner", nonce=2, payload={"base_uri": "ipfs://x/"})).status_code == 200

    r = _submit(client, make_tx("NFT_DELEGATE_MINT", label="alice", nonce=1, payload={"to": ALICE, "token_id": 10000, "type_id": 2}))
    assert r.status_code == 200

    tok = client.get("/v1/nft/10000").json()
    assert tok == {"ok": True, "token_id": 10000, "owner": ALICE, "type_id": 2, "uri": "ipfs://x/10000"}

    grant = client.get(f"/v1/mint/authorizations/{ALICE}").json()["authorization"]
    assert grant["total_issued"] == 1
    assert client.get(f"/v1/nft/balance/{ALICE}").json()["balance"] == 1
    assert client.get("/v1/nft").json()["symbol"] == "AiWatch"


def test_unknown_pool_is_404(client: TestClient) -> None:
    r = client.get("/v1/vesting/seed")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "unknown_pool"


def test_malformed_address_is_400(client: TestClient) -> None:
    r = client.get("/v1/fungible/balance/0xabc")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_address"

    upper = "0x" + ALICE[2:].upper()
    assert client.get(f"/v1/nft/balance/{upper}").json()["address"] == ALICE


def test_fungible_supply_and_snapshot(client: TestClient) -> None:
    sup = client.get("/v1/fungible/supply").json()
    assert sup["cap"] == 5_000_000_000 * 10**18
    assert sup["total_supply"] < sup["cap"]

    st = client.get("/v1/state/snapshot").json()["state"]
    assert st["chain_id"] == "vestmint-test"
    assert st["params"]["owner"] == OWNER


def test_request_size_limit_returns_413(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VESTMINT_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("VESTMINT_SIZE_LIMIT_DISABLE", raising=False)

    from vestmint.api.app import create_app

    app = create_app(boot_runtime=False)
    c = TestClient(app)

    r = c.post("/v1/tx/submit", json={"tx_type": "SCHEDULE_SET", "signer": OWNER, "nonce": 1, "payload": {"pad": "x" * 500}})
    assert r.status_code == 413
    j = r.json()
    assert j["ok"] is False
    assert j["error"]["code"] == "request_too_large"


def test_routes_without_executor_report_not_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VESTMINT_RATE_LIMIT_DISABLE", "1")
    from vestmint.api.app import create_app

    app = create_app(boot_runtime=False)
    with TestClient(app) as c:
        assert c.get("/v1/health").json()["ready"] is False
        r = c.get("/v1/fungible/supply")
        assert r.status_code == 500
        assert r.json()["error"]["code"] == "not_ready"


def test_create_app_boot_runtime_true_attaches_executor(monkeypatch: pytest.MonkeyPatch) -> None:
    from vestmint.api import app as api_app

    monkeypatch.setattr(api_app, "build_executor", lambda: SimpleNamespace(chain_id="vestmint-fake"))

    app = api_app.create_app(boot_runtime=True)
    assert app.state.executor.chain_id == "vestmint-fake"
    with TestClient(app) as c:
        assert c.get("/v1/health").json()["chain_id"] == "vestmint-fake"


def test_wildcard_cors_rejected_in_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    from vestmint.api.app import create_app

    monkeypatch.setenv("VESTMINT_MODE", "prod")
    monkeypatch.setenv("VESTMINT_CORS_ORIGINS", "*")
    with pytest.raises(RuntimeError):
        create_app(boot_runtime=False)


def test_cors_origins_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    from vestmint.api.app import cors_origins

    monkeypatch.delenv("VESTMINT_CORS_ORIGINS", raising=False)
    assert cors_origins("prod") == []

    monkeypatch.setenv("VESTMINT_CORS_ORIGINS", " https://a.example , ,https://b.example")
    assert cors_origins("prod") == ["https://a.example", "https://b.example"]

    monkeypatch.setenv("VESTMINT_CORS_ORIGINS", "https://a.example,*")
    assert cors_origins("dev") == ["*"]


def test_health_reports_mode_and_version(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from vestmint import __version__

    monkeypatch.setenv("VESTMINT_MODE", "testnet")
    j = client.get("/v1/health").json()
    assert j["mode"] == "testnet"
    assert j["version"] == __version__
