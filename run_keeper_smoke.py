import json
import sys
import urllib.error
import urllib.request

from src.pm_gateway.auth.jwt_handler import create_operator_token

BASE = "http://localhost:8000/api/v1"

# Pass a bettor address to exercise the claim endpoints too
USER = sys.argv[1] if len(sys.argv) > 1 else None


def request(method, path, body=None, token=None):
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(
        f"{BASE}{path}",
        data=data,
        method=method,
        headers={"Content-Type": "application/json"},
    )
    if token:
        req.add_header("Authorization", f"Bearer {token}")
    try:
        with urllib.request.urlopen(req) as r:
            return json.loads(r.read())
    except urllib.error.HTTPError as e:
        return json.loads(e.read())


def post(path, body=None, token=None):
    return request("POST", path, body if body is not None else {}, token)


def get(path, token=None):
    return request("GET", path, token=token)


def section(title):
    print(f"\n{'='*60}")
    print(f"### {title} ###")
    print('='*60)


def label(name):
    print(f"\n--- {name} ---")


def out(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ── Operator token ─────────────────────────────────────────────
OP = create_operator_token("smoke-test")
print(f"Operator token: {OP[:40]}...")

# ── K1 Read-only ───────────────────────────────────────────────
section("K1 — READ-ONLY")

label("K1-1: Current oracle price")
out(get("/price"))

label("K1-2: Current round")
r = get("/rounds/current")
out(r)
round_id = (r.get("data") or {}).get("round_id", 0)

# ── K2 Operator auth ───────────────────────────────────────────
section("K2 — OPERATOR AUTH")

label("K2-1: auto-manage without token")
out(post("/keeper/auto-manage"))

label("K2-2: auto-manage with invalid token")
out(post("/keeper/auto-manage", token="invalid.token.here"))

# ── K3 Keeper ──────────────────────────────────────────────────
section("K3 — KEEPER")

label("K3-1: Init contract (idempotent)")
out(post("/contract/init", token=OP))

if round_id == 0:
    label("K3-2: Start first round at market price")
    out(post("/contract/start-round", token=OP))
else:
    label("K3-2: Start round while one exists (expect 3005 unless settled)")
    out(post("/contract/start-round", token=OP))

label("K3-3: Auto-manage")
out(post("/keeper/auto-manage", token=OP))

label("K3-4: Auto-manage again (expect still_active)")
out(post("/keeper/auto-manage", token=OP))

label("K3-5: Settle non-existent round")
out(post("/keeper/settle", {"round_id": 999999, "end_price": "8.5"}, token=OP))

# ── K4 Claims ──────────────────────────────────────────────────
if USER:
    section("K4 — CLAIMS")

    label(f"K4-1: Claimable rounds for {USER}")
    r = get(f"/claims/{USER}")
    out(r)

    items = (r.get("data") or {}).get("items", [])
    if items:
        label(f"K4-2: Claim round {items[0]['round_id']}")
        out(post("/claims", {"round_id": items[0]["round_id"], "user_address": USER}))

    label("K4-3: Claim all")
    out(post(f"/claims/{USER}/claim-all"))

print("\n\n=== SMOKE RUN COMPLETE ===\n")
