import os

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("CHARGILY_SECRET_KEY", "test_sk_secret")
os.environ.setdefault("RESEND_API_KEY", "")

import copy
import uuid
import pytest
from typing import Any, Callable, Dict, Generator, List, Optional
from fastapi.testclient import TestClient

from boutique.app import app as fastapi_app
from boutique.utils.security import require_user, require_admin, optional_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


# --- Faux client Supabase (PostgREST en mémoire) ---

# Colonnes de type uuid: PostgREST refuse toute autre valeur (erreur 22P02)
UUID_COLUMNS = {"id", "order_id", "product_id", "pack_id"}
UUID_PARAMS = {"p_order_id", "p_product_id"}

def _is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload: Any = None
        self.filters: List[Callable[[dict], bool]] = []
        self.order_by: Optional[tuple] = None
        self.limit_n: Optional[int] = None
        self.bad_uuid: Any = None

    def _check_uuid(self, col, values):
        if col in UUID_COLUMNS:
            for v in values:
                if not _is_uuid(v):
                    self.bad_uuid = v

    def select(self, columns: str = "*", **kwargs):
        if self.op == "select":
            self.columns = columns
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def update(self, values):
        self.op, self.payload = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, col, value):
        self._check_uuid(col, [value])
        self.filters.append(lambda r: r.get(col) == value)
        return self

    def neq(self, col, value):
        self._check_uuid(col, [value])
        self.filters.append(lambda r: r.get(col) != value)
        return self

    def in_(self, col, values):
        wanted = list(values)
        self._check_uuid(col, wanted)
        self.filters.append(lambda r: r.get(col) in wanted)
        return self

    def order(self, col, desc=False):
        self.order_by = (col, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matching(self) -> List[dict]:
        return [r for r in self.db.tables.setdefault(self.table_name, []) if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        if (self.table_name, self.op) in self.db.fail_on:
            raise RuntimeError(f"boom {self.table_name}.{self.op}")
        if self.bad_uuid is not None:
            raise RuntimeError(f'invalid input syntax for type uuid: "{self.bad_uuid}"')
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for r in new_rows:
                row = {**self.db.defaults.get(self.table_name, {}), **copy.deepcopy(r)}
                row.setdefault("id", str(uuid.uuid4()))
                rows.append(row)
                created.append(copy.deepcopy(row))
            return FakeResponse(created)

        if self.op == "update":
            updated = []
            for r in self._matching():
                r.update(copy.deepcopy(self.payload))
                updated.append(copy.deepcopy(r))
            return FakeResponse(updated)

        if self.op == "delete":
            doomed = self._matching()
            self.db.tables[self.table_name] = [r for r in rows if r not in doomed]
            if self.table_name == "orders":
                ids = {r["id"] for r in doomed}
                self.db.tables["order_items"] = [
                    i for i in self.db.tables.get("order_items", []) if i.get("order_id") not in ids
                ]
            return FakeResponse([copy.deepcopy(r) for r in doomed])

        result = [copy.deepcopy(r) for r in self._matching()]
        if self.order_by:
            col, desc = self.order_by
            result.sort(key=lambda r: str(r.get(col) or ""), reverse=desc)
        if self.table_name == "orders" and "order_items(" in self.columns:
            for r in result:
                r["order_items"] = [
                    copy.deepcopy(i) for i in self.db.tables.get("order_items", []) if i.get("order_id") == r["id"]
                ]
        if self.limit_n is not None:
            result = result[: self.limit_n]
        return FakeResponse(result)


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db, self.name, self.params = db, name, params

    def execute(self):
        self.db.calls.append(("rpc", self.name))
        if ("rpc", self.name) in self.db.fail_on:
            raise RuntimeError(f"boom rpc {self.name}")
        for key in UUID_PARAMS & set(self.params):
            if not _is_uuid(self.params[key]):
                raise RuntimeError(f'invalid input syntax for type uuid: "{self.params[key]}"')
        return FakeResponse(self.db.rpcs[self.name](self.params))


class FakeSupabase:
    """Sous-ensemble du query builder supabase-py utilisé par les repositories."""

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {"products": [], "packs": [], "orders": [], "order_items": [], "cart_items": []}
        self.defaults = {"orders": {"status": "pending", "payment_status": "unpaid", "transaction_id": None, "payment_method": None}}
        self.calls: List[tuple] = []
        self.fail_on: set = set()
        self.rpcs: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "reserve_product_stock": self._reserve,
            "release_product_stock": self._release,
            "get_order_status": self._order_status,
            "is_admin_or_owner": lambda params: False,
        }

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    # Helpers de test
    def add_product(self, name="Figurine", price=1500, stock=10, active=True, **extra) -> str:
        pid = str(uuid.uuid4())
        self.tables["products"].append({"id": pid, "name": name, "price": price, "stock_quantity": stock, "is_active": active, **extra})
        return pid

    def add_pack(self, name="Pack découverte", price=4000, active=True) -> str:
        pid = str(uuid.uuid4())
        self.tables["packs"].append({"id": pid, "name": name, "price": price, "is_active": active})
        return pid

    def add_order(self, **fields) -> str:
        oid = fields.pop("id", None) or str(uuid.uuid4())
        self.tables["orders"].append({**self.defaults["orders"], "id": oid, "user_id": "test-user", "total_amount": 3000, **fields})
        return oid

    def order(self, order_id: str) -> Optional[dict]:
        return next((o for o in self.tables["orders"] if o["id"] == order_id), None)

    def product(self, product_id: str) -> Optional[dict]:
        return next((p for p in self.tables["products"] if p["id"] == product_id), None)

    # RPC en mémoire
    def _reserve(self, params):
        p = self.product(params["p_product_id"])
        qty = params["p_quantity"]
        if p is None:
            return False
        if p.get("stock_quantity") is None:
            return True
        if p["stock_quantity"] < qty:
            return False
        p["stock_quantity"] -= qty
        return True

    def _release(self, params):
        p = self.product(params["p_product_id"])
        if p is not None and p.get("stock_quantity") is not None:
            p["stock_quantity"] += params["p_quantity"]
        return None

    def _order_status(self, params):
        o = self.order(params["p_order_id"])
        if not o or o.get("phone") != params["p_phone"]:
            return {"found": False, "error": "Order not found"}
        return {"found": True, "id": o["id"], "status": o["status"], "payment_status": o["payment_status"], "total_amount": o["total_amount"]}


@pytest.fixture()
def fake_db(monkeypatch) -> FakeSupabase:
    """Remplace les clients Supabase (anon, service, utilisateur) par une base en mémoire."""
    db = FakeSupabase()
    monkeypatch.setattr("boutique.infra.supabase_client.get_supabase", lambda: db)
    monkeypatch.setattr("boutique.infra.supabase_client.get_service_supabase", lambda: db)
    monkeypatch.setattr("boutique.infra.supabase_client.get_user_supabase", lambda token: db)
    return db


# --- Application ---

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app, fake_db) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "role": "user",
    "metadata": {"full_name": "Test User"},
    "token": "fake-token",
}

ADMIN_USER: Dict[str, Any] = {"id": "admin-user-id", "role": "admin", "email": "admin@example.com", "token": "admin-token"}

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture
def signed_in(app):
    """Les endpoints à authentification optionnelle voient TEST_USER (sinon: invité)."""
    app.dependency_overrides[optional_user] = lambda: dict(TEST_USER)
    yield dict(TEST_USER)
    app.dependency_overrides.pop(optional_user, None)

@pytest.fixture
def authenticated_admin_client(app, client):
    app.dependency_overrides[require_admin] = lambda: dict(ADMIN_USER)
    app.dependency_overrides[require_user] = lambda: dict(ADMIN_USER)
    yield client
    app.dependency_overrides.pop(require_admin, None)
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
