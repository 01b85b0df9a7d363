"""
HTTP surface tests for /api/pos.

Verifies the JSON shapes and the error-code to status mapping.
"""


def _sale(client, lines, method="CASH", **extra):
    return client.post("/api/pos/invoices", json={"lines": lines, "payment_method": method, **extra})


class TestItemRoutes:
    def test_resolve(self, client, db_session, scanned_item):
        resp = client.get("/api/pos/items/resolve?code=12345678")

        assert resp.status_code == 200
        assert resp.get_json()["item"]["name"] == "USB Cable"

    def test_resolve_unknown(self, client, db_session):
        resp = client.get("/api/pos/items/resolve?code=ZZZ999")

        assert resp.status_code == 404
        body = resp.get_json()
        assert body["code"] == "NOT_FOUND"
        assert body["details"] == {"code": "ZZZ999"}

    def test_search(self, client, db_session, make_item):
        make_item("MSE-002", name="Wireless Mouse")

        resp = client.get("/api/pos/items/search?q=MOUSE")

        assert resp.status_code == 200
        assert [i["sku"] for i in resp.get_json()["items"]] == ["MSE-002"]

    def test_search_bad_limit(self, client, db_session):
        resp = client.get("/api/pos/items/search?q=a&limit=1.5")

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_REQUEST"


class TestInvoiceRoutes:
    def test_finalize_sale(self, client, db_session, scanned_item, cash_account, stock_of):
        resp = _sale(client, [{"sku": "12345678", "quantity": 1}, {"sku": "12345678", "quantity": 1}])

        assert resp.status_code == 201
        invoice = resp.get_json()["invoice"]
        assert invoice["document_number"] == "INV-000001"
        assert invoice["total_cents"] == 200
        assert len(invoice["lines"]) == 1
        assert invoice["lines"][0]["quantity"] == 2
        assert invoice["created_at"].endswith("Z")
        assert stock_of("12345678") == 8

    def test_client_prices_are_ignored(self, client, db_session, scanned_item, cash_account):
        resp = _sale(client, [{"sku": "12345678", "quantity": 1, "unit_price_cents": 1}])

        assert resp.get_json()["invoice"]["total_cents"] == 100

    def test_user_id_from_header(self, client, db_session, scanned_item, cash_account):
        resp = client.post(
            "/api/pos/invoices",
            json={"lines": [{"sku": "12345678"}], "payment_method": "CASH"},
            headers={"X-User-Id": "42"},
        )

        assert resp.get_json()["invoice"]["created_by_user_id"] == 42

    def test_missing_lines(self, client, db_session, cash_account):
        resp = client.post("/api/pos/invoices", json={"payment_method": "CASH"})

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_REQUEST"

    def test_insufficient_stock(self, client, db_session, scanned_item, cash_account, stock_of):
        resp = _sale(client, [{"sku": "12345678", "quantity": 11}])

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "INSUFFICIENT_STOCK"
        assert stock_of("12345678") == 10

    def test_unknown_sku(self, client, db_session, cash_account):
        resp = _sale(client, [{"sku": "ZZZ999", "quantity": 1}])

        assert resp.status_code == 404

    def test_unknown_payment_method(self, client, db_session, scanned_item, cash_account):
        resp = _sale(client, [{"sku": "12345678"}], method="IOU")

        assert resp.status_code == 400

    def test_get_and_list(self, client, db_session, scanned_item, cash_account):
        invoice_id = _sale(client, [{"sku": "12345678", "quantity": 3}]).get_json()["invoice"]["id"]

        detail = client.get(f"/api/pos/invoices/{invoice_id}")
        assert detail.status_code == 200
        assert detail.get_json()["returnable"] == {"12345678": 3}

        listing = client.get("/api/pos/invoices?since=2000-01-01T00:00:00Z")
        assert [inv["id"] for inv in listing.get_json()["invoices"]] == [invoice_id]

        assert client.get("/api/pos/invoices?since=yesterday").status_code == 400
        assert client.get("/api/pos/invoices/999").status_code == 404

    def test_list_limit_bounds(self, client, db_session, scanned_item, cash_account):
        for _ in range(3):
            _sale(client, [{"sku": "12345678"}])

        assert len(client.get("/api/pos/invoices?limit=2").get_json()["invoices"]) == 2
        assert len(client.get("/api/pos/invoices?limit=100000").get_json()["invoices"]) == 3
        for bad in ("-1", "0", "abc"):
            resp = client.get(f"/api/pos/invoices?limit={bad}")
            assert resp.status_code == 400
            assert resp.get_json()["code"] == "INVALID_REQUEST"


class TestReturnRoutes:
    def test_return_then_over_return(self, client, db_session, scanned_item, cash_account, stock_of, balance_of):
        invoice_id = _sale(client, [{"sku": "12345678", "quantity": 5}]).get_json()["invoice"]["id"]

        ok = client.post(
            f"/api/pos/invoices/{invoice_id}/returns",
            json={"lines": [{"sku": "12345678", "quantity": 3}], "refund_method": "CASH", "reason": "Wrong size"},
        )
        assert ok.status_code == 201
        body = ok.get_json()["return"]
        assert body["refund_amount_cents"] == 300
        assert body["lines"][0]["quantity"] == 3

        over = client.post(
            f"/api/pos/invoices/{invoice_id}/returns",
            json={"lines": [{"sku": "12345678", "quantity": 3}], "refund_method": "CASH"},
        )
        assert over.status_code == 409
        assert over.get_json()["code"] == "OVER_RETURN"

        assert stock_of("12345678") == 8
        assert balance_of(cash_account.id) == 200

        listing = client.get(f"/api/pos/invoices/{invoice_id}/returns")
        assert len(listing.get_json()["returns"]) == 1

    def test_return_unknown_invoice(self, client, db_session, cash_account):
        resp = client.post(
            "/api/pos/invoices/404/returns",
            json={"lines": [{"sku": "12345678", "quantity": 1}], "refund_method": "CASH"},
        )

        assert resp.status_code == 404
        assert client.get("/api/pos/invoices/404/returns").status_code == 404


class TestLedgerAndLabels:
    def test_accounts_and_transactions(self, client, db_session, scanned_item, cash_account, bank_account):
        _sale(client, [{"sku": "12345678", "quantity": 2}])

        accounts = client.get("/api/pos/accounts").get_json()["accounts"]
        balances = {a["name"]: a["balance_cents"] for a in accounts}
        assert balances == {"Cash Drawer": 200, "Main Bank": 0}

        entries = client.get(f"/api/pos/accounts/{cash_account.id}/transactions").get_json()["transactions"]
        assert [e["direction"] for e in entries] == ["CREDIT"]

    def test_label(self, client, db_session, scanned_item):
        resp = client.post("/api/pos/labels", json={"sku": "12345678", "copies": 3})

        assert resp.status_code == 200
        assert resp.get_json()["label"]["copies"] == 3

    def test_label_bad_format(self, client, db_session, scanned_item):
        resp = client.post("/api/pos/labels", json={"sku": "12345678", "barcode_format": "QR"})

        assert resp.status_code == 400


class TestSystemRoutes:
    def test_health_degraded_without_accounts(self, client, db_session):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

    def test_health_ok(self, client, db_session, cash_account, bank_account):
        body = client.get("/health").get_json()

        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_version(self, client):
        assert client.get("/version").get_json()["api_version"] == "0.1.0"
