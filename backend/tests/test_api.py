"""
HTTP surface: status codes, error mapping and the event stream.
"""
from datetime import datetime


def record(client, **overrides):
    body = {
        "voucher_number": "INV-100",
        "party_name": "Sharma Traders",
        "bill_amount": "10000",
        "payment_date": "2024-04-01",
    }
    body.update(overrides)
    return client.post("/api/v1/bill-payments", json=body)


class TestBillPaymentRoutes:

    def test_record_payment(self, client, add_wallet_txn):
        add_wallet_txn("T-1", "3000", datetime(2024, 4, 1, 14, 30))

        response = record(
            client,
            cash_amount="4000",
            wallet_amount="3000",
            cheques=[{"bank_name": "SBI", "amount": "3000", "cheque_date": "2024-04-01"}]
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "paid"
        assert body["message"] == "Bill fully paid"
        assert body["created_cheques"][0]["synced"] is True
        assert body["wallet_match"]["matched"] is True
        assert body["wallet_match"]["transaction_id"] == "T-1"

    def test_no_wallet_match_is_explained(self, client):
        body = record(client, wallet_amount="1200").json()
        assert body["status"] == "partial"
        assert body["wallet_match"]["matched"] is False
        assert body["created_cheques"] is None

    def test_validation_error_is_400(self, client):
        response = record(client, bill_amount="0")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    def test_unknown_voucher_is_404(self, client):
        assert client.get("/api/v1/bill-payments/INV-404").status_code == 404

    def test_payment_detail_lists_instruments(self, client):
        record(client, cheques=[{"bank_name": "SBI", "amount": "10000"}])

        body = client.get("/api/v1/bill-payments/INV-100").json()
        assert float(body["payment"]["cheque_total"]) == 10000
        assert len(body["cheques"]) == 1
        assert body["cheques"][0]["needs_date_confirm"] is True


class TestChequeRoutes:

    def test_confirm_date_syncs(self, client, event_bus):
        created = client.post("/api/v1/cheques", json={
            "party_name": "Sharma Traders", "bank_name": "SBI", "amount": "5000",
            "voucher_number": "INV-100", "bill_amount": "5000"
        })
        assert created.status_code == 201
        cheque = created.json()
        assert cheque["needs_date_confirm"] is True
        assert cheque["bill_links"][0]["voucher_number"] == "INV-100"

        pending = client.get("/api/v1/cheques/pending-dates").json()
        assert pending["count"] == 1

        confirmed = client.put(f"/api/v1/cheques/{cheque['id']}/confirm-date", json={"cheque_date": "2024-04-05"})
        assert confirmed.status_code == 200
        assert confirmed.json()["sync_status"] == "synced"
        assert "cheque-date-confirmed" in event_bus.names()

    def test_invalid_status_transition_is_400(self, client):
        cheque = client.post("/api/v1/cheques", json={
            "party_name": "Sharma Traders", "bank_name": "SBI", "amount": "100", "cheque_date": "2024-04-01"
        }).json()
        client.put(f"/api/v1/cheques/{cheque['id']}/status", json={"status": "deposited"})
        client.put(f"/api/v1/cheques/{cheque['id']}/status", json={"status": "cleared"})

        response = client.put(f"/api/v1/cheques/{cheque['id']}/status", json={"status": "bounced"})
        assert response.status_code == 400

    def test_sync_pending_offline_is_503(self, client, gateway):
        gateway.connected = False
        response = client.post("/api/v1/cheques/sync-pending")
        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "GATEWAY_UNAVAILABLE"

    def test_summary_route_is_not_shadowed(self, client):
        response = client.get("/api/v1/cheques/summary")
        assert response.status_code == 200
        assert set(response.json()) == {"pending", "deposited", "cleared", "bounced"}


class TestWalletRoutes:

    def test_second_link_is_409(self, client, add_wallet_txn):
        add_wallet_txn("T-1", "300", datetime(2024, 4, 1, 9))
        link = {"voucher_number": "INV-100", "party_name": "Sharma Traders", "bill_date": "2024-04-01"}

        first = client.post("/api/v1/wallet/transactions/T-1/link", json=link)
        assert first.status_code == 200
        assert first.json()["display_label"] == "FOR DB | INV-100 | 2024-04-01"

        second = client.post("/api/v1/wallet/transactions/T-1/link", json={**link, "voucher_number": "INV-200"})
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "ALREADY_MATCHED"

    def test_ingest_then_preview_match(self, client):
        ingested = client.post("/api/v1/wallet/transactions", json=[
            {"transaction_id": "T-9", "amount": "450", "transaction_date": "2024-04-01T12:00:00"}
        ])
        assert ingested.json()["created"] == 1

        match = client.get("/api/v1/wallet/match", params={"amount": "450", "on_date": "2024-04-02"}).json()
        assert match["matched"] is True
        assert match["transaction_id"] == "T-9"


class TestOtherRoutes:

    def test_bank_name_duplicate_is_409(self, client):
        body = {"short_name": "SBI", "full_name": "State Bank of India"}
        assert client.post("/api/v1/bank-names", json=body).status_code == 201
        assert client.post("/api/v1/bank-names", json=body).status_code == 409
        assert client.get("/api/v1/bank-names/lookup/SBI").json()["full_name"] == "State Bank of India"

    def test_bill_register_and_soft_delete(self, client):
        body = {"voucher_number": "INV-100", "party_name": "Sharma Traders",
                "amount": "10000", "voucher_date": "2024-04-01"}
        bill = client.post("/api/v1/bills", json=body)
        assert bill.status_code == 201
        assert client.post("/api/v1/bills", json=body).status_code == 409

        bill_id = bill.json()["id"]
        assert client.delete(f"/api/v1/bills/{bill_id}").status_code == 200
        assert client.get(f"/api/v1/bills/{bill_id}").status_code == 404

    def test_outstanding_sync_offline_is_503(self, client, gateway):
        gateway.unavailable = True
        assert client.post("/api/v1/outstanding/sync").status_code == 503

    def test_ageing_reports_all_buckets_when_empty(self, client):
        body = client.get("/api/v1/outstanding/ageing").json()
        assert [b["bucket"] for b in body["buckets"]] == ["0-30", "30-60", "60-90", "90+"]

    def test_columnar_by_date(self, client):
        record(client, bill_date="2024-04-01", cash_amount="100")
        body = client.get("/api/v1/columnar", params={"date": "2024-04-01"}).json()
        assert body["count"] == 1
        assert body["rows"][0]["party_name"] == "Sharma Traders"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestEventStream:

    def test_payment_event_reaches_subscriber(self, client):
        with client.websocket_connect("/api/v1/events/ws") as websocket:
            record(client, cash_amount="10000")
            message = websocket.receive_json()

        assert message["event"] == "payment-recorded"
        assert message["data"]["voucher_number"] == "INV-100"
        assert message["data"]["status"] == "paid"
