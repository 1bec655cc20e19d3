"""Settlement reconciler behaviour against in-memory stores."""

import asyncio
import json
import time

import pytest

from stripe_helpers import WEBHOOK_SECRET, checkout_session, event_body, sign
from tipjar.core.errors import InvalidSignature, TransientStoreFailure
from tipjar.services.settlement_service import SettlementReconciler, SettlementStatus


async def deliver(reconciler, body: bytes):
    return await reconciler.handle_completion_event(body, sign(body))


class TestSignature:
    async def test_missing_header_rejected_without_side_effects(self, reconciler, stores):
        with pytest.raises(InvalidSignature):
            await reconciler.handle_completion_event(event_body(), None)

        assert stores["ledger"].records == {}
        assert stores["balances"].increments == 0
        assert stores["analytics"].events == []

    async def test_wrong_secret_rejected_without_side_effects(self, reconciler, stores):
        body = event_body()
        with pytest.raises(InvalidSignature):
            await reconciler.handle_completion_event(body, sign(body, secret="whsec_other"))

        assert stores["ledger"].records == {}
        assert stores["balances"].increments == 0
        assert stores["analytics"].events == []

    async def test_tampered_body_rejected(self, reconciler, stores):
        body = event_body()
        header = sign(body)
        tampered = body.replace(b"500", b"50000")

        with pytest.raises(InvalidSignature):
            await reconciler.handle_completion_event(tampered, header)
        assert stores["ledger"].records == {}

    async def test_stale_timestamp_rejected(self, reconciler):
        body = event_body()
        header = sign(body, timestamp=int(time.time()) - 3600)

        with pytest.raises(InvalidSignature):
            await reconciler.handle_completion_event(body, header)

    def test_empty_secret_refused(self, stores):
        with pytest.raises(ValueError):
            SettlementReconciler(webhook_secret="", **stores)


class TestSettlement:
    async def test_first_delivery_settles(self, reconciler, stores):
        result = await deliver(reconciler, event_body())

        assert result.status is SettlementStatus.settled
        assert result.session_id == "cs_1"
        assert result.event_id == "evt_1"

        record = stores["ledger"].records["cs_1"]
        assert record.user_id == "u1"
        assert record.amount == 500
        assert record.currency == "usd"
        assert record.is_anonymous is False
        assert record.message is None
        assert stores["balances"].earnings["u1"] == 500

    async def test_redelivery_is_idempotent(self, reconciler, stores):
        body = event_body()

        first = await deliver(reconciler, body)
        second = await deliver(reconciler, body)

        assert first.status is SettlementStatus.settled
        assert second.status is SettlementStatus.already_processed
        assert len(stores["ledger"].records) == 1
        assert stores["balances"].earnings["u1"] == 500
        assert stores["balances"].increments == 1
        assert len(stores["analytics"].events) == 1

    async def test_redelivery_with_new_event_id_still_deduplicated(self, reconciler, stores):
        # completed + async_payment_succeeded can both arrive for one session
        await deliver(reconciler, event_body(event_id="evt_1"))
        result = await deliver(
            reconciler,
            event_body(event_id="evt_2", event_type="checkout.session.async_payment_succeeded"),
        )

        assert result.status is SettlementStatus.already_processed
        assert stores["balances"].earnings["u1"] == 500

    async def test_total_earnings_is_sum_of_distinct_sessions(self, reconciler, stores):
        amounts = [500, 1250, 75, 10000]
        for i, amount in enumerate(amounts):
            body = event_body(
                checkout_session(session_id=f"cs_{i}", amount_total=amount),
                event_id=f"evt_{i}",
            )
            result = await deliver(reconciler, body)
            assert result.status is SettlementStatus.settled

        assert stores["balances"].earnings["u1"] == sum(amounts)
        assert sum(r.amount for r in stores["ledger"].records.values()) == sum(amounts)

    async def test_concurrent_same_session_settles_once(self, reconciler, stores):
        body = event_body()

        results = await asyncio.gather(deliver(reconciler, body), deliver(reconciler, body))

        statuses = sorted(r.status.value for r in results)
        assert statuses == ["already_processed", "settled"]
        assert len(stores["ledger"].records) == 1
        assert stores["balances"].increments == 1

    async def test_analytics_event_shape(self, reconciler, stores):
        session = checkout_session(message="keep it up", anonymous="true")
        await deliver(reconciler, event_body(session))

        (event,) = stores["analytics"].events
        assert event.user_id == "u1"
        assert event.event_type == "tip_received"
        assert event.amount == 500
        assert event.metadata == {"session_id": "cs_1", "anonymous": True, "message": "keep it up"}


class TestSupporterName:
    async def test_named_supporter_from_customer_details(self, reconciler, stores):
        await deliver(reconciler, event_body(checkout_session(customer_name="Bob")))

        assert stores["ledger"].records["cs_1"].supporter_name == "Bob"

    async def test_anonymous_supporter_never_named(self, reconciler, stores):
        session = checkout_session(customer_name="Bob", anonymous="true")
        await deliver(reconciler, event_body(session))

        record = stores["ledger"].records["cs_1"]
        assert record.is_anonymous is True
        assert record.supporter_name is None


class TestNonSettlingEvents:
    async def test_unsupported_type_ignored(self, reconciler, stores):
        result = await deliver(reconciler, event_body(event_type="customer.created"))

        assert result.status is SettlementStatus.ignored
        assert stores["ledger"].records == {}
        assert stores["balances"].increments == 0
        assert stores["analytics"].events == []
        assert stores["deadletters"].items == []

    async def test_unpaid_completion_ignored(self, reconciler, stores):
        session = checkout_session(payment_status="unpaid")
        result = await deliver(reconciler, event_body(session))

        assert result.status is SettlementStatus.ignored
        assert stores["ledger"].records == {}

    async def test_missing_user_id_is_malformed(self, reconciler, stores):
        result = await deliver(reconciler, event_body(checkout_session(user_id=None)))

        assert result.status is SettlementStatus.malformed
        assert result.session_id == "cs_1"
        assert stores["ledger"].records == {}
        assert stores["balances"].increments == 0
        assert stores["analytics"].events == []

        (item,) = stores["deadletters"].items
        assert item["stripe_event_id"] == "evt_1"
        assert item["stripe_session_id"] == "cs_1"
        assert "user_id" in item["error"]

    async def test_mistyped_anonymous_flag_is_malformed(self, reconciler, stores):
        result = await deliver(reconciler, event_body(checkout_session(anonymous="yes")))

        assert result.status is SettlementStatus.malformed
        assert stores["ledger"].records == {}

    async def test_signed_garbage_is_malformed(self, reconciler, stores):
        body = b"not json"
        result = await deliver(reconciler, body)

        assert result.status is SettlementStatus.malformed
        assert stores["ledger"].records == {}
        assert stores["deadletters"].items[0]["stripe_event_id"] == "unknown"

    async def test_malformed_without_deadletter_store(self, stores):
        reconciler = SettlementReconciler(
            webhook_secret=WEBHOOK_SECRET,
            ledger=stores["ledger"],
            balances=stores["balances"],
            analytics=stores["analytics"],
        )
        body = json.dumps({"id": "evt_x", "type": "checkout.session.completed", "data": {}}).encode()

        result = await deliver(reconciler, body)
        assert result.status is SettlementStatus.malformed


class TestFailures:
    async def test_ledger_failure_is_transient(self, reconciler, stores):
        stores["ledger"].error = ConnectionError("db down")

        with pytest.raises(TransientStoreFailure):
            await deliver(reconciler, event_body())

        assert stores["balances"].increments == 0
        assert stores["analytics"].events == []

    async def test_recovers_on_redelivery_after_transient_failure(self, reconciler, stores):
        body = event_body()
        stores["ledger"].error = ConnectionError("db down")
        with pytest.raises(TransientStoreFailure):
            await deliver(reconciler, body)

        stores["ledger"].error = None
        result = await deliver(reconciler, body)

        assert result.status is SettlementStatus.settled
        assert stores["balances"].earnings["u1"] == 500

    async def test_analytics_failure_does_not_fail_settlement(self, reconciler, stores):
        stores["analytics"].error = RuntimeError("analytics down")

        result = await deliver(reconciler, event_body())

        assert result.status is SettlementStatus.settled
        assert stores["balances"].earnings["u1"] == 500
        assert "cs_1" in stores["ledger"].records

    async def test_balance_failure_without_transaction_strands_ledger_row(self, reconciler, stores):
        body = event_body()
        stores["balances"].error = RuntimeError("balance update failed")
        with pytest.raises(TransientStoreFailure):
            await deliver(reconciler, body)

        stores["balances"].error = None
        result = await deliver(reconciler, body)

        # No shared transaction, so the ledger row survived and the credit is lost
        assert result.status is SettlementStatus.already_processed
        assert "cs_1" in stores["ledger"].records
        assert stores["balances"].earnings["u1"] == 0
