"""
Tests for remediation, reversal and the scan orchestrator.

All scenarios run against InMemoryOrderStore so every mutation can be
inspected afterwards.
"""

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

# Ensure the project root is on sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from duplicate_guard import guard_config as cfg
from duplicate_guard.exceptions import (
    OrderApiError,
    RemediationFailed,
    ReversalFailed,
    SourceUnavailable,
)
from duplicate_guard.models import DuplicateDecision, Order, ScanState, Settings
from duplicate_guard.order_store import InMemoryOrderStore
from duplicate_guard.remediation_driver import RemediationDriver, build_detection_note
from duplicate_guard.reversal_handler import ReversalHandler
from duplicate_guard.scan_orchestrator import ScanOrchestrator

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TAG = cfg.DEFAULT_TAG_NAME


def make_order(order_id, name, phone="", status=None, days_ago=0, **kwargs):
    return Order(
        id=str(order_id),
        name=name,
        customer_phone=phone,
        fulfillment_status=status,
        created_at=NOW - timedelta(days=days_ago),
        **kwargs,
    )


def decision_for(canonical, *redundant, phone="P1"):
    return DuplicateDecision(phone=phone, canonical_order=canonical, redundant_orders=tuple(redundant))


# ======================================================================
# Test: Remediation Driver
# ======================================================================


class TestDetectionNote(unittest.TestCase):

    def test_note_lines(self):
        note = build_detection_note(["#1002", "#1003"], cfg.TRIGGER_BATCH, True, NOW)
        lines = note.split("\n")
        self.assertEqual(lines[0], f"{cfg.DETECTION_NOTE_MARKER} ({cfg.TRIGGER_BATCH})")
        self.assertEqual(lines[1], "Duplicates found: #1002, #1003")
        self.assertEqual(lines[2], "Detection time: 2026-10-19 12:00:00 UTC")
        self.assertEqual(lines[3], cfg.STATUS_CANCELED)

    def test_flagged_status_without_cancel(self):
        note = build_detection_note(["#1002"], cfg.TRIGGER_WEBHOOK, False, NOW)
        self.assertTrue(note.endswith(cfg.STATUS_FLAGGED))


class TestRemediationDriver(unittest.TestCase):

    def setUp(self):
        self.target = make_order(1, "#1001", "P1", None, tags=["vip"], note="Gift wrap")
        self.sibling = make_order(2, "#1002", "P1", "fulfilled", days_ago=1)
        self.store = InMemoryOrderStore([self.target, self.sibling])
        self.driver = RemediationDriver(self.store)

    def test_full_remediation(self):
        result = self.driver.remediate(decision_for(self.target, self.sibling), Settings(), now=NOW)

        self.assertEqual(result.status, "REMEDIATED")
        self.assertTrue(result.tagged and result.noted and result.canceled)
        order = self.store.get("1")
        self.assertEqual(order.tags, ["vip", TAG])
        self.assertTrue(order.is_cancelled)
        self.assertEqual(order.cancel_reason, cfg.CANCEL_REASON)
        self.assertIn("#1002", order.note)

    def test_cancel_uses_fixed_options(self):
        self.driver.remediate(decision_for(self.target, self.sibling), Settings(), now=NOW)
        cancellation = self.store.cancellations[0]
        self.assertEqual(cancellation["reason"], "other")
        self.assertFalse(cancellation["notify_customer"])
        self.assertFalse(cancellation["refund"])

    def test_redundant_orders_untouched(self):
        self.driver.remediate(decision_for(self.target, self.sibling), Settings(), now=NOW)
        sibling = self.store.get("2")
        self.assertEqual(sibling.tags, [])
        self.assertEqual(sibling.note, "")
        self.assertFalse(sibling.is_cancelled)

    def test_note_is_appended(self):
        self.driver.remediate(decision_for(self.target, self.sibling), Settings(), now=NOW)
        note = self.store.get("1").note
        self.assertTrue(note.startswith("Gift wrap\n\n"))
        self.assertIn(cfg.DETECTION_NOTE_MARKER, note)

    def test_tag_added_once(self):
        settings = Settings()
        self.driver.remediate(decision_for(self.target, self.sibling), settings, now=NOW)
        self.store.reopen("1")
        self.driver.remediate(decision_for(self.target, self.sibling), settings, now=NOW)

        order = self.store.get("1")
        self.assertEqual(order.tags.count(TAG), 1)
        self.assertIn("vip", order.tags)
        self.assertEqual(order.note.count(cfg.DETECTION_NOTE_MARKER), 2)

    def test_existing_tag_skips_write(self):
        with patch.object(self.store, "set_tags") as mock_set:
            target = make_order(3, "#1003", "P1", None, tags=[TAG])
            self.store.add(target)
            result = self.driver.remediate(decision_for(target, self.sibling), Settings(), now=NOW)
            mock_set.assert_not_called()
        self.assertTrue(result.tagged)

    def test_auto_cancel_off(self):
        result = self.driver.remediate(
            decision_for(self.target, self.sibling), Settings(auto_cancel=False), now=NOW
        )
        order = self.store.get("1")
        self.assertTrue(result.success)
        self.assertFalse(result.canceled)
        self.assertFalse(order.is_cancelled)
        self.assertIn(cfg.STATUS_FLAGGED, order.note)
        self.assertEqual(self.store.cancellations, [])

    def test_dry_run_makes_no_changes(self):
        result = self.driver.remediate(
            decision_for(self.target, self.sibling), Settings(), now=NOW, dry_run=True
        )
        order = self.store.get("1")
        self.assertEqual(result.status, "DRY_RUN")
        self.assertEqual(order.tags, ["vip"])
        self.assertEqual(order.note, "Gift wrap")
        self.assertFalse(order.is_cancelled)

    def test_note_failure_skips_cancel(self):
        with patch.object(self.store, "append_note", side_effect=OrderApiError("boom", 500)):
            result = self.driver.remediate(decision_for(self.target, self.sibling), Settings(), now=NOW)

        self.assertTrue(result.tagged)
        self.assertFalse(result.noted)
        self.assertFalse(result.canceled)
        self.assertEqual(result.status, "PARTIAL")
        self.assertFalse(self.store.get("1").is_cancelled)
        self.assertTrue(any("note failed for order #1001" in e for e in result.errors))
        self.assertTrue(any(e.startswith("cancel skipped") for e in result.errors))

    def test_skipped_cancel_completes_on_next_pass(self):
        decision = decision_for(self.target, self.sibling)
        with patch.object(self.store, "set_tags", side_effect=OrderApiError("boom", 500)):
            first = self.driver.remediate(decision, Settings(), now=NOW)

        self.assertTrue(first.noted)
        self.assertFalse(first.canceled)
        self.assertIn("cancel skipped for order #1001: tag or note step failed", first.errors)
        self.assertFalse(self.store.get("1").is_cancelled)

        second = self.driver.remediate(decision, Settings(), now=NOW)
        self.assertTrue(second.success)
        order = self.store.get("1")
        self.assertTrue(order.is_cancelled)
        self.assertIn(TAG, order.tags)

    def test_tag_failure_still_writes_note(self):
        with patch.object(self.store, "set_tags", side_effect=OrderApiError("boom", 500)):
            result = self.driver.remediate(decision_for(self.target, self.sibling), Settings(), now=NOW)

        self.assertFalse(result.tagged)
        self.assertTrue(result.noted)
        self.assertFalse(result.canceled)
        self.assertIn(cfg.DETECTION_NOTE_MARKER, self.store.get("1").note)

    def test_failures_isolated_per_decision(self):
        other = make_order(5, "#2001", "P2", None)
        other_sibling = make_order(6, "#2002", "P2", "fulfilled")
        for order in (other, other_sibling):
            self.store.add(order)

        original_append = self.store.append_note

        def flaky_append(order_id, text):
            if order_id == "1":
                raise OrderApiError("timeout")
            original_append(order_id, text)

        with patch.object(self.store, "append_note", side_effect=flaky_append):
            results = self.driver.remediate_all(
                [decision_for(self.target, self.sibling), decision_for(other, other_sibling, phone="P2")],
                Settings(),
                now=NOW,
            )

        self.assertFalse(results[0].success)
        self.assertTrue(results[1].success)
        self.assertTrue(self.store.get("5").is_cancelled)
        self.assertFalse(self.store.get("1").is_cancelled)

    def test_remediation_failed_message(self):
        error = RemediationFailed("#1001", "tag", "HTTP 500")
        self.assertEqual(str(error), "tag failed for order #1001: HTTP 500")
        self.assertEqual(error.step, "tag")


# ======================================================================
# Test: Reversal Handler
# ======================================================================


class TestReversalHandler(unittest.TestCase):

    def setUp(self):
        self.target = make_order(1, "#1001", "P1", None, tags=["vip"])
        self.sibling = make_order(2, "#1002", "P1", "fulfilled", days_ago=1)
        self.store = InMemoryOrderStore([self.target, self.sibling])
        RemediationDriver(self.store).remediate(
            decision_for(self.target, self.sibling), Settings(), now=NOW
        )
        self.handler = ReversalHandler(self.store)

    def test_round_trip(self):
        result = self.handler.reverse("1", Settings(), now=NOW + timedelta(hours=1))

        self.assertTrue(result.success)
        order = self.store.get("1")
        self.assertFalse(order.is_cancelled)
        self.assertEqual(order.tags, ["vip"])
        detection_at = order.note.index(cfg.DETECTION_NOTE_MARKER)
        reopen_at = order.note.index(cfg.REOPEN_NOTE_MARKER)
        self.assertLess(detection_at, reopen_at)

    def test_keep_tag(self):
        result = self.handler.reverse("1", Settings(), remove_tag=False, now=NOW)
        self.assertFalse(result.tag_removed)
        self.assertIn(TAG, self.store.get("1").tags)
        self.assertFalse(self.store.get("1").is_cancelled)

    def test_absent_tag_is_noop(self):
        self.store.set_tags("1", ["vip"])
        with patch.object(self.store, "set_tags") as mock_set:
            result = self.handler.reverse("1", Settings(), now=NOW)
            mock_set.assert_not_called()
        self.assertTrue(result.tag_removed)

    def test_reopen_failure_still_runs_other_steps(self):
        with patch.object(self.store, "reopen", side_effect=OrderApiError("locked", 422)):
            with self.assertRaises(ReversalFailed) as ctx:
                self.handler.reverse("1", Settings(), now=NOW)

        result = ctx.exception.result
        self.assertFalse(result.reopened)
        self.assertTrue(result.tag_removed)
        self.assertTrue(result.noted)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith("reopen failed"))
        self.assertNotIn(TAG, self.store.get("1").tags)

    def test_unknown_order(self):
        with self.assertRaises(ReversalFailed) as ctx:
            self.handler.reverse("999", Settings(), now=NOW)
        self.assertEqual(len(ctx.exception.result.errors), 3)


# ======================================================================
# Test: Scan Orchestrator
# ======================================================================


class TestBatchScan(unittest.TestCase):

    def test_single_duplicate_pair(self):
        store = InMemoryOrderStore([
            make_order(1, "#1001", "+40123", None, days_ago=0),
            make_order(2, "#1002", "+40123", "fulfilled", days_ago=1),
        ])
        result = ScanOrchestrator(store, store).run_batch_scan(Settings(search_days=14), now=NOW)

        self.assertEqual(result.state, ScanState.DONE)
        self.assertEqual(result.states, ["IDLE", "FETCHING", "GROUPING", "RESOLVING", "REMEDIATING", "DONE"])
        self.assertEqual(result.groups_found, 1)
        self.assertEqual(result.duplicates_found, 1)
        order = store.get("1")
        self.assertIn(TAG, order.tags)
        self.assertIn("#1002", order.note)
        self.assertTrue(order.is_cancelled)
        self.assertFalse(store.get("2").is_cancelled)

    def test_no_duplicates(self):
        store = InMemoryOrderStore([make_order(1, "#1003", "+40987", None)])
        result = ScanOrchestrator(store, store).run_batch_scan(Settings(), now=NOW)

        self.assertEqual(result.groups_found, 0)
        self.assertEqual(result.duplicates_found, 0)
        self.assertEqual(store.cancellations, [])
        self.assertEqual(store.get("1").tags, [])

    def test_two_unfulfilled_only_first_remediated(self):
        store = InMemoryOrderStore([
            make_order(1, "#2001", "+40555", None),
            make_order(2, "#2002", "+40555", None),
        ])
        result = ScanOrchestrator(store, store).run_batch_scan(Settings(), now=NOW)

        self.assertEqual(result.duplicates_found, 1)
        self.assertTrue(store.get("1").is_cancelled)
        self.assertFalse(store.get("2").is_cancelled)
        self.assertEqual(store.get("2").tags, [])

    def test_orders_outside_window_ignored(self):
        store = InMemoryOrderStore([
            make_order(1, "#1", "+40123", None, days_ago=0),
            make_order(2, "#2", "+40123", "fulfilled", days_ago=20),
        ])
        result = ScanOrchestrator(store, store).run_batch_scan(Settings(search_days=14), now=NOW)
        self.assertEqual(result.groups_found, 0)

    def test_sample_orders_dry_run(self):
        store = InMemoryOrderStore.with_sample_orders(now=NOW)
        result = ScanOrchestrator(store, store).run_batch_scan(Settings(), now=NOW, dry_run=True)

        self.assertEqual(result.orders_fetched, 5)
        self.assertEqual(result.duplicates_found, 2)
        self.assertEqual(
            [d.to_dict() for d in result.decisions],
            [
                {"phone": "+40123456789", "unfulfilled_order": "#1001", "duplicates": ["#1002"]},
                {"phone": "+40555999888", "unfulfilled_order": "#1004", "duplicates": ["#1005"]},
            ],
        )
        self.assertEqual(store.cancellations, [])
        self.assertTrue(all(r.status == "DRY_RUN" for r in result.remediations))

    def test_partial_failure_does_not_fail_scan(self):
        store = InMemoryOrderStore.with_sample_orders(now=NOW)
        original_append = store.append_note

        def flaky_append(order_id, text):
            if order_id == "12345":
                raise OrderApiError("rate limited", 429)
            original_append(order_id, text)

        with patch.object(store, "append_note", side_effect=flaky_append):
            result = ScanOrchestrator(store, store).run_batch_scan(Settings(), now=NOW)

        self.assertEqual(result.state, ScanState.DONE)
        self.assertEqual(result.failed_orders, ["#1001"])
        self.assertTrue(store.get("12348").is_cancelled)

    def test_fetch_failure_aborts(self):
        directory = MagicMock()
        directory.fetch_orders_created_since.side_effect = OrderApiError("HTTP 503", 503)
        mutator = MagicMock()

        with self.assertRaises(SourceUnavailable):
            ScanOrchestrator(directory, mutator).run_batch_scan(Settings(), now=NOW)

        mutator.set_tags.assert_not_called()
        mutator.append_note.assert_not_called()
        mutator.cancel.assert_not_called()

    def test_fetch_window_start(self):
        directory = MagicMock()
        directory.fetch_orders_created_since.return_value = []
        ScanOrchestrator(directory, MagicMock()).run_batch_scan(Settings(search_days=7), now=NOW)
        directory.fetch_orders_created_since.assert_called_once_with(NOW - timedelta(days=7))

    def test_result_to_dict(self):
        store = InMemoryOrderStore.with_sample_orders(now=NOW)
        d = ScanOrchestrator(store, store).run_batch_scan(Settings(), now=NOW, dry_run=True).to_dict()
        self.assertEqual(d["state"], "DONE")
        self.assertEqual(d["summary"]["duplicates_found"], 2)
        self.assertEqual(len(d["details"]), 2)
        self.assertNotIn("skipped_reason", d)


class TestIncrementalScan(unittest.TestCase):

    def test_disabled_skips_without_fetch(self):
        directory = MagicMock()
        order = make_order(9, "#9", "+40123", None)
        result = ScanOrchestrator(directory, MagicMock()).run_incremental(
            order, Settings(webhook_enabled=False), now=NOW
        )
        self.assertEqual(result.skipped_reason, "webhooks disabled")
        self.assertEqual(result.state, ScanState.DONE)
        directory.fetch_orders_created_since.assert_not_called()

    def test_fulfilled_order_skipped(self):
        directory = MagicMock()
        order = make_order(9, "#9", "+40123", "fulfilled")
        result = ScanOrchestrator(directory, MagicMock()).run_incremental(order, Settings(), now=NOW)
        self.assertIn("fulfilled", result.skipped_reason)
        directory.fetch_orders_created_since.assert_not_called()

    def test_no_phone_skipped(self):
        directory = MagicMock()
        order = make_order(9, "#9", "", None)
        result = ScanOrchestrator(directory, MagicMock()).run_incremental(order, Settings(), now=NOW)
        self.assertEqual(result.skipped_reason, "no phone number on order #9")
        directory.fetch_orders_created_since.assert_not_called()

    def test_clean_order(self):
        new = make_order(9, "#9", "+40123", None)
        store = InMemoryOrderStore([new, make_order(1, "#1", "+40999", None, days_ago=2)])
        result = ScanOrchestrator(store, store).run_incremental(new, Settings(), now=NOW)
        self.assertEqual(result.groups_found, 0)
        self.assertEqual(store.get("9").tags, [])

    def test_match_outside_window_ignored(self):
        new = make_order(9, "#9", "+40123", None)
        store = InMemoryOrderStore([new, make_order(1, "#1", "+40123", "fulfilled", days_ago=30)])
        result = ScanOrchestrator(store, store).run_incremental(new, Settings(search_days=14), now=NOW)
        self.assertEqual(result.groups_found, 0)

    def test_incremental_matches_batch(self):
        def build_store():
            return InMemoryOrderStore([
                make_order(32, "#3002", "+40777", None, days_ago=0),
                make_order(31, "#3001", "+40777", None, days_ago=2),
            ])

        incremental_store = build_store()
        new_order = incremental_store.get("32")
        incremental = ScanOrchestrator(incremental_store, incremental_store).run_incremental(
            new_order, Settings(), now=NOW
        )

        batch_store = build_store()
        batch = ScanOrchestrator(batch_store, batch_store).run_batch_scan(Settings(), now=NOW)

        self.assertEqual(incremental.remediations[0].order_name, "#3002")
        self.assertEqual(batch.remediations[0].order_name, "#3002")
        self.assertEqual(incremental.remediations[0].sibling_names, batch.remediations[0].sibling_names)
        for order_id in ("31", "32"):
            a = incremental_store.get(order_id)
            b = batch_store.get(order_id)
            self.assertEqual(a.tags, b.tags)
            self.assertEqual(a.is_cancelled, b.is_cancelled)
        self.assertIn("#3001", incremental_store.get("32").note)
        self.assertIn(cfg.TRIGGER_WEBHOOK, incremental_store.get("32").note)

    def test_fetch_failure(self):
        directory = MagicMock()
        directory.fetch_orders_created_since.side_effect = OrderApiError("down")
        orchestrator = ScanOrchestrator(directory, MagicMock())
        with self.assertRaises(SourceUnavailable):
            orchestrator.run_incremental(make_order(9, "#9", "+40123"), Settings(), now=NOW)


class TestManualManagement(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryOrderStore.with_sample_orders(now=NOW)
        self.orchestrator = ScanOrchestrator(self.store, self.store)

    def test_list_canceled_duplicates(self):
        self.orchestrator.run_batch_scan(Settings(), now=NOW)
        self.store.cancel("12347", reason="customer", notify_customer=False, refund=False, note="")

        names = [o.name for o in self.orchestrator.list_canceled_duplicates(Settings())]
        self.assertEqual(names, ["#1001", "#1004"])

    def test_reopen_order(self):
        self.orchestrator.run_batch_scan(Settings(), now=NOW)
        result = self.orchestrator.reopen_order("12345", Settings())
        self.assertTrue(result.success)
        names = [o.name for o in self.orchestrator.list_canceled_duplicates(Settings())]
        self.assertEqual(names, ["#1004"])

    def test_list_failure(self):
        directory = MagicMock()
        directory.fetch_canceled_orders.side_effect = OrderApiError("down")
        with self.assertRaises(SourceUnavailable):
            ScanOrchestrator(directory, MagicMock()).list_canceled_duplicates(Settings())

    def test_store_unknown_order(self):
        with self.assertRaises(OrderApiError) as ctx:
            self.store.fetch_order("nope")
        self.assertEqual(ctx.exception.status_code, 404)


if __name__ == "__main__":
    unittest.main()
