"""
Test suite for settlement verification.

A recipient is settled when its balance delta matches the expected
amount at 10^15 granularity within the re-check budget.
"""

import pytest

from disburser.core.batch import SettlementStatus, split_into_batches
from disburser.core.units import SETTLEMENT_PRECISION, UNIT, parse_amount
from disburser.engine.retry import RetryPolicy
from disburser.engine.snapshot import BalanceSnapshotter
from disburser.engine.verifier import SettlementVerifier, amounts_match
from disburser.tx.sequencer import TransferSequencer

from conftest import generate_test_address, make_entries, make_entry


@pytest.fixture
def verifier(mock_client, sleeper) -> SettlementVerifier:
    return SettlementVerifier(
        mock_client,
        query_policy=RetryPolicy(2, 0.2, sleeper),
        settlement_policy=RetryPolicy(3, 3.0, sleeper),
        settlement_delay_seconds=10.0,
        sleep=sleeper,
    )


def submit(mock_client, signer, entries, sleeper):
    """Snapshot, then send every entry; returns (batch, snapshot)."""
    batch = split_into_batches(entries)[0]
    snapshot = BalanceSnapshotter(mock_client, RetryPolicy(2, 0.2, sleeper)).capture(batch.entries)
    TransferSequencer(mock_client).submit_all(batch, signer)
    return batch, snapshot


# ============================================================================
# Test Amount Comparison
# ============================================================================

class TestAmountsMatch:
    """Tests for the coarse comparison."""

    def test_exact(self):
        assert amounts_match(UNIT, UNIT) is True

    def test_noise_below_precision_is_ignored(self):
        assert amounts_match(parse_amount("1.0005"), parse_amount("1.0009")) is True

    def test_shortfall_is_detected(self):
        assert amounts_match(UNIT, UNIT - SETTLEMENT_PRECISION) is False

    def test_floor_boundary(self):
        """Both sides are floored before comparing."""
        assert amounts_match(SETTLEMENT_PRECISION - 1, 0) is True
        assert amounts_match(SETTLEMENT_PRECISION, SETTLEMENT_PRECISION - 1) is False

    def test_negative_delta(self):
        assert amounts_match(UNIT, -UNIT) is False


# ============================================================================
# Test Settlement Verifier
# ============================================================================

class TestSettlementVerifier:
    """Tests for post-transfer reconciliation."""

    def test_all_settled_first_check(self, verifier, mock_client, test_signer, sleeper):
        entries = make_entries(3, "2")
        for e in entries:
            mock_client.balances[e.recipient] = 5 * UNIT
        batch, snapshot = submit(mock_client, test_signer, entries, sleeper)

        outcomes = verifier.verify(batch, snapshot)

        assert [o.status for o in outcomes] == [SettlementStatus.SETTLED] * 3
        assert all(o.attempts == 1 for o in outcomes)
        assert outcomes[0].pre_balance == 5 * UNIT
        assert outcomes[0].final_balance == 7 * UNIT
        assert outcomes[0].observed_delta == 2 * UNIT
        assert sleeper.calls == [10.0]

    def test_settles_on_recheck(self, verifier, mock_client, test_signer, sleeper):
        mock_client.settle_after_reads = 2
        batch, snapshot = submit(mock_client, test_signer, make_entries(1), sleeper)

        outcomes = verifier.verify(batch, snapshot)

        assert outcomes[0].status == SettlementStatus.SETTLED
        assert outcomes[0].attempts == 2
        assert sleeper.calls == [10.0, 3.0]

    def test_settles_on_last_check(self, verifier, mock_client, test_signer, sleeper):
        mock_client.settle_after_reads = 3
        batch, snapshot = submit(mock_client, test_signer, make_entries(1), sleeper)

        outcomes = verifier.verify(batch, snapshot)

        assert outcomes[0].is_settled
        assert outcomes[0].attempts == 3

    def test_fails_after_budget(self, verifier, mock_client, test_signer, sleeper):
        entries = make_entries(2)
        mock_client.drop_transfers_to = {entries[0].recipient}
        batch, snapshot = submit(mock_client, test_signer, entries, sleeper)

        outcomes = verifier.verify(batch, snapshot)

        failed, settled = outcomes
        assert failed.status == SettlementStatus.FAILED
        assert failed.attempts == 3
        assert failed.observed_delta == 0
        assert failed.expected_amount == UNIT
        assert settled.status == SettlementStatus.SETTLED
        assert sleeper.calls == [10.0, 3.0, 3.0]

    def test_duplicates_are_aggregated(self, verifier, mock_client, test_signer, sleeper):
        """[(A,3),(A,2)]: one outcome for A expecting 5."""
        batch, snapshot = submit(
            mock_client, test_signer, [make_entry(0, "3"), make_entry(0, "2")], sleeper,
        )

        outcomes = verifier.verify(batch, snapshot)

        assert len(outcomes) == 1
        assert outcomes[0].recipient == generate_test_address(0)
        assert outcomes[0].expected_amount == 5 * UNIT
        assert outcomes[0].is_settled

    def test_partial_duplicate_delivery_fails(self, verifier, mock_client, test_signer, sleeper):
        batch, snapshot = submit(
            mock_client, test_signer, [make_entry(0, "3"), make_entry(0, "2")], sleeper,
        )
        # Second transfer reverted on-chain
        mock_client.balances[generate_test_address(0)] -= 2 * UNIT

        outcomes = verifier.verify(batch, snapshot)

        assert outcomes[0].status == SettlementStatus.FAILED
        assert outcomes[0].observed_delta == 3 * UNIT

    def test_balance_read_is_retried(self, verifier, mock_client, test_signer, sleeper):
        entries = make_entries(1)
        batch, snapshot = submit(mock_client, test_signer, entries, sleeper)
        mock_client.fail_balance_queries[entries[0].recipient] = 1

        outcomes = verifier.verify(batch, snapshot)

        assert outcomes[0].is_settled
        assert sleeper.calls == [10.0, 0.2]

    def test_outcome_to_dict(self, verifier, mock_client, test_signer, sleeper):
        batch, snapshot = submit(mock_client, test_signer, [make_entry(0, "1.5")], sleeper)

        data = verifier.verify(batch, snapshot)[0].to_dict()

        assert data["status"] == "settled"
        assert data["expected"] == "1.5"
        assert data["delta"] == "1.5"
        assert data["old_balance"] == "0"
        assert data["new_balance"] == "1.5"
