"""Tests for swarmstudio/usage.py."""

import pytest

from swarmstudio.models import UsageTotals
from swarmstudio.usage import UsageAccumulator


def test_add_is_additive():
    usage = UsageAccumulator()
    usage.add("agent-1", 10, 5)
    usage.add("agent-1", 3, 2)
    assert usage.get("agent-1") == UsageTotals(13, 7)


def test_duplicate_reports_double_count():
    usage = UsageAccumulator()
    usage.add("agent-1", 10, 5)
    usage.add("agent-1", 10, 5)
    assert usage.get("agent-1") == UsageTotals(20, 10)


def test_identities_tracked_separately():
    usage = UsageAccumulator()
    usage.add("agent-1", 10, 5)
    usage.add("agent-2", 1, 1)
    assert usage.read() == {"agent-1": UsageTotals(10, 5), "agent-2": UsageTotals(1, 1)}


def test_get_unknown_identity_is_zero():
    assert UsageAccumulator().get("nobody") == UsageTotals(0, 0)


def test_negative_counts_rejected():
    usage = UsageAccumulator()
    with pytest.raises(ValueError, match="non-negative"):
        usage.add("agent-1", -1, 0)
    assert usage.read() == {}


def test_reset_zeroes_only_named_identities():
    usage = UsageAccumulator()
    usage.add("agent-1", 10, 5)
    usage.add("__referee__", 7, 7)
    usage.reset(["__referee__", "agent-2"])
    assert usage.read() == {
        "agent-1": UsageTotals(10, 5),
        "__referee__": UsageTotals(0, 0),
        "agent-2": UsageTotals(0, 0),
    }


def test_read_returns_snapshot():
    usage = UsageAccumulator()
    usage.add("agent-1", 1, 1)
    snapshot = usage.read()
    usage.add("agent-1", 1, 1)
    assert snapshot["agent-1"] == UsageTotals(1, 1)


def test_clear():
    usage = UsageAccumulator()
    usage.add("agent-1", 1, 1)
    usage.clear()
    assert usage.read() == {}
