"""
Aggregator Test Suite

Covers the per-location folds (majority, latest vote, highest bid, latest
purchase), the whole-log scans (first purchase per location, first vote per
alias), and the alias/canvas listings.

Run with: pytest tests/test_aggregators.py -v
"""

import pytest

from colourcanvas.aggregators import (
    ScanReport,
    FirstPerAlias,
    FirstPerLocation,
    HighestBid,
    MajorityTally,
    alias_purchases,
    alias_votes,
    find_canvas,
    first_purchase_per_location,
    first_vote_per_alias,
    latest_purchase,
    latest_vote,
    list_canvases,
    purchased_colour,
    sort_hashes,
    voted_colour,
)
from colourcanvas.channel import MemoryChannel, Order
from colourcanvas.model import Colour, Location, Mode, Purchase, Vote
from colourcanvas.records import encode_canvas

RED = Colour(255, 0, 0)
GREEN = Colour(0, 255, 0)
BLUE = Colour(0, 0, 255)
P1 = Location(1, 1, 0)
P2 = Location(2, 2, 0)


class CountingChannel(MemoryChannel):
    """MemoryChannel that records how many entries each scan delivered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.delivered = []

    def iterate(self, callback, order=Order.STORED):
        n = super().iterate(callback, order)
        self.delivered.append(n)
        return n


# =============================================================================
# MAJORITY OF VOTES
# =============================================================================

class TestVotedColour:

    def test_majority_wins(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P1, RED)
        add_vote(votes, "b", P1, BLUE)
        add_vote(votes, "c", P1, BLUE)
        outcome = voted_colour(votes, P1)
        assert outcome.colour == BLUE
        assert outcome.decided
        assert outcome.report.entries == 3

    def test_tie_goes_to_first_to_reach_maximum(self, add_vote):
        votes = MemoryChannel("votes")
        # red reaches 1 first, blue reaches 2 first
        add_vote(votes, "a", P1, RED)
        add_vote(votes, "b", P1, BLUE)
        add_vote(votes, "c", P1, BLUE)
        add_vote(votes, "d", P1, RED)
        assert voted_colour(votes, P1).colour == BLUE

    def test_single_vote_tie_keeps_earliest(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P1, GREEN)
        add_vote(votes, "b", P1, RED)
        assert voted_colour(votes, P1).colour == GREEN

    def test_other_locations_ignored(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P2, RED)
        add_vote(votes, "b", P2, RED)
        add_vote(votes, "c", P1, GREEN)
        assert voted_colour(votes, P1).colour == GREEN

    def test_no_matching_votes_is_undecided(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P2, RED)
        outcome = voted_colour(votes, P1)
        assert outcome.colour is None
        assert not outcome.decided

    def test_empty_log_is_undecided(self):
        assert voted_colour(MemoryChannel("votes"), P1).colour is None

    def test_tally_accumulator_in_isolation(self):
        tally = MajorityTally(P1)
        for colour in (RED, BLUE, BLUE, RED):
            assert tally.feed(Vote("a", P1, colour))
        assert tally.counts == {RED: 2, BLUE: 2}
        assert tally.result() == BLUE


# =============================================================================
# LATEST VOTE
# =============================================================================

class TestLatestVote:

    def test_newest_matching_vote_wins(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P1, RED)
        add_vote(votes, "b", P1, BLUE)
        add_vote(votes, "c", P2, GREEN)
        assert latest_vote(votes, P1).colour == BLUE

    def test_stops_at_first_match(self, add_vote):
        votes = CountingChannel("votes")
        for _ in range(5):
            add_vote(votes, "a", P1, RED)
        add_vote(votes, "b", P2, GREEN)
        add_vote(votes, "c", P1, BLUE)
        outcome = latest_vote(votes, P1)
        assert outcome.colour == BLUE
        assert votes.delivered == [1]
        assert outcome.report.entries == 1

    def test_undecided_iff_no_entry_targets_location(self, add_vote):
        votes = CountingChannel("votes")
        add_vote(votes, "a", P2, RED)
        add_vote(votes, "b", P2, RED)
        assert latest_vote(votes, P1).colour is None
        assert votes.delivered == [2]


# =============================================================================
# HIGHEST BID
# =============================================================================

class TestPurchasedColour:

    def test_first_to_reach_highest_price_wins(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 10)
        add_purchase(purchases, "b", P1, BLUE, 20)
        add_purchase(purchases, "c", P1, GREEN, 20)
        assert purchased_colour(purchases, P1).colour == BLUE

    def test_higher_later_bid_overwrites(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 10)
        add_purchase(purchases, "b", P1, BLUE, 11)
        assert purchased_colour(purchases, P1).colour == BLUE

    def test_zero_price_is_a_bid(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 0)
        add_purchase(purchases, "b", P1, BLUE, 0)
        assert purchased_colour(purchases, P1).colour == RED

    def test_no_matching_purchase_is_undecided(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P2, RED, 100)
        assert purchased_colour(purchases, P1).colour is None

    def test_accumulator_in_isolation(self):
        bid = HighestBid(P1)
        bid.feed(Purchase("a", P1, RED, 5))
        bid.feed(Purchase("b", P2, GREEN, 50))
        bid.feed(Purchase("c", P1, BLUE, 5))
        assert bid.result() == RED
        assert bid.max_price == 5


# =============================================================================
# LATEST PURCHASE
# =============================================================================

class TestLatestPurchase:

    def test_newest_matching_purchase_wins_regardless_of_price(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 100)
        add_purchase(purchases, "b", P1, BLUE, 1)
        assert latest_purchase(purchases, P1).colour == BLUE

    def test_stops_at_first_match(self, add_purchase):
        purchases = CountingChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 1)
        add_purchase(purchases, "b", P1, GREEN, 1)
        add_purchase(purchases, "c", P2, BLUE, 1)
        assert latest_purchase(purchases, P1).colour == GREEN
        assert purchases.delivered == [2]

    def test_empty_log_is_undecided(self):
        assert latest_purchase(MemoryChannel("purchases"), P1).colour is None


# =============================================================================
# DECODE FAILURES
# =============================================================================

class TestDecodeFailures:

    def test_corrupt_entry_does_not_stop_aggregation(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P1, RED)
        bad = votes.append("mallory", b"\x00garbage")
        add_vote(votes, "b", P1, BLUE)
        add_vote(votes, "c", P1, BLUE)
        outcome = voted_colour(votes, P1)
        assert outcome.colour == BLUE
        assert outcome.report.entries == 4
        assert outcome.report.failure_count == 1
        assert outcome.report.failures[0].entry_hash == bad.hash_hex

    def test_corrupt_newest_entry_is_skipped_by_latest_vote(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "a", P1, RED)
        votes.append("mallory", b"{}")
        outcome = latest_vote(votes, P1)
        assert outcome.colour == RED
        assert outcome.report.failure_count == 1

    def test_corrupt_entry_in_whole_log_scan(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 1)
        purchases.append("mallory", b"nope")
        add_purchase(purchases, "b", P2, GREEN, 1)
        assert list(first_purchase_per_location(purchases)) == [(P1, RED), (P2, GREEN)]

    def test_failures_are_logged(self, add_vote, caplog):
        votes = MemoryChannel("votes")
        votes.append("mallory", b"nope")
        with caplog.at_level("WARNING", logger="colourcanvas"):
            voted_colour(votes, P1)
        assert any("skipping undecodable entry" in r.getMessage() for r in caplog.records)


# =============================================================================
# WHOLE-LOG SCANS
# =============================================================================

class TestFirstPurchasePerLocation:

    def test_first_purchase_wins_not_highest(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 5)
        add_purchase(purchases, "b", P1, BLUE, 50)
        add_purchase(purchases, "c", P2, GREEN, 1)
        assert list(first_purchase_per_location(purchases)) == [(P1, RED), (P2, GREEN)]

    def test_is_lazy(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "a", P1, RED, 5)
        add_purchase(purchases, "b", P2, BLUE, 5)
        stream = first_purchase_per_location(purchases)
        assert next(stream) == (P1, RED)
        assert next(stream) == (P2, BLUE)
        with pytest.raises(StopIteration):
            next(stream)

    def test_state_in_isolation(self):
        state = FirstPerLocation()
        assert state.offer(Purchase("a", P1, RED, 1)) == (P1, RED)
        assert state.offer(Purchase("b", P1, BLUE, 9)) is None


class TestFirstVotePerAlias:

    def test_one_vote_per_alias_across_canvas(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "alice", P1, RED)
        add_vote(votes, "alice", P2, BLUE)
        add_vote(votes, "bob", P1, GREEN)
        assert list(first_vote_per_alias(votes)) == [(P1, RED), (P1, GREEN)]

    def test_undecodable_entry_does_not_use_up_the_vote(self, add_vote):
        votes = MemoryChannel("votes")
        votes.append("alice", b"not a vote")
        add_vote(votes, "alice", P2, BLUE)
        add_vote(votes, "alice", P1, RED)
        report = ScanReport(channel=votes.name)
        assert list(first_vote_per_alias(votes, report)) == [(P2, BLUE)]
        assert report.entries == 3
        assert report.failure_count == 1

    def test_state_in_isolation(self):
        state = FirstPerAlias()
        assert state.offer(Vote("alice", P1, RED)) == (P1, RED)
        assert state.offer(Vote("alice", P2, RED)) is None
        assert state.offer(Vote("bob", P2, RED)) == (P2, RED)


# =============================================================================
# LISTINGS
# =============================================================================

class TestListings:

    def test_alias_votes(self, add_vote):
        votes = MemoryChannel("votes")
        add_vote(votes, "alice", P1, RED)
        add_vote(votes, "bob", P1, GREEN)
        add_vote(votes, "alice", P2, BLUE)
        assert alias_votes(votes, "alice") == [Vote("alice", P1, RED), Vote("alice", P2, BLUE)]
        assert alias_votes(votes, "carol") == []

    def test_alias_purchases(self, add_purchase):
        purchases = MemoryChannel("purchases")
        add_purchase(purchases, "alice", P1, RED, 3)
        add_purchase(purchases, "bob", P1, GREEN, 4)
        assert alias_purchases(purchases, "bob") == [Purchase("bob", P1, GREEN, 4)]

    def test_list_and_find_canvases(self):
        canvases = MemoryChannel("canvases")
        first = canvases.append("x", encode_canvas("one", 2, 2, 1, Mode.FREE_FOR_ALL))
        canvases.append("x", b"broken")
        second = canvases.append("x", encode_canvas("two", 3, 3, 3, Mode.QUADRATIC_VOTE))

        assert [c.name for c in list_canvases(canvases)] == ["one", "two"]
        assert find_canvas(canvases, second.record_hash).name == "two"
        assert find_canvas(canvases, first.record_hash).mode is Mode.FREE_FOR_ALL
        assert find_canvas(canvases, b"\x00" * 32) is None

    def test_find_canvas_with_undecodable_payload(self):
        canvases = MemoryChannel("canvases")
        broken = canvases.append("x", b"broken")
        assert find_canvas(canvases, broken.record_hash) is None

    def test_sort_hashes(self):
        a, b, c = b"a", b"b", b"c"
        timestamps = {a: 30, b: 10}
        assert sort_hashes([a, b, c], timestamps) == [c, b, a]
        assert sort_hashes([a, b, c], timestamps, chronologically=False) == [a, b, c]


# =============================================================================
# LARGE LOGS
# =============================================================================

@pytest.mark.slow
class TestLargeLogs:

    def test_majority_over_many_votes(self, add_vote):
        votes = MemoryChannel("votes")
        for i in range(20000):
            add_vote(votes, f"alias-{i}", P1, BLUE if i % 3 else RED)
        outcome = voted_colour(votes, P1)
        assert outcome.colour == BLUE
        assert outcome.report.entries == 20000

    def test_latest_vote_reads_only_the_tail(self, add_vote):
        votes = CountingChannel("votes")
        for i in range(20000):
            add_vote(votes, f"alias-{i}", P2, RED)
        add_vote(votes, "last", P1, GREEN)
        assert latest_vote(votes, P1).colour == GREEN
        assert votes.delivered == [1]
