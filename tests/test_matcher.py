"""
Tests for the trade-match engine.

Pure ranking/intersection tests first, then the engine against the SQLite
store with both candidate strategies.
"""

import random

import pytest

from poketrade.core.errors import NotFoundError, StoreUnavailable
from poketrade.models.card_list import TradeListEntry, WishlistEntry
from poketrade.services.trading import (
    MatchCandidate,
    MatchEngine,
    MatchStrategy,
    UserCardList,
    build_candidate,
    rank_candidates,
)
from poketrade.services.trading.matcher import sanitize_lists


def _lists(user_id, wishlist=(), trade_list=()):
    return UserCardList(user_id, frozenset(wishlist), frozenset(trade_list))


# === Pure intersection / ranking ===

def test_example_pair_matches():
    """Expected: A and B match with one card each way, score 2."""
    a = _lists("A", wishlist={"A1-5", "A1-9"}, trade_list={"A1-2"})
    b = _lists("B", wishlist={"A1-2"}, trade_list={"A1-5"})

    candidate = build_candidate(a, b)

    assert candidate is not None
    assert candidate.partner_id == "B"
    assert candidate.wants_from_partner == ("A1-5",)
    assert candidate.wants_from_self == ("A1-2",)
    assert candidate.score == 2


def test_one_directional_want_is_not_a_match():
    a = _lists("A", wishlist={"A1-5"}, trade_list={"A1-2"})
    only_offers = _lists("B", wishlist={"A1-7"}, trade_list={"A1-5"})
    only_wants = _lists("C", wishlist={"A1-2"}, trade_list={"A1-8"})

    assert build_candidate(a, only_offers) is None
    assert build_candidate(a, only_wants) is None


def test_self_is_never_a_candidate():
    a = _lists("A", wishlist={"A1-5"}, trade_list={"A1-2"})
    assert build_candidate(a, a) is None


def test_score_formula():
    a = _lists("A", wishlist={"A1-1", "A1-2", "A1-3", "A1-4"}, trade_list={"A1-10", "A1-11"})
    b = _lists("B", wishlist={"A1-10", "A1-11", "A1-12"}, trade_list={"A1-2", "A1-3", "A1-9"})

    candidate = build_candidate(a, b)

    expected = len(a.wishlist & b.trade_list) + len(a.trade_list & b.wishlist)
    assert candidate.score == expected == 4


def test_card_ids_sorted_by_set_then_number():
    a = _lists("A", wishlist={"A1-10", "A1-9", "A1-100"}, trade_list={"A1-2"})
    b = _lists("B", wishlist={"A1-2"}, trade_list={"A1-10", "A1-9", "A1-100"})

    assert build_candidate(a, b).wants_from_partner == ("A1-9", "A1-10", "A1-100")


def test_rank_by_score_then_partner_id():
    candidates = [
        MatchCandidate("A", "zed", ("A1-1",), ("A1-2",)),
        MatchCandidate("A", "amy", ("A1-1",), ("A1-2",)),
        MatchCandidate("A", "bob", ("A1-1", "A1-3"), ("A1-2",)),
    ]

    ranked = rank_candidates(candidates)

    assert [c.partner_id for c in ranked] == ["bob", "amy", "zed"]


def test_rank_accepts_custom_key():
    candidates = [
        MatchCandidate("A", "amy", ("A1-1",), ("A1-2",)),
        MatchCandidate("A", "bob", ("A1-1", "A1-3"), ("A1-2",)),
    ]
    ranked = rank_candidates(candidates, rank_key=lambda c: c.partner_id)
    assert [c.partner_id for c in ranked] == ["amy", "bob"]


def test_symmetry_over_random_population():
    """Property: A matches B iff B matches A, with the card sets swapped."""
    rng = random.Random(20241030)
    pool = [f"A1-{n}" for n in range(1, 31)]
    users = []
    for i in range(40):
        cards = rng.sample(pool, rng.randint(0, 12))
        split = rng.randint(0, len(cards))
        users.append(_lists(f"u{i:02d}", wishlist=cards[:split], trade_list=cards[split:]))

    matched_pairs = 0
    for a in users:
        for b in users:
            ab = build_candidate(a, b)
            ba = build_candidate(b, a)
            assert (ab is None) == (ba is None)
            if ab is not None:
                matched_pairs += 1
                assert ab.wants_from_partner == ba.wants_from_self
                assert ab.wants_from_self == ba.wants_from_partner
                assert ab.score == ba.score
                assert ab.wants_from_partner and ab.wants_from_self

    assert matched_pairs > 0


def test_sanitize_drops_unknown_and_ineligible(snapshot):
    lists = _lists(
        "A",
        wishlist={"A1-5", "Z9-1", "garbage"},
        trade_list={"A1-2", "A1-61"},
    )

    cleaned, warnings = sanitize_lists(lists, snapshot)

    assert cleaned.wishlist == {"A1-5"}
    assert cleaned.trade_list == {"A1-2"}
    assert len(warnings) == 2


def test_sanitize_without_catalog_only_drops_malformed():
    cleaned, warnings = sanitize_lists(_lists("A", wishlist={"Z9-1", "bad"}))
    assert cleaned.wishlist == {"Z9-1"}
    assert len(warnings) == 1


# === Engine against the store ===

STRATEGIES = [MatchStrategy.INDEX, MatchStrategy.SCAN]


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", STRATEGIES)
async def test_engine_example_pair(store, snapshot, make_user, strategy):
    await make_user("alice", wishlist=["A1-5", "A1-9"], trade_list=["A1-2"])
    await make_user("bob", wishlist=["A1-2"], trade_list=["A1-5"])
    await make_user("carol", wishlist=["A1-2"], trade_list=["A1-30"])

    engine = MatchEngine(store, catalog=snapshot, strategy=strategy)
    result = await engine.find_matches("alice")

    assert result.total == 1
    assert not result.degraded
    match = result.items[0]
    assert match.partner_id == "bob"
    assert match.wants_from_partner == ("A1-5",)
    assert match.wants_from_self == ("A1-2",)
    assert match.score == 2


@pytest.mark.asyncio
async def test_engine_unknown_user(store, snapshot):
    engine = MatchEngine(store, catalog=snapshot)
    with pytest.raises(NotFoundError):
        await engine.find_matches("nobody")


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", STRATEGIES)
async def test_engine_user_without_lists_has_no_matches(store, snapshot, make_user, strategy):
    await make_user("empty")
    await make_user("bob", wishlist=["A1-2"], trade_list=["A1-5"])

    result = await MatchEngine(store, catalog=snapshot, strategy=strategy).find_matches("empty")

    assert result.items == []
    assert result.total == 0


@pytest.mark.asyncio
async def test_engine_is_symmetric_and_strategies_agree(store, snapshot, make_user):
    rng = random.Random(7)
    pool = [f"A1-{n}" for n in range(1, 21)]
    user_ids = [f"u{i:02d}" for i in range(12)]
    for user_id in user_ids:
        cards = rng.sample(pool, 8)
        await make_user(user_id, wishlist=cards[:4], trade_list=cards[4:])

    index_engine = MatchEngine(store, catalog=snapshot, strategy=MatchStrategy.INDEX)
    scan_engine = MatchEngine(store, catalog=snapshot, strategy=MatchStrategy.SCAN, scan_batch_size=5)

    partners = {}
    for user_id in user_ids:
        by_index = await index_engine.find_matches(user_id)
        by_scan = await scan_engine.find_matches(user_id)
        assert by_index.items == by_scan.items
        assert by_index.warnings == by_scan.warnings
        assert by_index.degraded == by_scan.degraded
        partners[user_id] = {c.partner_id for c in by_index.items}

    for a in user_ids:
        for b in partners[a]:
            assert a in partners[b]


@pytest.mark.asyncio
async def test_engine_is_idempotent(store, snapshot, make_user):
    await make_user("alice", wishlist=["A1-5", "A1-9"], trade_list=["A1-2", "A1-3"])
    await make_user("bob", wishlist=["A1-2"], trade_list=["A1-5"])
    await make_user("carl", wishlist=["A1-3", "A1-2"], trade_list=["A1-9", "A1-5"])

    engine = MatchEngine(store, catalog=snapshot)
    first = await engine.find_matches("alice")
    second = await engine.find_matches("alice")

    assert first.items == second.items
    assert [c.partner_id for c in first.items] == ["carl", "bob"]


@pytest.mark.asyncio
async def test_engine_does_not_mutate_lists(store, snapshot, make_user):
    await make_user("alice", wishlist=["A1-5"], trade_list=["A1-2"])
    await make_user("bob", wishlist=["A1-2"], trade_list=["A1-5"])
    before = await store.load_user_lists("bob")

    await MatchEngine(store, catalog=snapshot).find_matches("alice")

    assert await store.load_user_lists("bob") == before


@pytest.mark.slow
@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", STRATEGIES)
async def test_engine_pagination_matches_full_ranking(store, snapshot, make_user, strategy):
    """Expected: page 2 (size 10) equals items 11-20 of the full result."""
    await make_user("req", wishlist=[f"A1-{n}" for n in range(1, 6)], trade_list=["A1-20"])
    for i in range(50):
        offered = [f"A1-{n}" for n in range(1, 2 + i % 5)]
        await make_user(f"p{i:02d}", wishlist=["A1-20"], trade_list=offered)

    engine = MatchEngine(store, catalog=snapshot, strategy=strategy, scan_batch_size=7)
    full = await engine.find_matches("req")
    page_two = await engine.find_matches("req", offset=10, limit=10)

    assert full.total == 50
    assert page_two.total == 50
    assert page_two.items == full.items[10:20]
    assert page_two.next_offset == 20
    assert full.next_offset is None

    expected = sorted(full.items, key=lambda c: (-c.score, c.partner_id))
    assert full.items == expected
    assert full.items[0].score == 6
    assert full.items[0].partner_id == "p04"


@pytest.mark.asyncio
async def test_engine_rejects_bad_page_arguments(store, snapshot, make_user):
    await make_user("alice")
    engine = MatchEngine(store, catalog=snapshot)
    with pytest.raises(ValueError):
        await engine.find_matches("alice", offset=-1)
    with pytest.raises(ValueError):
        await engine.find_matches("alice", limit=0)


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", STRATEGIES)
async def test_engine_drops_legacy_ineligible_trade_rows(store, snapshot, make_user, test_db, strategy):
    """Edge: a UR card already stored on a trade list is ignored and flagged."""
    await make_user("alice", wishlist=["A1-61"], trade_list=["A1-2"])
    await make_user("mallory", wishlist=["A1-2"])
    test_db.add(TradeListEntry(user_id="mallory", card_identifier="A1-61"))
    await test_db.commit()

    result = await MatchEngine(store, catalog=snapshot, strategy=strategy).find_matches("alice")

    assert result.total == 0
    assert result.degraded
    assert result.warnings == ["Ignored 1 ineligible card(s) on other users' lists"]
    assert not any("mallory" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_strategies_ignore_unrelated_bad_rows(store, snapshot, make_user, test_db):
    """A legacy row of a user who shares no cards with the requester is never reported."""
    await make_user("alice", wishlist=["A1-5"], trade_list=["A1-2"])
    await make_user("bob", wishlist=["A1-2"], trade_list=["A1-5"])
    await make_user("zoe", wishlist=["A1-40"], trade_list=["A1-41"])
    test_db.add(WishlistEntry(user_id="zoe", card_identifier="Z9-1"))
    test_db.add(TradeListEntry(user_id="zoe", card_identifier="A1-61"))
    await test_db.commit()

    by_index = await MatchEngine(store, catalog=snapshot, strategy=MatchStrategy.INDEX).find_matches("alice")
    by_scan = await MatchEngine(store, catalog=snapshot, strategy=MatchStrategy.SCAN).find_matches("alice")

    for result in (by_index, by_scan):
        assert [c.partner_id for c in result.items] == ["bob"]
        assert not result.degraded
        assert result.warnings == []


@pytest.mark.asyncio
async def test_requester_warnings_name_only_own_cards(store, snapshot, make_user, test_db):
    await make_user("alice", wishlist=["A1-5"], trade_list=["A1-2"])
    await make_user("bob", wishlist=["A1-2"], trade_list=["A1-5"])
    test_db.add(WishlistEntry(user_id="alice", card_identifier="Z9-1"))
    await test_db.commit()

    result = await MatchEngine(store, catalog=snapshot).find_matches("alice")

    assert result.total == 1
    assert result.degraded
    assert result.warnings == ["Ignored 1 unknown card id(s): Z9-1"]


class _DownStore:
    async def load_user_lists(self, user_id):
        raise StoreUnavailable("User list store is unavailable")


@pytest.mark.asyncio
async def test_engine_propagates_store_unavailable():
    with pytest.raises(StoreUnavailable):
        await MatchEngine(_DownStore()).find_matches("alice")
