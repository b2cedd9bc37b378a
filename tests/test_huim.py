import itertools
import logging
import math
import random

from huim import (
    ResultRecord,
    ULElement,
    UtilityList,
    build_utility_lists,
    format_result,
    join,
    level_threshold,
    mine_basic,
    mine_generalized,
    node_levels,
    promising_items,
    transaction_utilities,
    transaction_weighted_utilities,
)
from model import Item, Taxonomy, Transaction, TransactionItem


def as_set(records):
    return {(frozenset(r.items), r.utility, r.level, r.threshold) for r in records}


def brute_force_utility(transactions, itemset, taxonomy=None):
    # Utility of an itemset whose members may be generalized nodes.
    leaves = {ti.name for t in transactions for ti in t.items}
    total = 0
    for t in transactions:
        utilities = t.utilities()
        per_node = []
        for node in itemset:
            members = taxonomy.get_descendants(node, leaves) if taxonomy else {node}
            per_node.append(sum(utilities.get(m, 0) for m in members))
        if all(u > 0 for u in per_node):
            total += sum(per_node)
    return total


def test_transaction_utilities(transactions):
    assert transaction_utilities(transactions) == {1: 22, 2: 17, 3: 4, 4: 7}


def test_twu_of_leaves(transactions):
    twu = transaction_weighted_utilities(transactions)
    assert twu == {"Water": 21, "Coke": 29, "Bread": 33, "Pasta": 17, "Steak": 39}


def test_twu_of_generalized_nodes(transactions, taxonomy):
    twu = transaction_weighted_utilities(transactions, taxonomy)
    assert twu["Beverage"] == 50
    assert twu["Food"] == 50
    assert twu["Steak"] == 39


def test_node_levels(transactions, taxonomy):
    levels = node_levels(transactions, taxonomy)
    assert levels["Coke"] == 0
    assert levels["Food"] == 1
    assert levels["Beverage"] == 1
    assert node_levels(transactions) == {
        name: 0 for name in ("Water", "Coke", "Bread", "Pasta", "Steak")
    }


def test_level_threshold():
    assert level_threshold(20, 0) == 20
    assert level_threshold(20, 1) == 30
    assert level_threshold(20, 2) == 40
    assert level_threshold(10, 1, alpha_step=0.1) == 11
    assert level_threshold(7, 1) == 11
    # Negative steps are clamped to zero.
    assert level_threshold(20, 3, alpha_step=-1) == 20


def test_threshold_is_monotone_in_level():
    for alpha_step in (0, 0.1, 0.5, 1.3):
        for min_util in (0, 1, 7, 20, 99):
            thresholds = [level_threshold(min_util, lv, alpha_step) for lv in range(6)]
            assert thresholds == sorted(thresholds)


def test_promising_items_order(transactions):
    twu = transaction_weighted_utilities(transactions)
    levels = node_levels(transactions)
    assert promising_items(twu, levels, 20) == {0: ["Water", "Coke", "Bread", "Steak"]}


def test_utility_lists(transactions):
    order = ["Water", "Coke", "Bread", "Steak"]
    lists = build_utility_lists(transactions, {0: order})[0]
    assert lists["Coke"].elements == [ULElement(1, 10, 12), ULElement(4, 5, 2)]
    assert lists["Steak"].elements == [ULElement(1, 10, 0), ULElement(2, 10, 0)]
    assert lists["Water"].elements == [ULElement(2, 3, 10), ULElement(3, 2, 2)]
    assert lists["Water"].sum_iutil() + lists["Water"].sum_rutil() == 17


def test_utility_lists_are_ordered_by_tid(transactions):
    order = ["Water", "Coke", "Bread", "Steak"]
    lists = build_utility_lists(list(reversed(transactions)), {0: order})[0]
    for utility_list in lists.values():
        tids = utility_list.tids()
        assert tids == sorted(tids)
        assert len(set(tids)) == len(tids)


def test_join_keeps_common_tids():
    a = UtilityList("A")
    for element in (ULElement(1, 5, 9), ULElement(3, 2, 4), ULElement(4, 1, 1)):
        a.add_element(element)
    b = UtilityList("B")
    for element in (ULElement(2, 7, 0), ULElement(3, 4, 1), ULElement(4, 1, 0)):
        b.add_element(element)
    joined = join(a, b)
    assert joined.item == "B"
    assert joined.elements == [ULElement(3, 6, 1), ULElement(4, 2, 0)]


def test_join_without_common_tids_is_empty():
    a = UtilityList("A")
    a.add_element(ULElement(1, 5, 0))
    b = UtilityList("B")
    b.add_element(ULElement(2, 5, 0))
    assert join(a, b).elements == []


def test_mine_basic_sample(transactions):
    results = mine_basic(transactions, 20)
    assert results == [
        ResultRecord(("Coke", "Bread", "Steak"), 22, 0, 20),
        ResultRecord(("Coke", "Steak"), 20, 0, 20),
        ResultRecord(("Steak",), 20, 0, 20),
    ]


def test_mine_basic_ignores_taxonomy(transactions, taxonomy):
    assert mine_basic(transactions, 20, taxonomy) == mine_basic(transactions, 20)


def test_mine_generalized_sample(transactions, taxonomy):
    results = mine_generalized(transactions, taxonomy, 20)
    level_one = [r for r in results if r.level == 1]
    assert as_set(level_one) == {
        (frozenset({"Food", "Beverage"}), 50, 1, 30),
        (frozenset({"Food"}), 30, 1, 30),
    }
    level_zero = [r for r in results if r.level == 0]
    assert as_set(level_zero) == as_set(mine_basic(transactions, 20))


def test_generalized_results_sorted(transactions, taxonomy):
    results = mine_generalized(transactions, taxonomy, 10)
    keys = [(r.level, -r.utility) for r in results]
    assert keys == sorted(keys)


def test_generalized_never_mixes_levels(transactions, taxonomy):
    levels = node_levels(transactions, taxonomy)
    for min_util in (0, 5, 10, 20):
        for record in mine_generalized(transactions, taxonomy, min_util, 0.2):
            assert {levels[item] for item in record.items} == {record.level}


def test_alpha_step_changes_level_threshold(transactions, taxonomy):
    results = mine_generalized(transactions, taxonomy, 20, alpha_step=2.0)
    # threshold(1) = 60, nothing at level 1 reaches it.
    assert all(r.level == 0 for r in results)
    clamped = mine_generalized(transactions, taxonomy, 20, alpha_step=-3)
    assert {r.threshold for r in clamped} == {20}


def test_empty_input():
    assert mine_basic([], 10) == []
    assert mine_basic(None, 10) == []
    assert mine_generalized([], Taxonomy(), 10) == []
    assert mine_generalized(None, Taxonomy(), 10) == []


def test_missing_profit_contributes_nothing():
    free = Item("Free", 0)
    coke = Item("Coke", 5)
    db = [Transaction(1, [TransactionItem(free, 10), TransactionItem(coke, 1)])]
    assert as_set(mine_basic(db, 5)) == {(frozenset({"Coke"}), 5, 0, 5)}


def test_generalized_without_taxonomy_is_level_zero(transactions):
    assert as_set(mine_generalized(transactions, None, 20)) == as_set(
        mine_basic(transactions, 20)
    )


def test_deterministic(transactions, taxonomy):
    first = mine_generalized(transactions, taxonomy, 15)
    shuffled = list(transactions)
    random.Random(7).shuffle(shuffled)
    second = mine_generalized(shuffled, taxonomy, 15)
    assert first == second


def random_database(rng, names, size):
    items = {name: Item(name, rng.randint(0, 6)) for name in names}
    db = []
    for tid in range(1, size + 1):
        chosen = rng.sample(names, rng.randint(1, len(names)))
        db.append(
            Transaction(tid, [TransactionItem(items[n], rng.randint(1, 4)) for n in chosen])
        )
    return db


def test_basic_matches_brute_force():
    rng = random.Random(42)
    names = ["a", "b", "c", "d", "e", "f"]
    for _ in range(20):
        db = random_database(rng, names, 8)
        min_util = rng.randint(5, 60)
        expected = set()
        for size in range(1, len(names) + 1):
            for itemset in itertools.combinations(names, size):
                utility = brute_force_utility(db, itemset)
                if utility >= min_util:
                    expected.add((frozenset(itemset), utility, 0, min_util))
        assert as_set(mine_basic(db, min_util)) == expected


def test_generalized_matches_brute_force():
    rng = random.Random(3)
    names = ["a", "b", "c", "d", "e", "f"]
    taxonomy = Taxonomy.from_relations(
        [("a", "X"), ("b", "X"), ("c", "Y"), ("d", "Y"), ("e", "Z"), ("X", "R")]
    )
    for _ in range(20):
        db = random_database(rng, names, 8)
        min_util = rng.randint(5, 40)
        levels = node_levels(db, taxonomy)
        expected = set()
        for level in set(levels.values()):
            nodes = sorted(n for n, lv in levels.items() if lv == level)
            threshold = level_threshold(min_util, level)
            for size in range(1, len(nodes) + 1):
                for itemset in itertools.combinations(nodes, size):
                    utility = brute_force_utility(db, itemset, taxonomy)
                    if utility >= threshold:
                        expected.add((frozenset(itemset), utility, level, threshold))
        assert as_set(mine_generalized(db, taxonomy, min_util)) == expected


def test_format_result():
    record = ResultRecord(("Food", "Beverage"), 50, 1, 30)
    assert format_result(record) == "{Food, Beverage} -> Utility = 50 (level=1, thr=30)"
    assert format_result(record, with_threshold=False) == (
        "{Food, Beverage} -> Utility = 50 (level=1)"
    )


def test_non_finite_alpha_step_does_not_raise(transactions, taxonomy):
    basic = as_set(mine_basic(transactions, 20))
    # An infinite step puts every generalized level out of reach.
    assert as_set(mine_generalized(transactions, taxonomy, 20, float("inf"))) == basic
    assert level_threshold(20, 1, float("inf")) == math.inf
    assert level_threshold(0, 1, float("inf")) == 0
    # NaN behaves like a step of 0.
    nan_results = mine_generalized(transactions, taxonomy, 20, float("nan"))
    assert nan_results == mine_generalized(transactions, taxonomy, 20, 0)
    assert {r.threshold for r in nan_results} == {20}


def test_threshold_is_exact_for_large_min_util():
    big = 10**17
    assert level_threshold(big + 1, 0) == big + 1
    assert level_threshold(big + 1, 1) == 3 * (big + 1) // 2 + 1
    db = [Transaction(1, [TransactionItem(Item("A", 1), big)])]
    taxonomy = Taxonomy.from_relations([("A", "Top")])
    assert mine_generalized(db, taxonomy, big + 1) == []
    assert mine_basic(db, big + 1) == []
    assert mine_basic(db, big) == [ResultRecord(("A",), big, 0, big)]


def test_fractional_min_util_gives_integer_threshold(transactions):
    results = mine_basic(transactions, 19.5)
    assert {r.threshold for r in results} == {20}
    assert all(isinstance(r.threshold, int) for r in results)
    assert as_set(results) == as_set(mine_basic(transactions, 20))


def test_pruned_branches_are_logged(transactions, caplog):
    caplog.set_level(logging.DEBUG, logger="huim")
    mine_basic(transactions, 20)
    # The {Water} and {Bread} branches are cut by their remaining utility.
    assert "level 0: 2 branches pruned" in caplog.text
