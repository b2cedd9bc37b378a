from collections import Counter, defaultdict, namedtuple
from fractions import Fraction
import logging
import math

logger = logging.getLogger(__name__)

DEFAULT_ALPHA_STEP = 0.5

ResultRecord = namedtuple("ResultRecord", ["items", "utility", "level", "threshold"])
ULElement = namedtuple("ULElement", ["tid", "iutil", "rutil"])


class UtilityList:
    def __init__(self, item):
        self.item = item
        self.elements = []

    def add_element(self, element):
        self.elements.append(element)

    def sum_iutil(self):
        return sum(element.iutil for element in self.elements)

    def sum_rutil(self):
        return sum(element.rutil for element in self.elements)

    def tids(self):
        return [element.tid for element in self.elements]


def leaf_items(transactions):
    return {ti.name for transaction in transactions or () for ti in transaction.items}


def transaction_utilities(transactions):
    return {transaction.tid: transaction.utility for transaction in transactions or ()}


def node_levels(transactions, taxonomy=None):
    leaves = leaf_items(transactions)
    if taxonomy is None:
        return {leaf: 0 for leaf in leaves}
    nodes = set(leaves)
    for leaf in leaves:
        nodes.update(taxonomy.get_ancestors(leaf))
    levels = {}
    for node in nodes:
        level = taxonomy.get_level(node, leaves)
        if level is not None:
            levels[node] = level
    return levels


def transaction_weighted_utilities(transactions, taxonomy=None):
    twu = defaultdict(int)
    for transaction in transactions or ():
        tu = transaction.utility
        present = set()
        for ti in transaction.items:
            present.add(ti.name)
            if taxonomy is not None:
                present.update(taxonomy.get_ancestors(ti.name))
        for node in present:
            twu[node] += tu
    return dict(twu)


def level_threshold(min_util, level, alpha_step=DEFAULT_ALPHA_STEP):
    """ceil((1 + alpha_step * level) * min_util), on exact decimals.

    A NaN or negative step counts as 0. An infinite step puts every level
    above 0 out of reach unless min_util is 0.
    """
    if isinstance(min_util, float) and not math.isfinite(min_util):
        return math.inf if min_util > 0 else 0
    base = math.ceil(Fraction(str(min_util)))
    if level == 0 or not alpha_step > 0:
        return base
    if math.isinf(alpha_step):
        return math.inf if min_util > 0 else base
    alpha = 1 + Fraction(str(alpha_step)) * level
    return math.ceil(alpha * Fraction(str(min_util)))


def promising_items(twu, levels, min_util, alpha_step=DEFAULT_ALPHA_STEP):
    """Group nodes passing their level's TWU threshold, ordered by ascending TWU."""
    by_level = defaultdict(list)
    for node, level in levels.items():
        if twu.get(node, 0) >= level_threshold(min_util, level, alpha_step):
            by_level[level].append(node)
    for nodes in by_level.values():
        nodes.sort(key=lambda node: (twu.get(node, 0), str(node)))
    return dict(by_level)


def node_utilities(transaction, taxonomy=None):
    utilities = transaction.utilities()
    if taxonomy is None:
        return utilities
    out = dict(utilities)
    for leaf, utility in utilities.items():
        for ancestor in taxonomy.get_ancestors(leaf):
            out[ancestor] = out.get(ancestor, 0) + utility
    return out


def build_utility_lists(transactions, order_by_level, taxonomy=None):
    lists = {
        level: {node: UtilityList(node) for node in order}
        for level, order in order_by_level.items()
    }
    for transaction in sorted(transactions or (), key=lambda t: t.tid):
        utilities = node_utilities(transaction, taxonomy)
        for level, order in order_by_level.items():
            # Walk backwards so rutil covers every later-ordered node.
            suffix = 0
            for node in reversed(order):
                utility = utilities.get(node, 0)
                if utility > 0:
                    lists[level][node].add_element(
                        ULElement(transaction.tid, utility, suffix)
                    )
                    suffix += utility
    return lists


def join(prefix, extension):
    joined = UtilityList(extension.item)
    i = j = 0
    while i < len(prefix.elements) and j < len(extension.elements):
        p = prefix.elements[i]
        x = extension.elements[j]
        if p.tid == x.tid:
            joined.add_element(ULElement(p.tid, p.iutil + x.iutil, x.rutil))
            i += 1
            j += 1
        elif p.tid < x.tid:
            i += 1
        else:
            j += 1
    return joined


def search(prefix_items, prefix_list, extensions, level, threshold, results, stats=None):
    for index, extension in enumerate(extensions):
        items = prefix_items + (extension.item,)
        joined = extension if prefix_list is None else join(prefix_list, extension)
        if not joined.elements:
            continue

        sum_iutil = joined.sum_iutil()
        if sum_iutil >= threshold:
            results.append(ResultRecord(items, sum_iutil, level, threshold))

        if sum_iutil + joined.sum_rutil() < threshold:
            if stats is not None:
                stats["pruned"] += 1
            continue
        search(items, joined, extensions[index + 1 :], level, threshold, results, stats)
    return results


def mine_level(order, lists, level, threshold):
    start = [lists[node] for node in order if lists[node].elements]
    stats = Counter()
    results = search((), None, start, level, threshold, [], stats)
    logger.debug("level %d: %d branches pruned", level, stats["pruned"])
    return results


def sort_results(records):
    return sorted(records, key=lambda record: (record.level, -record.utility))


def mine_basic(transactions, min_util, taxonomy=None):
    # Leaf items only; a taxonomy is accepted but not used.
    if not transactions:
        return []
    twu = transaction_weighted_utilities(transactions)
    levels = {leaf: 0 for leaf in leaf_items(transactions)}
    order = promising_items(twu, levels, min_util, alpha_step=0).get(0, [])
    logger.debug("basic: %d of %d items pass TWU >= %s", len(order), len(levels), min_util)
    if not order:
        return []
    lists = build_utility_lists(transactions, {0: order})
    return mine_level(order, lists[0], 0, level_threshold(min_util, 0, 0))


def mine_generalized(transactions, taxonomy, min_util, alpha_step=DEFAULT_ALPHA_STEP):
    if not transactions:
        return []
    levels = node_levels(transactions, taxonomy)
    twu = transaction_weighted_utilities(transactions, taxonomy)
    order_by_level = promising_items(twu, levels, min_util, alpha_step)
    lists = build_utility_lists(transactions, order_by_level, taxonomy)

    results = []
    for level in sorted(order_by_level):
        threshold = level_threshold(min_util, level, alpha_step)
        found = mine_level(order_by_level[level], lists[level], level, threshold)
        logger.debug(
            "level %d: %d candidates, threshold %s, %d itemsets",
            level,
            len(order_by_level[level]),
            threshold,
            len(found),
        )
        results.extend(found)
    return sort_results(results)


def format_itemset(items):
    return "{" + ", ".join(str(item) for item in items) + "}"


def format_result(record, with_threshold=True):
    meta = f"level={record.level}"
    if with_threshold:
        meta += f", thr={record.threshold}"
    return f"{format_itemset(record.items)} -> Utility = {record.utility} ({meta})"
