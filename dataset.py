from collections import defaultdict
import logging
import zipfile

from openpyxl.utils.exceptions import InvalidFileException
import pandas

from huim import format_itemset
from model import Item, Taxonomy, Transaction, TransactionItem

logger = logging.getLogger(__name__)

TRANSACTIONS_SHEET = "transactions"
PROFITS_SHEET = "profits"
TAXONOMY_SHEET = "taxonomy"


def _require(df, columns, what):
    missing = [column for column in columns if column not in df.columns]
    if missing:
        raise ValueError(f"{what} table is missing column(s): {', '.join(missing)}")


def _quantity(value):
    if pandas.isna(value):
        return 0
    return int(value)


def items_from_frame(df, name_col="item", profit_col="profit"):
    _require(df, [name_col, profit_col], "profits")
    items = {}
    for _, row in df.dropna(subset=[name_col]).iterrows():
        name = str(row[name_col]).strip()
        profit = 0 if pandas.isna(row[profit_col]) else int(row[profit_col])
        items[name] = Item(name, profit)
    return items


def parse_entries(text):
    """Parse ``"Coke:2,Bread:2"``; a bare name counts as quantity 1."""
    entries = []
    for token in str(text).split(","):
        token = token.strip()
        if not token:
            continue
        name, _, quantity = token.partition(":")
        entries.append((name.strip(), int(quantity) if quantity.strip() else 1))
    return entries


def transactions_from_frame(
    df, items=None, transaction_col="tid", item_col="item", quantity_col="quantity"
):
    """Build transactions from a long table (one row per purchase) or from an
    ``items`` column of ``name:quantity`` lists (one row per transaction)."""
    items = dict(items or {})

    def lookup(name):
        # Unknown names contribute no utility.
        if name not in items:
            items[name] = Item(name, 0)
        return items[name]

    entries = defaultdict(list)
    if item_col not in df.columns and "items" in df.columns:
        for position, (_, row) in enumerate(df.iterrows(), start=1):
            tid = position if transaction_col not in df.columns else int(row[transaction_col])
            for name, quantity in parse_entries(row["items"]):
                entries[tid].append(TransactionItem(lookup(name), quantity))
    else:
        _require(df, [transaction_col, item_col, quantity_col], "transactions")
        rows = df.dropna(subset=[transaction_col, item_col])
        for _, row in rows.iterrows():
            name = str(row[item_col]).strip()
            entries[int(row[transaction_col])].append(
                TransactionItem(lookup(name), _quantity(row[quantity_col]))
            )

    logger.debug("loaded %d transactions over %d items", len(entries), len(items))
    return [Transaction(tid, entries[tid]) for tid in sorted(entries)]


def taxonomy_from_frame(df, child_col="child", parent_col="parent"):
    _require(df, [child_col, parent_col], "taxonomy")
    relations = [
        (str(row[child_col]).strip(), str(row[parent_col]).strip())
        for _, row in df.dropna(subset=[child_col, parent_col]).iterrows()
    ]
    return Taxonomy.from_relations(relations)


def read_workbook(path):
    try:
        sheets = pandas.read_excel(path, sheet_name=None)
    except (zipfile.BadZipFile, InvalidFileException) as error:
        raise ValueError(f"{path} is not a readable workbook: {error}") from error
    if TRANSACTIONS_SHEET not in sheets:
        raise ValueError(f"workbook has no '{TRANSACTIONS_SHEET}' sheet")
    items = {}
    if PROFITS_SHEET in sheets:
        items = items_from_frame(sheets[PROFITS_SHEET])
    transactions = transactions_from_frame(sheets[TRANSACTIONS_SHEET], items)
    taxonomy = Taxonomy()
    if TAXONOMY_SHEET in sheets:
        taxonomy = taxonomy_from_frame(sheets[TAXONOMY_SHEET])
    return transactions, taxonomy


def results_frame(records):
    return pandas.DataFrame(
        {
            "itemset": [format_itemset(record.items) for record in records],
            "utility": [record.utility for record in records],
            "level": [record.level for record in records],
            "threshold": [record.threshold for record in records],
        },
        columns=["itemset", "utility", "level", "threshold"],
    )


def sample_transactions():
    water = Item("Water", 1)
    coke = Item("Coke", 5)
    bread = Item("Bread", 1)
    pasta = Item("Pasta", 2)
    steak = Item("Steak", 10)
    return [
        Transaction(
            1,
            [
                TransactionItem(coke, 2),
                TransactionItem(bread, 2),
                TransactionItem(steak, 1),
            ],
        ),
        Transaction(
            2,
            [
                TransactionItem(water, 3),
                TransactionItem(pasta, 2),
                TransactionItem(steak, 1),
            ],
        ),
        Transaction(3, [TransactionItem(water, 2), TransactionItem(bread, 2)]),
        Transaction(4, [TransactionItem(coke, 1), TransactionItem(bread, 2)]),
    ]


def sample_taxonomy():
    return Taxonomy.from_relations(
        [
            ("Coke", "Beverage"),
            ("Water", "Beverage"),
            ("Bread", "Food"),
            ("Pasta", "Food"),
            ("Steak", "Food"),
        ]
    )
