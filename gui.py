import matplotlib, matplotlib.pyplot as plot, base64, flet, math
from io import BytesIO
from dataset import read_workbook, sample_taxonomy, sample_transactions
from huim import (
    DEFAULT_ALPHA_STEP,
    format_itemset,
    level_threshold,
    mine_basic,
    mine_generalized,
    node_levels,
    transaction_utilities,
    transaction_weighted_utilities,
)

matplotlib.use("Agg")

DEFAULT_MIN_UTIL = 20


def create(columns, rows=None):
    return flet.DataTable(
        columns=columns,
        rows=rows or [],
        border=flet.border.all(1, flet.Colors.BLACK),
        border_radius=flet.border_radius.all(8),
        vertical_lines=flet.border.BorderSide(1, flet.Colors.BLACK),
        horizontal_lines=flet.border.BorderSide(1, flet.Colors.BLACK),
        heading_row_color=flet.Colors.with_opacity(0.05, flet.Colors.BLACK12),
        heading_row_height=45,
        data_row_max_height=55,
        column_spacing=20,
    )


def row(*values):
    return flet.DataRow(cells=[flet.DataCell(flet.Text(str(v))) for v in values])


def get_taxonomy_nodes(taxonomy, levels, twu):
    """Lay out the taxonomy forest: leaves side by side, parents centred above."""
    roots = sorted(n for n in levels if taxonomy.get_parent(n) not in levels)
    x_of = {}
    next_x = 0
    stack = [(root, False) for root in reversed(roots)]
    while stack:
        node, expanded = stack.pop()
        children = sorted(c for c in taxonomy.get_children(node) if c in levels)
        if not children:
            x_of[node] = next_x
            next_x += 100
        elif expanded:
            x_of[node] = sum(x_of[c] for c in children) / len(children)
        else:
            stack.append((node, True))
            stack.extend((c, False) for c in reversed(children))

    positions = []
    edges = []
    for node, x in x_of.items():
        y = levels[node] * 100
        positions.append(
            {"item": node, "twu": twu.get(node, 0), "x": x, "y": y, "level": levels[node]}
        )
        parent = taxonomy.get_parent(node)
        if parent in x_of:
            edges.append({"from": (x_of[parent], levels[parent] * 100), "to": (x, y)})
    return positions, edges


def main(page: flet.Page):
    page.title = "ML-HUI Miner (HUI + GHUI)"
    page.theme_mode = flet.ThemeMode.LIGHT
    page.window.maximized = True
    page.vertical_alignment = flet.MainAxisAlignment.START
    page.horizontal_alignment = flet.CrossAxisAlignment.CENTER

    file_path = flet.TextField(
        label="Workbook (empty = sample data)", read_only=True, width=300
    )
    min_util_field = flet.TextField(
        label="Minimum Utility", value=str(DEFAULT_MIN_UTIL), width=200
    )
    alpha_step_field = flet.TextField(
        label="Alpha Step", value=str(DEFAULT_ALPHA_STEP), width=200
    )
    taxonomy_image = flet.Image(width=600, height=400, src_base64="")
    transaction_utilities_table = create(
        [
            flet.DataColumn(flet.Text("Transaction ID")),
            flet.DataColumn(flet.Text("Items")),
            flet.DataColumn(flet.Text("TU")),
        ]
    )
    twu_table = create(
        [
            flet.DataColumn(flet.Text("Node")),
            flet.DataColumn(flet.Text("Level")),
            flet.DataColumn(flet.Text("TWU")),
            flet.DataColumn(flet.Text("Threshold")),
            flet.DataColumn(flet.Text("Kept")),
        ]
    )
    itemsets_table = create(
        [
            flet.DataColumn(flet.Text("Algorithm")),
            flet.DataColumn(flet.Text("Itemset")),
            flet.DataColumn(flet.Text("Utility")),
            flet.DataColumn(flet.Text("Meta")),
        ]
    )

    def pick_file_result(e: flet.FilePickerResultEvent):
        if e.files:
            file_path.value = e.files[0].path
            page.update()

    def select_file(e):
        file_picker.pick_files(
            allow_multiple=False,
            file_type=flet.FilePickerFileType.CUSTOM,
            allowed_extensions=["xlsx"],
        )

    file_picker = flet.FilePicker(on_result=pick_file_result)
    page.overlay.append(file_picker)

    def show_message(text):
        page.open(flet.SnackBar(flet.Text(text)))

    def run(e):
        try:
            min_util = int(min_util_field.value)
            alpha_step = float(alpha_step_field.value)
        except (TypeError, ValueError):
            show_message("Invalid minimum utility / alpha step")
            return
        if not math.isfinite(alpha_step):
            show_message("Alpha step must be a finite number")
            return
        if min_util < 0:
            show_message("Minimum utility must not be negative")
            return

        # 1. Read the transactions, profits and taxonomy.
        try:
            if file_path.value:
                transactions, taxonomy = read_workbook(file_path.value)
            else:
                transactions, taxonomy = sample_transactions(), sample_taxonomy()
        except (OSError, ValueError) as error:
            show_message(f"Could not load workbook: {error}")
            return
        print("Transactions:", transactions)

        transaction_utilities_table.rows.clear()
        twu_table.rows.clear()
        itemsets_table.rows.clear()

        # 2. Transaction utility and TWU of every node.
        tu = transaction_utilities(transactions)
        print("Transaction utilities:", tu)
        levels = node_levels(transactions, taxonomy)
        twu = transaction_weighted_utilities(transactions, taxonomy)
        print("TWU:", twu)
        print("Levels:", levels)

        # 3. Leaf-only mining, then mining across every taxonomy level.
        basic = mine_basic(transactions, min_util)
        print("Basic HUIs:", basic)
        generalized = mine_generalized(transactions, taxonomy, min_util, alpha_step)
        print("ML-HUI Miner itemsets:", generalized)

        draw_taxonomy(taxonomy, levels, twu)
        show_transaction_utilities(transactions, tu)
        show_twu(levels, twu, min_util, alpha_step)
        show_itemsets("Basic (Level 0)", basic)
        show_itemsets("ML-HUI Miner", generalized)
        page.update()

    def draw_taxonomy(taxonomy, levels, twu):
        fig, ax = plot.subplots(figsize=(6, 4))
        positions, edges = get_taxonomy_nodes(taxonomy, levels, twu)
        if not positions:
            ax.text(
                0.5, 0.5, "No taxonomy to visualize", ha="center", va="center", fontsize=12
            )
        else:
            xs = [p["x"] for p in positions]
            ys = [p["y"] for p in positions]
            ax.scatter(xs, ys, s=800, c="lightblue", edgecolors="black", zorder=2)
            for p in positions:
                ax.annotate(
                    f"{p['item']}:{p['twu']}",
                    (p["x"], p["y"]),
                    ha="center",
                    va="center",
                    zorder=3,
                )
            for e in edges:
                ax.plot(
                    [e["from"][0], e["to"][0]],
                    [e["from"][1], e["to"][1]],
                    color="black",
                    zorder=1,
                )
            ax.set_xlim(min(xs) - 100, max(xs) + 100)
            ax.set_ylim(min(ys) - 100, max(ys) + 100)
        ax.axis("off")

        buf = BytesIO()
        fig.savefig(buf, format="png")
        buf.seek(0)
        taxonomy_image.src_base64 = base64.b64encode(buf.read()).decode("utf-8")
        plot.close(fig)

    def show_transaction_utilities(transactions, tu):
        for transaction in sorted(transactions, key=lambda t: t.tid):
            quantities = transaction.quantities()
            items = ", ".join(f"{name}:{q}" for name, q in quantities.items())
            transaction_utilities_table.rows.append(
                row(transaction.tid, items, tu[transaction.tid])
            )

    def show_twu(levels, twu, min_util, alpha_step):
        for node in sorted(levels, key=lambda n: (levels[n], twu.get(n, 0))):
            threshold = level_threshold(min_util, levels[node], alpha_step)
            kept = "yes" if twu.get(node, 0) >= threshold else "no"
            twu_table.rows.append(
                row(node, levels[node], twu.get(node, 0), threshold, kept)
            )

    def show_itemsets(algorithm, records):
        for record in records:
            itemsets_table.rows.append(
                row(
                    algorithm,
                    format_itemset(record.items),
                    record.utility,
                    f"level={record.level}, thr={record.threshold}",
                )
            )

    main_content = flet.Column(
        [
            flet.Row(
                [
                    file_path,
                    flet.ElevatedButton("Select File", on_click=select_file),
                    min_util_field,
                    alpha_step_field,
                    flet.ElevatedButton("Run", on_click=run),
                ],
                alignment=flet.MainAxisAlignment.CENTER,
            ),
            flet.Divider(),
            flet.Row(
                [
                    flet.Text("Taxonomy (node:TWU):"),
                    taxonomy_image,
                ],
                alignment=flet.MainAxisAlignment.CENTER,
            ),
            flet.Divider(),
            flet.Row(
                [
                    flet.Column(
                        [
                            flet.Text("Transaction Utilities:"),
                            transaction_utilities_table,
                        ]
                    ),
                    flet.Column(
                        [
                            flet.Text("TWU per Node:"),
                            twu_table,
                        ]
                    ),
                ],
                vertical_alignment=flet.CrossAxisAlignment.START,
                alignment=flet.MainAxisAlignment.CENTER,
                spacing=20,
            ),
            flet.Row(
                [
                    flet.Column(
                        [
                            flet.Text("High-Utility Itemsets:"),
                            itemsets_table,
                        ]
                    ),
                ],
                vertical_alignment=flet.CrossAxisAlignment.START,
                alignment=flet.MainAxisAlignment.CENTER,
            ),
        ],
        scroll=flet.ScrollMode.AUTO,
        expand=True,
        spacing=20,
    )

    page.add(main_content)


if __name__ == "__main__":
    flet.app(target=main)
