# budgetbuilder/export.py
"""Spreadsheet export of a budget; formatting only, totals come precomputed."""

import csv
import io

from budgetbuilder.budget.aggregator import CLIENT_VIEW, INTERNAL_VIEW

CLIENT_COLUMNS = ['product', 'category', 'quantity', 'unit_price', 'line_total']
INTERNAL_COLUMNS = CLIENT_COLUMNS + [
    'unit_cost', 'labor', 'unit_profit', 'total_cost', 'total_profit',
]


def budget_rows(items, totals, view=CLIENT_VIEW):
    """Item rows, a blank separator, then summary rows.

    The internal view adds the cost breakdown per line and a metrics block
    (costs, labor, net profit, margin).
    """
    internal = view == INTERNAL_VIEW
    columns = INTERNAL_COLUMNS if internal else CLIENT_COLUMNS
    rows = []
    for item in items:
        row = {
            'product': item.name,
            'category': item.category,
            'quantity': item.quantity,
            'unit_price': item.unit_price,
            'line_total': item.line_total,
        }
        if internal:
            unit_profit = item.unit_price - item.cost
            row.update({
                'unit_cost': item.cost,
                'labor': item.labor,
                'unit_profit': unit_profit,
                'total_cost': item.cost * item.quantity,
                'total_profit': unit_profit * item.quantity,
            })
        rows.append(row)

    rows.append({})
    rows.append({'product': 'SUMMARY'})
    rows.append({'product': 'Subtotal', 'line_total': totals.subtotal})
    rows.append({'product': f'Discount ({totals.discount_percent:g}%)',
                 'line_total': -totals.discount_amount})
    rows.append({'product': 'Grand total', 'line_total': totals.grand_total})

    if internal:
        rows.append({})
        rows.append({'product': 'INTERNAL METRICS'})
        rows.append({'product': 'Total cost', 'line_total': totals.total_cost})
        rows.append({'product': 'Total labor', 'line_total': totals.total_labor})
        rows.append({'product': 'Net profit', 'line_total': totals.total_profit})
        rows.append({'product': 'Margin %', 'line_total': f'{totals.profit_margin_percent}%'})
    return columns, rows


def render_csv(columns, rows):
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=columns, extrasaction='ignore')
    writer.writeheader()
    for r in rows:
        writer.writerow(r)
    return output.getvalue()
