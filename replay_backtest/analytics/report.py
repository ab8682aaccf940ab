"""Plain-text rendering of a backtest's results."""

from replay_backtest.analytics.risk_metrics import PerformanceReport
from replay_backtest.execution.ledger import LedgerSnapshot

# (attribute, label, shown as percentage)
_REPORT_ROWS = [
    ('sharpe_ratio', 'Sharpe Ratio', False),
    ('sortino_ratio', 'Sortino Ratio', False),
    ('max_drawdown', 'Maximum Drawdown', True),
    ('total_return', 'Total Return', True),
    ('annualized_return', 'Annualized Return', True),
    ('calmar_ratio', 'Calmar Ratio', False),
    ('win_rate', 'Win Rate', True),
    ('profit_factor', 'Profit Factor', False),
    ('average_trade_return', 'Average Period Return', True),
    ('expectancy', 'Expectancy', True),
]


def format_portfolio(snapshot: LedgerSnapshot) -> str:
    """Holdings with average cost, then cash and net worth."""
    lines = ["Portfolio Holdings:", "-------------------"]
    for symbol, position in sorted(snapshot.positions.items()):
        lines.append(
            f"{symbol}: {position.quantity} shares, Avg Cost: ${position.avg_cost:,.2f}, "
            f"Cost Value: ${position.cost_value:,.2f}"
        )
    lines.append(f"Cash: ${snapshot.cash:,.2f}")
    lines.append(f"Net Worth: ${snapshot.net_worth:,.2f}")
    return "\n".join(lines)


def format_performance_report(
    report: PerformanceReport | None,
    snapshot: LedgerSnapshot | None = None,
) -> str:
    """
    Render metrics (and optionally the final holdings) as aligned text.

    Args:
        report: Metrics for the run, or None if they could not be computed.
        snapshot: Final ledger state to append, if given.

    Returns:
        Multi-line string ready to print.
    """
    lines = ["Performance Metrics:", "--------------------"]

    if report is None:
        lines.append(
            "Metrics unavailable for this run (fewer than 2 equity points "
            "or an undefined metric such as a zero starting equity)."
        )
    else:
        width = max(len(label) for _, label, _ in _REPORT_ROWS)
        for attr, label, as_pct in _REPORT_ROWS:
            value = getattr(report, attr)
            rendered = f"{value * 100:.2f}%" if as_pct else f"{value:.4f}"
            lines.append(f"{label:<{width}} : {rendered}")
        lines.append(f"{'Final Equity':<{width}} : ${report.final_equity:,.2f}")
        lines.append(f"{'Periods':<{width}} : {report.num_periods}")

    if snapshot is not None:
        lines.append("")
        lines.append(format_portfolio(snapshot))

    return "\n".join(lines)
