from backtesting.runner import BacktestReport
from backtesting.schema import Trade


def _format_trade(trade: Trade) -> str:
    return (f"{trade.date.isoformat()} {trade.type.value:4} | "
            f"Entry {trade.entry_price:10.2f} @ {trade.entry_time.strftime('%H:%M')} | "
            f"Exit {trade.exit_price:10.2f} @ {trade.exit_time.strftime('%H:%M')} | "
            f"P&L {trade.pnl:10.2f} ({trade.pnl_percent:+.2f}%) | {trade.exit_reason.value}")


def print_report(report: BacktestReport):
    metrics = report.metrics
    name = f" ({report.stock_name})" if report.stock_name else ""

    print("\n" + "=" * 70)
    print(f"📊 BREAKOUT BACKTEST REPORT - {report.security_id}{name}")
    print("=" * 70)
    print(f"Period:        {report.start_date} -> {report.end_date}")
    print(f"Target / Stop: {report.params.target_percent}% / {report.params.stop_loss_percent}%")
    print(f"Capital:       {report.params.capital:,.2f} -> {report.final_capital:,.2f}")
    print(f"Trading Days:  {report.total_trading_days} (skipped: {report.skipped_count})")

    print("\n📈 PERFORMANCE:")
    print(f"  Total Trades:  {metrics.total_trades}")
    print(f"  Wins / Losses: {metrics.winning_trades} / {metrics.losing_trades}")
    print(f"  Win Rate:      {metrics.win_rate:.2f}%")
    print(f"  Total P&L:     {metrics.total_pnl:,.2f}")
    print(f"  Avg Trade:     {metrics.average_pnl:,.2f}")
    print(f"  Max Drawdown:  {metrics.max_drawdown:,.2f}")

    if metrics.best_trade:
        print(f"\n🏆 Best:  {_format_trade(metrics.best_trade)}")
        print(f"💀 Worst: {_format_trade(metrics.worst_trade)}")

    if report.skipped_days:
        print("\n⏭️  SKIPPED DAYS: " + ", ".join(d.isoformat() for d in report.skipped_days))

    print("\n📒 TRADES:")
    if not report.trades:
        print("  No trades executed.")
    else:
        print(f"  {'Date':10} {'Type':4} | {'Entry':>10} | {'Exit':>10} | {'Qty':>6} | "
              f"{'P&L':>10} | {'P&L %':>7} | Reason")
        for t in report.trades:
            print(f"  {t.date.isoformat():10} {t.type.value:4} | {t.entry_price:10.2f} | {t.exit_price:10.2f} | "
                  f"{t.quantity:6d} | {t.pnl:10.2f} | {t.pnl_percent:+6.2f}% | {t.exit_reason.value}")
    print("=" * 70 + "\n")
