"""Command line entry point: ``trueprice browse`` and ``trueprice detail``."""

from __future__ import annotations

import argparse
import logging
import sys

from trueprice import create_manager_from_env
from trueprice.errors import TruepriceError
from trueprice.manager import TruepriceManager
from trueprice.models.catalog import catalog_to_frame
from trueprice.session import BrowseSession, Preferences, StockDetail

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _browse(manager: TruepriceManager, args: argparse.Namespace) -> int:
    session = BrowseSession(manager)
    session.switch_market(args.market or session.market)
    catalog = session.search(args.query or "")
    if not catalog:
        print("No results.")
        return 0

    frame = catalog_to_frame(catalog)
    currency = session.spec.currency
    frame["price"] = frame["price"].map(lambda p: "—" if p is None or p != p else f"{p:.2f} {currency}")
    for industry, rows in frame.groupby("industry", sort=False):
        print(f"\n== {industry}")
        print(rows[["ticker", "company", "price"]].to_string(index=False))
    return 0


def _detail(manager: TruepriceManager, args: argparse.Namespace) -> int:
    lang = args.lang or Preferences(manager.store).language
    detail = StockDetail(manager, args.ticker, args.market or "US", company=args.company, lang=lang)
    m = detail.load()
    cc = detail.currency_label

    print(f"{args.company or args.ticker} ({detail.symbol})")
    print(f"Price:           {m.price:.2f} {cc}")
    print(f"Weighted fair:   {m.weighted:.2f} {cc}  [{detail.verdict.value}, {detail.gap_pct:.2f}%]")
    print(f"EV / PE / PS:    {m.fair_ev:.2f} / {m.fair_pe:.2f} / {m.fair_ps:.2f}")
    print(f"Book value:      {m.book_value:.2f}")
    bands = detail.margin_bands
    print(f"Gross margin:    {m.gross_margin:.2f}% ({bands['gross'].value})")
    print(f"Op margin:       {m.op_margin:.2f}% ({bands['operating'].value})")
    print(f"Net margin:      {m.net_margin:.2f}% ({bands['net'].value})")

    if args.ai:
        if not manager.ai_available():
            print("AI: no local model available.")
        else:
            est = detail.ask_ai(
                on_slow=lambda: print("First run can take up to a minute while the model loads…"),
            )
            if est is not None:
                suffix = " (from cache)" if est.from_cache else ""
                print(f"AI fair value:   {est.fair_value:.2f} {cc}{suffix}")
                delta = est.delta_pct(m.weighted)
                if delta is not None:
                    print(f"AI vs app:       {delta:.2f}%")
                if est.rationale:
                    print(est.rationale)

    print(f"\nShare: {detail.share_url()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trueprice", description="Fair-value viewer for TASI and S&P 500")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    browse = sub.add_parser("browse", help="list a market's companies by industry")
    browse.add_argument("--market", choices=["SA", "US"], help="market (default: last used)")
    browse.add_argument("--query", help="filter by ticker or company")

    detail = sub.add_parser("detail", help="valuation of one stock")
    detail.add_argument("ticker")
    detail.add_argument("--market", choices=["SA", "US"], default="US")
    detail.add_argument("--company")
    detail.add_argument("--lang", choices=["en", "ar"])
    detail.add_argument("--ai", action="store_true", help="also ask the local model")

    sub.add_parser("clear-cache", help="drop all cached prices, metrics and estimates")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    manager = create_manager_from_env()

    try:
        if args.command == "browse":
            return _browse(manager, args)
        if args.command == "detail":
            return _detail(manager, args)
        manager.clear_cache()
        return 0
    except TruepriceError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
