import argparse
import logging
import sys
from pathlib import Path

from statecraft.server.session import GameSession
from statecraft.shared.config import GameConfig


def main():
    parser = argparse.ArgumentParser(description="Headless economy & trade simulation")
    parser.add_argument("--weeks", type=int, default=52, help="Number of weeks (ticks) to simulate.")
    parser.add_argument("--log-level", type=str, default="INFO", help="DEBUG, INFO, WARNING...")
    parser.add_argument("--json", action="store_true", help="Print every tick report as JSON.")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")
    logging.getLogger(__name__).info("statecraft starting...")

    # main.py sits at the project root, next to modules/
    config = GameConfig(Path(__file__).resolve().parent)
    session = GameSession.create_local(config)
    try:
        for _ in range(args.weeks):
            report = session.tick()
            if args.json:
                sys.stdout.buffer.write(report.to_json() + b"\n")
            else:
                print(f"[Week {report.tick:>3}] {report.date:%Y-%m-%d} "
                      f"events={len(report.events)} alerts={len(report.alerts)} "
                      f"agreements={len(session.state.agreements)}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
