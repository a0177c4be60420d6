import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), 'src'))

import argparse
import json
import logging
import pandas as pd
from dotenv import load_dotenv

from analyzer_config import AnalyzerConfig
from event_bus import EventEmitter
from gameplay_analyzer import GameplayAnalyzer
from spin_models import SpinResult

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_spins_from_csv(path: str, user_id: str, casino_id: str, game_id: str):
    """Read spins from a CSV with wager,payout,timestamp columns."""
    df = pd.read_csv(path)
    missing = {'wager', 'payout', 'timestamp'} - set(df.columns)
    if missing:
        raise ValueError(f"{path} is missing columns: {sorted(missing)}")

    spins = []
    for idx, row in enumerate(df.itertuples(index=False)):
        row = row._asdict()
        spins.append(SpinResult(
            spin_id=str(row.get('spin_id', f"{path}-{idx}")),
            user_id=str(row.get('user_id', user_id)),
            casino_id=str(row.get('casino_id', casino_id)),
            game_id=str(row.get('game_id', game_id)),
            wager=float(row['wager']),
            payout=float(row['payout']),
            timestamp=int(row['timestamp']),
        ))
    return spins


def main():
    parser = argparse.ArgumentParser(description='Gameplay anomaly analyzer')
    parser.add_argument('--config', type=str, default=None,
                       help='Path to configuration file (default: $GAMEPLAY_ANALYZER_CONFIG or config.yaml)')
    parser.add_argument('--spins', type=str,
                       help='Compressed spins: "wager|payout|timestamp;..."')
    parser.add_argument('--data-file', type=str,
                       help='CSV with wager,payout,timestamp (and optional user_id,casino_id,game_id) columns')
    parser.add_argument('--user', type=str, default='cli-user')
    parser.add_argument('--casino', type=str, default='cli-casino')
    parser.add_argument('--game', type=str, default='cli-game')
    parser.add_argument('--mobile', action='store_true',
                       help='Print the compact mobile payload instead of the full report')
    parser.add_argument('--battery', type=float,
                       help='Battery percent, prints the recommended poll interval')
    parser.add_argument('--charging', action='store_true')

    args = parser.parse_args()

    load_dotenv()

    config_path = args.config or os.getenv('GAMEPLAY_ANALYZER_CONFIG', 'config.yaml')
    if os.path.exists(config_path):
        config = AnalyzerConfig.from_yaml(config_path)
    else:
        logger.info(f"No config at {config_path}, using defaults")
        config = AnalyzerConfig()

    events = EventEmitter()
    events.on(EventEmitter.WILDCARD, lambda name, payload: logger.warning(
        f"[{name}] {payload.get('user_id')}:{payload.get('casino_id')} "
        f"{payload.get('reason') or payload.get('anomalies')}"))

    analyzer = GameplayAnalyzer(config, publish=events.publish)

    if args.battery is not None:
        interval = analyzer.get_mobile_poll_interval(args.battery, args.charging)
        print(json.dumps({'poll_interval_ms': interval}))

    if args.data_file:
        spins = load_spins_from_csv(args.data_file, args.user, args.casino, args.game)
    elif args.spins is not None:
        spins = analyzer.parse_compressed_spins(args.spins, args.user, args.casino, args.game)
    else:
        if args.battery is None:
            parser.error('one of --spins or --data-file is required')
        return 0

    analyzer.record_spin_batch(spins)
    logger.info(f"Recorded {len(spins)} spins across {analyzer.get_session_count()} sessions")

    results = {}
    for key in analyzer.store.session_keys():
        if args.mobile:
            results[key] = analyzer.get_minimal_payload(key)
        else:
            report = analyzer.analyze_session(key)
            results[key] = report.to_dict() if report else None
            if report is None:
                logger.info(f"{key}: not enough spins for analysis "
                            f"({config.min_spins_required} required)")

    print(json.dumps(results, indent=2, default=str))
    return 0


if __name__ == '__main__':
    sys.exit(main())
