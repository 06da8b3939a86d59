"""
Create or update an index definition from a JSON config file.

Usage:
    python scripts/create_index.py --id IPJ-VALUE --name "IPJ Value" --config configs/value.json
    python scripts/create_index.py --id IPJ-VALUE --deactivate
"""

import argparse
import json
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from theoindex.config.index_config import load_index_config
from theoindex.db.models import IndexDefinition
from theoindex.db.models.base import Base
from theoindex.db.repositories.index_repo import IndexRepository
from theoindex.db.session import engine, SessionLocal
from theoindex.errors import ConfigurationError


def main() -> None:
    parser = argparse.ArgumentParser(description="Create/update a theoretical index")
    parser.add_argument("--id", required=True, help="Index code, e.g. IPJ-VALUE")
    parser.add_argument("--name", help="Display name")
    parser.add_argument("--config", help="Path to the JSON configuration")
    parser.add_argument("--methodology", default=None)
    parser.add_argument("--deactivate", action="store_true")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        repo = IndexRepository(session)

        if args.deactivate:
            if repo.deactivate(args.id):
                print(f"✅ {args.id} deactivated")
            else:
                print(f"❌ Index '{args.id}' not found")
            return

        if not args.name or not args.config:
            parser.error("--name and --config are required unless --deactivate")

        with open(args.config, "r") as f:
            raw = json.load(f)

        try:
            config = load_index_config(raw)
        except ConfigurationError as e:
            print(f"❌ Invalid configuration: {e}")
            sys.exit(1)

        index = repo.upsert(
            IndexDefinition(
                index_id=args.id,
                name=args.name,
                methodology=args.methodology,
                config=config.to_json_dict(),
                is_active=True,
            )
        )
        print(f"✅ {index.index_id} saved")
        print(f"   Top N: {config.selection.top_n}, order by {config.selection.order_by} {config.selection.order_direction}")
        print(f"   Quality filters: {len(config.quality.conditions)}"
              + (f", strategy {config.quality.strategy.type}" if config.quality.strategy else ""))
    finally:
        session.close()


if __name__ == "__main__":
    main()
