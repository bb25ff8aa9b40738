#!/usr/bin/env python3
"""
CLI tool for bootstrapping Couchbase views and Elasticsearch mappings

Usage:
    python -m couchsearch.cli.bootstrap --help
    python -m couchsearch.cli.bootstrap derive --collections collections.yaml
    python -m couchsearch.cli.bootstrap run --collections collections.yaml --env-file .env

The collections file maps collection names to their optional field schema:

    widgetmodel:
      schema:
        color: {type: keyword}
    logmodel: {}
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

import yaml

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def load_collections(path: str) -> dict:
    """Load the collection set from a YAML (or JSON) file"""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of collection name to descriptor")
    return data


def load_settings(env_file: Optional[str] = None, settle_interval: Optional[float] = None):
    from couchsearch.config import get_settings

    config = get_settings(env_file)
    if settle_interval is not None:
        config = config.model_copy(update={"settle_interval": settle_interval})
    return config


def derive(collections_path: str, env_file: Optional[str] = None):
    """Print the derived view document and mapping specs without touching either backend"""
    from couchsearch.derivation import derive_mapping_specs, derive_view_document, normalize_collections

    config = load_settings(env_file)
    descriptors = normalize_collections(load_collections(collections_path), config.type_suffix)
    view_document = derive_view_document([d.name for d in descriptors], config.type_suffix)
    specs = derive_mapping_specs(descriptors, config.elasticsearch.index, config.type_suffix)

    output = {
        "design_document": {"name": config.couchbase.bucket_name, **view_document.to_dict()},
        "mappings": [{"index": s.index, "type": s.type, "body": s.to_body()} for s in specs],
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return output


async def run_bootstrap(collections_path: str, env_file: Optional[str] = None, settle_interval: Optional[float] = None):
    """Run the bootstrap against the configured backends"""
    from couchsearch.connection import Bootstrapper

    config = load_settings(env_file, settle_interval)
    bootstrapper = Bootstrapper()
    result = await bootstrapper.bootstrap(config, load_collections(collections_path))
    try:
        # The process exits right after, so let the mapping writes land first
        outcome = await bootstrapper.last_reconciler.wait_pending()
        summary = {
            "bucket": config.couchbase.bucket_name,
            "views": sorted(bootstrapper.last_view_document.views),
            "index": config.elasticsearch.index,
            "mappings": outcome,
        }
        print(json.dumps(summary, indent=2, ensure_ascii=False))
        return summary
    finally:
        await result.close()


def main():
    parser = argparse.ArgumentParser(description="Couchbase / Elasticsearch bootstrap CLI")
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Derive command
    derive_parser = subparsers.add_parser('derive', help='Print derived view document and mappings')
    derive_parser.add_argument('--collections', required=True, help='YAML file with the collection set')
    derive_parser.add_argument('--env-file', help='Settings .env file')

    # Run command
    run_parser = subparsers.add_parser('run', help='Install views and reconcile index mappings')
    run_parser.add_argument('--collections', required=True, help='YAML file with the collection set')
    run_parser.add_argument('--env-file', help='Settings .env file')
    run_parser.add_argument('--settle-interval', type=float, help='Seconds to wait after mapping writes')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger('couchsearch').setLevel(logging.DEBUG)

    if not args.command:
        parser.print_help()
        return 1

    from couchsearch.exceptions import BootstrapError, describe_error

    try:
        if args.command == 'derive':
            derive(args.collections, args.env_file)
        elif args.command == 'run':
            asyncio.run(run_bootstrap(args.collections, args.env_file, args.settle_interval))
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except BootstrapError as e:
        logger.error(f"Bootstrap failed in {e.phase} phase: {describe_error(e.cause)}")
        return 2
    except Exception as e:
        logger.error(f"Command failed: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
