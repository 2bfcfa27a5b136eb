#!/usr/bin/env python3
"""
Script to pre-generate Snowflake keys on a worker pool and print them.
"""

import argparse
import sys
import time

from loguru import logger

from keygen.core.exceptions import ConfigurationError, KeysExhaustedError
from keygen.core.snowflake import decompose_id, new_generator
from keygen.worker.key_provider import SnowflakeKeyProvider


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Pre-generate Snowflake keys and print them")
    parser.add_argument("--count", type=int, default=20, help="Number of keys to generate")
    parser.add_argument("--pool-size", type=int, help="Worker threads (defaults to --count)")
    parser.add_argument("--wait", type=float, default=2.0, help="Seconds to wait before reading keys")
    parser.add_argument("--decode", action="store_true", help="Print the fields packed into each key")
    args = parser.parse_args()

    if args.count < 1:
        parser.error("--count must be at least 1")

    try:
        generator = new_generator()
    except ConfigurationError as e:
        logger.error(f"{e.message}. {e.remedy}")
        sys.exit(1)

    with SnowflakeKeyProvider(generator, capacity=args.count, pool_size=args.pool_size or args.count) as provider:
        provider.generate_keys(args.count)
        logger.info("Finished submitting all key requests")
        time.sleep(args.wait)

        for _ in range(args.count):
            try:
                key = provider.get_key()
            except KeysExhaustedError as e:
                logger.error(f"{e.message}. {e.remedy}")
                sys.exit(1)

            if args.decode:
                timestamp, node_id, sequence = decompose_id(key)
                print(f"{key:<20} timestamp={timestamp} node_id={node_id} sequence={sequence}")
            else:
                print(key)


if __name__ == "__main__":
    """Run the script."""
    main()
