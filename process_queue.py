#!/usr/bin/env python3
"""
Manual offline queue processor.

Inspect, sweep or drain the persisted offline queue from the command line.
Useful to flush requests that piled up while a client was offline.

Usage:
    python process_queue.py [--data-dir ./data] [--stats-only | --cleanup | --clear]
"""

import os
import sys
import json
import argparse
import logging

logger = logging.getLogger('offline_queue.manual')


def load_config(data_dir, config_path=None):
    """Load configuration from JSON file, falling back to environment variables."""
    if config_path is None and data_dir:
        config_path = os.path.join(data_dir, 'config.json')

    config = {}
    if config_path and os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config = json.load(f)

    env_overrides = {
        'api_base_url': os.environ.get('OFFLINE_QUEUE_API_URL'),
        'auth_token': os.environ.get('OFFLINE_QUEUE_AUTH_TOKEN'),
        'health_url': os.environ.get('OFFLINE_QUEUE_HEALTH_URL'),
    }
    for key, value in env_overrides.items():
        if value and key not in config:
            config[key] = value

    if data_dir:
        config['data_dir'] = data_dir

    return config


def open_queue(config):
    """Create and initialize the OfflineQueue described by config."""
    from offline_queue.engine import OfflineQueue
    from validation.config import build_store

    queue = OfflineQueue(
        build_store(config),
        storage_key=config.storage_key,
        max_queue_size=config.max_queue_size,
    )
    queue.initialize()
    return queue


def build_connectivity(config, client):
    """Health-probe oracle if a health URL is configured, otherwise always online."""
    from network.connectivity import ProbingConnectivity, StaticConnectivity

    if config.health_url:
        return ProbingConnectivity(
            client,
            config.health_url,
            check_interval=config.health_check_interval,
        )
    return StaticConnectivity(online=True)


def process_queue(queue, config):
    """Run a single processing pass against the configured backend."""
    import httpx
    from network.executor import HttpRequestExecutor
    from worker.processor import QueueProcessor

    stats = queue.get_stats()
    logger.info(f"Queue stats: {json.dumps(stats.to_dict())}")

    if stats.total == 0:
        logger.info("Queue is empty. Nothing to process.")
        return 0

    with httpx.Client(base_url=config.api_base_url, timeout=config.request_timeout) as client:
        executor = HttpRequestExecutor(
            token_provider=lambda: config.auth_token,
            client=client,
        )
        processor = QueueProcessor(
            queue,
            build_connectivity(config, client),
            executor,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
            retry_max_delay=config.retry_max_delay,
            max_pass_backoff=config.max_pass_backoff,
        )

        logger.info("Starting queue processing...")
        result = processor.process_queue()

    if result.skipped:
        logger.warning(f"Pass skipped ({result.skipped})")
        return 1

    logger.info(
        f"Queue processing complete. Delivered: {result.delivered}, "
        f"Pending retry: {result.retried}, Abandoned: {result.abandoned}"
    )
    logger.info(f"Final queue stats: {json.dumps(queue.get_stats().to_dict())}")

    return 0 if result.failed == 0 else 1


def main(argv=None):
    parser = argparse.ArgumentParser(description='Process the offline request queue manually')
    parser.add_argument('--data-dir', '-d', default='./data', help='Directory holding the queue store')
    parser.add_argument('--config', '-c', help='Path to config JSON (default: <data-dir>/config.json)')
    parser.add_argument('--api-url', help='Backend base URL (or set OFFLINE_QUEUE_API_URL env var)')
    parser.add_argument('--token', help='Bearer token (or set OFFLINE_QUEUE_AUTH_TOKEN env var)')
    parser.add_argument('--debug', action='store_true', help='Enable trace/debug output')

    action = parser.add_mutually_exclusive_group()
    action.add_argument('--stats-only', '-s', action='store_true', help='Only show queue stats')
    action.add_argument('--cleanup', action='store_true', help='Remove requests older than max_age_hours')
    action.add_argument('--clear', action='store_true', help='Drop every queued request')

    args = parser.parse_args(argv)

    config_dict = load_config(args.data_dir, args.config)

    # Override with command line args
    if args.api_url:
        config_dict['api_base_url'] = args.api_url
    if args.token:
        config_dict['auth_token'] = args.token
    if args.debug:
        config_dict['debug_logging'] = True

    # Inspection and maintenance do not talk to the backend
    if (args.stats_only or args.cleanup or args.clear) and 'api_base_url' not in config_dict:
        config_dict['api_base_url'] = 'http://localhost'

    from shared.log import configure_logging
    from validation.config import validate_config

    configure_logging(debug=args.debug)

    config, error = validate_config(config_dict)
    if config is None:
        logger.error(f"Invalid configuration: {error}")
        logger.error("Set OFFLINE_QUEUE_API_URL or provide config.json")
        return 1

    configure_logging(debug=config.debug_logging)

    logger.info(f"Using data directory: {config.data_dir}")
    config.log_config()

    queue = open_queue(config)

    if args.stats_only:
        print(json.dumps(queue.get_stats().to_dict(), indent=2))
        return 0

    if args.cleanup:
        removed = queue.cleanup_old_requests(config.max_age_ms)
        logger.info(f"Removed {removed} expired request(s)")
        return 0

    if args.clear:
        queue.clear()
        return 0

    return process_queue(queue, config)


if __name__ == '__main__':
    sys.exit(main())
