#!/usr/bin/env python3

import argparse
import logging
import sys

from plot_mover.config import load_config
from plot_mover.logging_setup import setup_logging
from plot_mover.filesystem import is_script_running
from plot_mover.notifications import NotificationManager
from plot_mover.registry import TransferRegistry
from plot_mover.dispatcher import Dispatcher
from plot_mover.shutdown import ShutdownCoordinator
from plot_mover.temp_file_cleanup import cleanup_orphaned_temp_files
from plot_mover.errors import ConfigurationError, WalkError
from plot_mover import __version__

def main():
    parser = argparse.ArgumentParser(description='Plot Mover')
    parser.add_argument('--console-log', action='store_true', help='Log to console in addition to file')
    parser.add_argument('--config', help='Path to config')
    parser.add_argument('--version', action='version', version=f'Plot Mover v{__version__}')
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logger = setup_logging(config, args.console_log)

    is_running, running_instances = is_script_running()
    if is_running:
        logger.error("Another instance is already running:")
        for instance in running_instances:
            logger.error(f"  {instance}")
        sys.exit(1)

    logger.info(f"Staging locations: {', '.join(config['Paths']['STAGING_PATHS'])}")
    logger.info(f"Destination volumes: {', '.join(config['Paths']['DESTINATION_PATHS'])}")

    if config['Settings']['CLEANUP_TEMP_FILES']:
        cleanup_orphaned_temp_files(
            config['Paths']['DESTINATION_PATHS'],
            config['Settings']['PLOT_SUFFIX']
        )

    notification_mgr = NotificationManager(config)
    registry = TransferRegistry(config['Paths']['DESTINATION_PATHS'])
    coordinator = ShutdownCoordinator(registry, config['Settings']['DRAIN_POLL_INTERVAL'])
    coordinator.install_signal_handlers()
    dispatcher = Dispatcher(config, registry, coordinator.stop_event)

    exit_code = 0
    try:
        dispatcher.run()
    except WalkError as e:
        logger.error(f"Fatal error during scan: {e}")
        notification_mgr.notify_error(str(e))
        exit_code = 1
    finally:
        coordinator.wait_for_drain()
        dispatcher.close()

    logger.info(dispatcher.summary())
    notification_mgr.notify_summary(dispatcher.stats)
    sys.exit(exit_code)

if __name__ == '__main__':
    main()
