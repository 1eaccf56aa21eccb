"""
Application entry point for the device registry.

This module:
- Configures logging at the configured level.
- Initializes the MongoEngine connection and builds the collection indexes
  (via data.mongo_setup), once, before any command runs.
- Prints the application header and runs the device command loop.
"""
import logging

from colorama import Fore
import program_devices
import data.mongo_setup as mongo_setup
import infrastructure.config as config


def main():
    logging.basicConfig(
        level=config.settings.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    mongo_setup.global_init()
    mongo_setup.ensure_indexes()

    print_header()

    try:
        program_devices.run()
    except KeyboardInterrupt:
        return


def print_header():
    print(Fore.WHITE + '**************  DEVICE DETAILS  **************')
    print()
    print("Register devices, rotate push tokens and look up app ids.")
    print()


if __name__ == '__main__':
    main()
