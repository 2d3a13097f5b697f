"""
Main entry point for the converter.

This script configures an initial logger and hands over to the command-line
interface, which parses the arguments, reconfigures logging at the requested level
and runs the chosen subcommand. The process exits with the code the CLI returns.
"""

import sys

from loguru import logger

from ffconvert.cli import main
from ffconvert.config.common import LOGGER_FORMAT

# Configure the logger for initial setup.
# The level is overridden once the command-line arguments are parsed.
logger.remove()
logger.add(sys.stderr, level="INFO", format=LOGGER_FORMAT)


if __name__ == "__main__":
    sys.exit(main())
