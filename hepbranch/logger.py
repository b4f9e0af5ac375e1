"""Package logger."""

import logging
import sys

# Configure the formatting of the logger
logging.basicConfig(format='%(message)s', stream=sys.stderr)

# Capture warning messages and redirect them through the logger
logging.captureWarnings(True)

logger = logging.getLogger('hepbranch')
