"""fixuppicker - pick a branch commit and create a fixup commit for it."""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
