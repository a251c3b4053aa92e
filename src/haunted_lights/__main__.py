"""Allow `python -m haunted_lights`."""

import sys

from .cli import main

sys.exit(main())
