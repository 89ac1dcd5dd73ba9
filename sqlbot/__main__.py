"""Allow ``python -m sqlbot``."""
import sys

from sqlbot.cli import main

sys.exit(main())
