"""Allow ``python -m tierkeeper``."""

from tierkeeper.main import run

run()
