"""Allow ``python -m thinkgate.cli``."""

from .main import main

main()
