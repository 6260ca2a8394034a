"""Allow ``python -m rwboot``."""

from rwboot.cli import main

main()
