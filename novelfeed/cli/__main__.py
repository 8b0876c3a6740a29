"""Allow ``python -m novelfeed.cli`` execution."""

from novelfeed.cli.commands import main

main()
