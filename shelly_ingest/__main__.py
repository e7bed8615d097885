import sys

from .jobs.poller.cli import main

sys.exit(main())
