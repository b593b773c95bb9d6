import sys

from memokit.cli import main

sys.exit(main())
