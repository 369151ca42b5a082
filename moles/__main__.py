import sys

from moles.cli import main

sys.exit(main())
