import sys

from spechub.sync.cli import main

sys.exit(main())
