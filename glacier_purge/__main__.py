import sys

from glacier_purge.cli import main

sys.exit(main())
