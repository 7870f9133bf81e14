import sys

from lokichunk.cli import main

sys.exit(main())
