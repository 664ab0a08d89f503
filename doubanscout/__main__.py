import sys

from doubanscout.cli import main

sys.exit(main())
