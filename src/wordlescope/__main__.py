import sys

from wordlescope.cli import main

sys.exit(main())
