import sys

from schemapipe.cli import main

sys.exit(main())
