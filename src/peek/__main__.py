import sys

from peek.app import main

sys.exit(main())
