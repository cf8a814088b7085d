import sys

from tunechange.web import main

sys.exit(main())
