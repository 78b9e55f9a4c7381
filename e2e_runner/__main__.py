import sys

from e2e_runner.main import main

sys.exit(main())
