import sys

from decimalenv.cli import main

sys.exit(main())
