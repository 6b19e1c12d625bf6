import sys

from rulesmith.cli import main

sys.exit(main())
