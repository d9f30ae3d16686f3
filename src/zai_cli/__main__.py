import sys

from zai_cli.cli import main

sys.exit(main())
