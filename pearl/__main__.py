import sys

from pearl.pearl_cli import main

sys.exit(main())
