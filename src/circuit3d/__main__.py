import sys

from circuit3d.cli import main

sys.exit(main())
