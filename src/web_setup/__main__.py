import sys

from web_setup.main import main

sys.exit(main())
