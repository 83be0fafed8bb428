import sys

from tritrace.app import main

sys.exit(main())
