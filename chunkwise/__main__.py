import sys

from chunkwise.main import main

sys.exit(main())
