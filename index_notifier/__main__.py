import sys

from index_notifier.main import main

sys.exit(main())
