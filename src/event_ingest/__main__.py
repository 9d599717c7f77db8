import sys

from event_ingest.cli import main

if __name__ == "__main__":
    sys.exit(main())
