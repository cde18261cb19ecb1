import sys

from streamwatch.main import main

if __name__ == "__main__":
    sys.exit(main())
