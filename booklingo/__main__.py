# booklingo/__main__.py
import sys

from booklingo.cli import main

if __name__ == "__main__":
    sys.exit(main())
