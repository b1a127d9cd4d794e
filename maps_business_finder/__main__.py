"""
__main__.py - Entry point for running the package as a module
------------------------------------------------------------
Allows running the package with `python -m maps_business_finder`
"""
import sys

from maps_business_finder.main import main

if __name__ == "__main__":
    sys.exit(main())
