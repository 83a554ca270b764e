#!/usr/bin/env python3
from staticpost.cli import main

if __name__ == "__main__":
    main()
