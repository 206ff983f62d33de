#!/usr/bin/env python3
from blogsmith.cli import run

if __name__ == "__main__":
    run()
