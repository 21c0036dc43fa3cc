#!/usr/bin/env python3

from crosschain_bridge.cli import run

if __name__ == "__main__":
    run()
