#!/usr/bin/env python3
"""
Entry point for running revmark as a module with python3 -m revmark
"""
from .cli import main

if __name__ == "__main__":
    main()
