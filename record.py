#!/usr/bin/env python3
"""
Convenience entry point for headless N-body recording.

Usage:
    python record.py                          # Record with config defaults
    python record.py --frames 600 -n 500      # Override frame/body count
    python record.py --list                   # List all recordings
"""

from tools.record import main

if __name__ == "__main__":
    main()
