#!/usr/bin/env python3
"""
Convenience entry point for running inspectionscheduler from a checkout.

Usage: python scheduler.py [command] [options]
"""

from inspectionscheduler.cli.app import app

if __name__ == "__main__":
    app()
