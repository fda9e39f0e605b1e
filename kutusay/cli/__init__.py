"""Unified command-line interface for kutusay.

Usage:
    kutusay scan <image>
    kutusay scan <image> --save [--invoice-id N]
    kutusay compare <items.json> <counts.json> [--invoice-no X]
    kutusay serve [--host] [--port]
"""
