"""
Console output. Everything goes to stderr so page HTML can be piped.
"""
import sys


def log(message):
    """Log informational messages to stderr."""
    print(f"\033[92m\033[1mINFO:\033[0m {message}", file=sys.stderr)


def warn(message):
    print(f"\033[93m\033[1mWARN:\033[0m {message}", file=sys.stderr)


def debug_log(message, verbose=False):
    """Log a debug message to stderr if verbose mode is enabled."""
    if verbose:
        print(f"\033[94mDEBUG:\033[0m {message}", file=sys.stderr)
