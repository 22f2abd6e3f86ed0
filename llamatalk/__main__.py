"""
Entry point for `python -m llamatalk`.

The console script declared in pyproject.toml calls `llamatalk.main:main`
directly; this file gives `-m` the same behaviour.
"""

from .main import main

if __name__ == "__main__":
    main()
