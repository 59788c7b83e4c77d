"""
MTD: a small todo and task tracker with encrypted sync.

One server, any number of clients. Every client keeps its own
list and reconciles it with the server over an encrypted link.
"""

import os

__version__ = "0.1.0"

MTD_HOME = os.environ.get("MTD_HOME", "~/.mtd")
