"""Capstone topic registry core.

Topic lifecycle state machine, capacity-constrained registration admission
and the append-only phase history ledger for thesis/capstone topics.
"""

__version__ = "0.1.0"
