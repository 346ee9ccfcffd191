"""Topics module: lifecycle state machine, phase history ledger and lifecycle engine."""
