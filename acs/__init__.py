"""App Container Supervisor (ACS).

Single-node supervisor that keeps one Docker container running per
application directory:
 - app discovery from an apps root directory
 - bounded-retry bring-up at start
 - steady-state reconciliation (restart crashed or missing containers)
 - optional read-only status API and event log

Process-level restarts are left to systemd.
"""

__version__ = "1.0.0"
