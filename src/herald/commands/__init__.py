"""
Command subsystem.

Components:
- registry.py: command registration / lookup / help
- auditor.py: per-user, per-command rate counting
- builtin.py: help, status, tasks, schedule, unschedule
"""
