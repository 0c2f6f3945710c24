"""
Group permissions feature module.

Per-group custom permission overrides layered on top of group role defaults,
and the resolver that answers "does this account hold this permission here".
"""
