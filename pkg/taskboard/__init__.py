# Task board core: structural consistency and development claims
#
# Components:
#   schema.py      - Data model (Project, Column, Activity) and update commands
#   errors.py      - Typed errors with stable HTTP status codes
#   store.py       - Record storage (SQLite and in-memory)
#   guard.py       - Version-stamped commits and the bounded retry loop
#   claims.py      - Exclusive "in development" claims
#   columns.py     - Column set operations and invariants
#   placement.py   - Activity placement and moves between columns
#   access.py      - Project membership rules
#   events.py      - Mutation events for UI refresh
#   coordinator.py - Entry point sequencing all of the above
#   config.py      - YAML/env configuration
