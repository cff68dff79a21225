"""
Daily practice subsystem.

Components:
- models.py: data structures (Task, StreakState, YellowCard, enums) + record codec
- days.py: calendar-day arithmetic in the user's timezone
- storage.py: local (SQLite) and remote (HTTP) backends behind one interface
- writer.py: fire-and-forget persistence
- task_store.py: checklist ownership + daily reset
- streak_engine.py: day status, streak counter, yellow cards
- midnight.py: polling watcher for the day rollover
- progress.py: weekly completion counts
- api.py: small high-level helpers used by the rest of the app
"""
