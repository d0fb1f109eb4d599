"""
GMCT Attendance offline sync.

Local queueing and background reconciliation of class attendance with the
remote Supabase store.
"""

__version__ = "1.0.0"
