"""cartograph -- convert a Lich mapdb between its monolithic JSON form and a
per-room git tree with extracted StringProc files."""

__version__ = "0.4.0"
