"""canvassync - keeps canvas room snapshots and room directories in sync."""

__version__ = "0.3.0"
__logo__ = "🧭"
