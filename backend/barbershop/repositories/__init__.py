"""SQLAlchemy implementations of the domain repository interfaces."""
