"""Copy MySQL tables into MongoDB collections, keyed by primary key."""

__version__ = "1.0.0"
