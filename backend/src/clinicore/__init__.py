"""clinicore: metadata-driven CRUD API for clinic records."""

__version__ = "0.1.0"
