"""Repository tracker sync: GitHub ownership and security alert dataset builder."""

__version__ = "2.0.0"
