"""
Royalty Kernel

Shared core of the royalty ingestion pipeline:
- Exact decimal Money and Percentage values
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy models, engine and immutability listeners
- The RoyaltyStore boundary and a process-wide cache service
"""

__version__ = "0.1.0"
