"""
fleetsync

Configuration sync pipeline:
- hub/ - Version-authoritative configuration store (FastAPI)
- relay/ - Poll, detect and push loop between hub and leaf
- leaf/ - Holds the current configuration and runs tasks against it
- common/ - Shared models, errors, logging and signing
"""

__version__ = "1.0.0"
