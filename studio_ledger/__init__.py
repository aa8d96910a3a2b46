"""
Studio Ledger - Source Package

Business-operations core for a photography/videography studio:
leads, clients, projects, freelancers and the money that moves between them.

DESIGN PRINCIPLES:
1. The transaction list is the only source of truth for money
2. Balances are derived, never edited
3. Validate everything before mutating anything
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Studio Ledger Team"
