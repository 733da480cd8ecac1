"""
Fincora - Statement Import Core

Turns a bank-statement PDF into reviewed ledger entries:
upload to the classification service, review the proposed
transactions, commit the ones the user keeps.

DESIGN PRINCIPLES:
1. The classifier proposes -> the user selects -> the ledger stores
2. Fail early, fail visibly (one typed error per failed upload)
3. One bad line never blocks the rest of a statement
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Fincora Team"
