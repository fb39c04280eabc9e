"""
Customer loans (read-only).

Loans are created by the sales screen; this module only loads them for the
active shop and rolls them up per customer.
"""
