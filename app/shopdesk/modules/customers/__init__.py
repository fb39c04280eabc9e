"""
Customers module.

Scope:
- Customers CRUD for the active shop (list + search + create + edit + delete)
- Loan badge / history per customer, read from the customerLoans collection
"""
