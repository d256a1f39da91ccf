"""
Estate CRM - API backend for a real-estate agency.

Accounts, roles and approval live in `estate_crm.auth`; every business
entity (properties, clients, deals, ...) is served by the generic
resource gateway in `estate_crm.api`.
"""

__version__ = "0.1.0"
