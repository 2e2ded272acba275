"""
POS checkout service: per-table carts, customer/discount step, payment and
settlement against the backend order service.
"""
