"""Expense splitting, balances and chunked history pagination for shared parties."""
