"""
Rowsmith - fluent SQL query builder and lightweight row persistence.

    >>> import rowsmith
    >>> rowsmith.configure("sqlite:app.db")
    >>> rowsmith.for_table("person").where("name", "Fred").find_one()
"""

__version__ = "0.1.0"

# Re-export everything from the actual implementation
from rowsmith.core import *  # noqa
