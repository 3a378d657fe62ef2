"""Assistant tools package."""

from orderbot.tools.base import BaseTool
from orderbot.tools.catalog_tools import OrderLookupTool, ProductSearchTool
from orderbot.tools.date_time import DateTimeTool

__all__ = [
    "BaseTool",
    "DateTimeTool",
    "OrderLookupTool",
    "ProductSearchTool",
]
