from .streams import STREAM_OPTIONS, inventory_items, inventory_levels, locations, orders, products

__all__ = ["orders", "products", "locations", "inventory_items", "inventory_levels"]
