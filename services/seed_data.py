"""
Starter catalog for a fresh local install.
"""

from typing import List

from models.pantry_item import Category, ItemCandidate, PantryItem, Unit


STARTER_CATALOG = [
    ItemCandidate("Coffee", 40, Unit.CUP, Category.BEVERAGES),
    ItemCandidate("Green Tea", 30, Unit.CUP, Category.BEVERAGES),
    ItemCandidate("Mineral Water", 48, Unit.BOTTLE, Category.BEVERAGES),
    ItemCandidate("Orange Juice", 24, Unit.BOTTLE, Category.BEVERAGES),
    ItemCandidate("Cola", 24, Unit.CAN, Category.BEVERAGES),
    ItemCandidate("Potato Chips", 20, Unit.PACK, Category.SNACKS),
    ItemCandidate("Chocolate Bar", 25, Unit.PIECE, Category.SNACKS),
    ItemCandidate("Mixed Nuts", 15, Unit.PACK, Category.SNACKS),
    ItemCandidate("Club Sandwich", 12, Unit.PLATE, Category.FOOD),
    ItemCandidate("Fruit Plate", 10, Unit.PLATE, Category.FOOD),
    ItemCandidate("Notepad", 30, Unit.PIECE, Category.STATIONERY),
    ItemCandidate("Ballpoint Pen", 50, Unit.PIECE, Category.STATIONERY),
    ItemCandidate("Phone Charger", 8, Unit.PIECE, Category.ELECTRONICS),
    ItemCandidate("Toothbrush Kit", 20, Unit.PACK, Category.OTHER),
]


def build_starter_items() -> List[PantryItem]:
    """Fresh PantryItems (new ids and timestamps) for the starter catalog."""
    return [PantryItem.create(candidate) for candidate in STARTER_CATALOG]
