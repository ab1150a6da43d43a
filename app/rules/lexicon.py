"""Keyword lists shipped with the rule evaluator.

All entries are lower case and matched as substrings of lower-cased text,
except DIESEL_PRODUCT_CODES which are matched against upper-cased product codes.
"""

GAS_STATION_VENDORS = ["shell", "bp", "exxon", "chevron", "mobil", "texaco", "sunoco"]

RESTAURANT_VENDORS = ["restaurant", "cafe", "diner", "bistro", "grill", "pizza"]

PERSONAL_EXPENSE_KEYWORDS = ["personal", "family", "gift", "birthday", "anniversary", "vacation"]

CASH_KEYWORDS = ["cash"]

FUEL_CATEGORY_KEYWORDS = ["fuel"]

MEAL_CATEGORY_KEYWORDS = ["meal", "food"]

DIESEL_PRODUCT_CODES = ["DSL"]

DIESEL_KEYWORDS = ["diesel"]
