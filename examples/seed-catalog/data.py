"""Seed data - a small category taxonomy and products with GPSR details."""

# Nested taxonomy: name -> subcategories
CATEGORY_TAXONOMY = {
    "Electronics": {
        "Mobile Accessories": {
            "Chargers": {},
            "Cases": {},
        },
        "Audio": {},
    },
    "Home & Kitchen": {
        "Kitchen Gadgets": {},
        "Storage": {},
    },
    "Toys": {},
}


# Each product names the category it belongs to
SAMPLE_PRODUCTS = [
    {
        "name": "USB-C Fast Charger 30W",
        "category": "Chargers",
        "price": 24.99,
        "description": "Compact wall charger with power delivery.",
        "gpsr_identification_details": "Model CH-30, batch 2024-06",
        "gpsr_warning_text": "Do not use with damaged cables.",
        "gpsr_statement_of_compliance": True,
        "gpsr_online_instructions_url": "https://example.com/manuals/ch-30",
    },
    {
        "name": "Silicone Phone Case",
        "category": "Cases",
        "price": 12.5,
        "description": "Shock absorbing case, several colours.",
        "gpsr_identification_details": "SKU CASE-SIL",
        "gpsr_statement_of_compliance": True,
    },
    {
        "name": "Bluetooth Speaker",
        "category": "Audio",
        "price": 59.0,
        "description": "Waterproof speaker with 12h battery.",
        "gpsr_warning_phrases": "Contains a lithium battery.",
        "gpsr_additional_safety_info": "Charge only with the supplied cable.",
    },
    {
        "name": "Vegetable Peeler",
        "category": "Kitchen Gadgets",
        "price": 6.75,
        "description": "Stainless steel Y-peeler.",
        "gpsr_warning_text": "Sharp blade. Keep away from children.",
    },
    {
        "name": "Wooden Stacking Blocks",
        "category": "Toys",
        "price": 19.99,
        "description": "30 painted beech blocks.",
        "gpsr_warning_text": "Not suitable for children under 36 months. Small parts.",
        "gpsr_statement_of_compliance": True,
    },
]
