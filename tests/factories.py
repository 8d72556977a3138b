"""Payload builders shared by the service and API tests."""


def tee_payload(**overrides):
    """A 2x2 Size/Color tee with stock at two locations."""
    payload = {
        "title": "Classic Tee",
        "status": "ACTIVE",
        "vendor": "Acme Apparel",
        "tags": "cotton, summer",
        "media": ["https://cdn.example.com/tee-black.jpg", "//cdn.example.com/tee-white.jpg"],
        "options": [
            {"name": "Size", "values": ["S", "M"]},
            {"name": "Color", "values": ["Black", "White"]},
        ],
        "variants": [
            {
                "sku": "TEE-S-BLACK",
                "price": "499.00",
                "option_values": {"Size": "S", "Color": "Black"},
                "image_url": "https://cdn.example.com/tee-black.jpg",
                "inventory": {"available": 5},
            },
            {
                "sku": "TEE-S-WHITE",
                "price": "499.00",
                "option_values": {"Size": "S", "Color": "White"},
                "inventory": {"available": 3, "location": "Warehouse"},
            },
            {
                "sku": "TEE-M-BLACK",
                "price": "549.00",
                "option_values": {"Size": "M", "Color": "Black"},
                "inventory": 7,
            },
            {
                "sku": "TEE-M-WHITE",
                "price": "549.00",
                "option_values": {"Size": "M", "Color": "White"},
            },
        ],
    }
    payload.update(overrides)
    return payload


def hoodie_payload(**overrides):
    payload = {
        "title": "Zip Hoodie",
        "handle": "zip-hoodie",
        "status": "ACTIVE",
        "variants": [
            {"sku": "HOOD-M", "price": "1299", "option_values": {"Size": "M"}, "inventory": 4},
            {"sku": "HOOD-L", "price": "1299", "option_values": {"Size": "L"}, "inventory": 2},
        ],
    }
    payload.update(overrides)
    return payload
