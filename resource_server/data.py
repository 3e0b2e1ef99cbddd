"""
Sample data served by the resource server (in-memory).
"""
USERS = [
    {"id": "1", "name": "Alice Johnson", "email": "alice@example.com"},
    {"id": "2", "name": "Bob Singh", "email": "bob@example.com"},
    {"id": "3", "name": "Charlie Kim", "email": "charlie@example.com"},
]

PRODUCTS = [
    {"id": "p1", "name": "Laptop", "price": 1299.99, "currency": "USD"},
    {"id": "p2", "name": "Mechanical Keyboard", "price": 129.0, "currency": "USD"},
    {"id": "p3", "name": "Noise-canceling Headphones", "price": 249.99, "currency": "USD"},
]


def find_user(user_id: str) -> dict | None:
    return next((u for u in USERS if u["id"] == user_id), None)


def list_products(limit: int | None = None) -> list[dict]:
    if limit is None:
        return PRODUCTS
    return PRODUCTS[: max(0, min(len(PRODUCTS), limit))]
