#!/usr/bin/env python3
"""
Sample data for the change stream and TTL demos.

Records are keyed on a natural key (email, sku, orderNumber, sessionId,
tokenId) and upserted, so running the loader twice does not duplicate them.
The follow-up updates and inserts exist to produce change events.
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone

from pymongo.database import Database
from pymongo.errors import PyMongoError

from mongo_rs.config import credentials_from, database_name, load_config
from mongo_rs.endpoint import connect_primary
from mongo_rs.errors import BootstrapError
from mongo_rs.logging_config import log_event, setup_logging

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 60


def utcnow() -> datetime:
    # Naive UTC, which is what pymongo hands back by default
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _address(street, zip_code):
    return {"street": street, "city": "São Paulo", "state": "SP", "zipCode": zip_code}


def sample_users(now):
    return [
        {"name": "João Silva", "email": "joao.silva@example.com", "age": 30,
         "department": "Engineering", "salary": 75000, "createdAt": now,
         "address": _address("Rua das Flores, 123", "01234-567"),
         "skills": ["JavaScript", "Python", "MongoDB"]},
        {"name": "Maria Santos", "email": "maria.santos@example.com", "age": 28,
         "department": "Marketing", "salary": 65000, "createdAt": now,
         "address": _address("Av. Paulista, 456", "01311-100"),
         "skills": ["Digital Marketing", "Analytics", "SEO"]},
        {"name": "Carlos Oliveira", "email": "carlos.oliveira@example.com", "age": 35,
         "department": "Sales", "salary": 80000, "createdAt": now,
         "address": _address("Rua Augusta, 789", "01305-100"),
         "skills": ["Sales", "CRM", "Negotiation"]},
    ]


def sample_products(now):
    return [
        {"name": "Laptop Dell Inspiron", "sku": "LAPTOP-DELL-001", "price": 2500.00,
         "category": "Electronics", "description": "High-performance laptop for professionals",
         "inStock": True, "quantity": 50, "createdAt": now,
         "specifications": {"processor": "Intel i7", "memory": "16GB RAM",
                            "storage": "512GB SSD", "screen": "15.6 inch"},
         "tags": ["laptop", "dell", "professional"]},
        {"name": "Mouse Logitech MX Master", "sku": "MOUSE-LOG-001", "price": 299.99,
         "category": "Accessories", "description": "Ergonomic wireless mouse",
         "inStock": True, "quantity": 100, "createdAt": now,
         "specifications": {"type": "Wireless", "battery": "Rechargeable",
                            "compatibility": "Multi-device"},
         "tags": ["mouse", "logitech", "wireless"]},
        {"name": 'Monitor Samsung 24"', "sku": "MONITOR-SAM-001", "price": 899.00,
         "category": "Electronics", "description": "Full HD monitor with excellent color accuracy",
         "inStock": False, "quantity": 0, "createdAt": now,
         "specifications": {"size": "24 inch", "resolution": "1920x1080",
                            "panel": "IPS", "refreshRate": "60Hz"},
         "tags": ["monitor", "samsung", "full-hd"]},
    ]


def sample_orders(now, users, products):
    return [
        {"userId": users[0]["_id"], "orderNumber": "ORD-2024-001", "status": "completed",
         "totalAmount": 3199.99, "createdAt": now - timedelta(days=1), "updatedAt": now,
         "items": [
             {"productId": products[0]["_id"], "productName": products[0]["name"],
              "quantity": 1, "price": 2500.00},
             {"productId": products[1]["_id"], "productName": products[1]["name"],
              "quantity": 1, "price": 299.99},
         ],
         "shipping": {"address": users[0]["address"], "method": "Standard", "cost": 29.99},
         "payment": {"method": "Credit Card", "status": "paid", "transactionId": "TXN-12345"}},
        {"userId": users[1]["_id"], "orderNumber": "ORD-2024-002", "status": "processing",
         "totalAmount": 929.98, "createdAt": now - timedelta(hours=12), "updatedAt": now,
         "items": [
             {"productId": products[2]["_id"], "productName": products[2]["name"],
              "quantity": 1, "price": 899.00},
         ],
         "shipping": {"address": users[1]["address"], "method": "Express", "cost": 49.99},
         "payment": {"method": "PIX", "status": "paid", "transactionId": "PIX-67890"}},
    ]


def upsert_by(collection, key, docs):
    """Insert each doc unless one with the same ``key`` exists; return the stored docs."""
    stored = []
    for doc in docs:
        collection.update_one({key: doc[key]}, {"$setOnInsert": doc}, upsert=True)
        stored.append(collection.find_one({key: doc[key]}))
    return stored


def seed_sample_data(db: Database, now=None) -> dict:
    now = now or utcnow()
    users = upsert_by(db.users, "email", sample_users(now))
    products = upsert_by(db.products, "sku", sample_products(now))
    upsert_by(db.orders, "orderNumber", sample_orders(now, users, products))

    db.users.update_one({"email": "joao.silva@example.com"},
                        {"$set": {"salary": 78000, "lastUpdated": now}})
    db.products.update_one({"sku": "LAPTOP-DELL-001"},
                           {"$inc": {"quantity": -1}, "$set": {"lastUpdated": now}})
    db.orders.update_one({"orderNumber": "ORD-2024-002"},
                         {"$set": {"status": "shipped", "shippedAt": now, "updatedAt": now}})

    upsert_by(db.users, "email", [
        {"name": "Ana Costa", "email": "ana.costa@example.com", "age": 26,
         "department": "Design", "salary": 55000, "createdAt": now,
         "address": _address("Rua Oscar Freire, 321", "01426-001"),
         "skills": ["UI/UX", "Figma", "Adobe Creative Suite"]},
    ])
    upsert_by(db.products, "sku", [
        {"name": "Teclado Mecânico RGB", "sku": "KEYBOARD-RGB-001", "price": 450.00,
         "category": "Accessories", "description": "Mechanical keyboard with RGB lighting",
         "inStock": True, "quantity": 75, "createdAt": now,
         "specifications": {"switchType": "Cherry MX Blue", "lighting": "RGB",
                            "connectivity": "USB-C"},
         "tags": ["keyboard", "mechanical", "rgb", "gaming"]},
    ])

    counts = {name: db[name].count_documents({}) for name in ("users", "products", "orders")}
    log_event(logger, logging.INFO, "seed.sample_data", "Sample data inserted.", **counts)
    return counts


def ttl_sessions(now):
    base = [
        ("sess_demo_001", "user_123", "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
         "192.168.1.100", 30, "web", ["dashboard", "reports"]),
        ("sess_demo_002", "user_456", "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
         "192.168.1.101", 45, "mobile", ["profile", "settings"]),
        ("sess_demo_003", "user_789", "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36",
         "192.168.1.102", 60, "desktop", ["admin", "analytics"]),
    ]
    sessions = [
        {"sessionId": sid, "userId": uid, "userAgent": agent, "ipAddress": ip,
         "loginAt": now, "expiresAt": now + timedelta(seconds=secs), "isActive": True,
         "metadata": {"source": source, "features": features, "lastActivity": now}}
        for sid, uid, agent, ip, secs, source, features in base
    ]
    # One session expiring every 30 seconds for the continuous demo
    for i in range(1, 6):
        sessions.append({
            "sessionId": f"sess_continuous_{i:03d}", "userId": f"demo_user_{i}",
            "userAgent": "TTL Demo Client", "ipAddress": f"192.168.1.{200 + i}",
            "loginAt": now, "expiresAt": now + timedelta(seconds=30 * i), "isActive": True,
            "metadata": {"source": "ttl_demo", "batchNumber": i, "demoType": "continuous_expiration"},
        })
    return sessions


def ttl_tokens(now):
    return [
        {"tokenId": "token_api_001", "userId": "user_123", "tokenType": "api_key",
         "scopes": ["read", "write"], "createdAt": now, "isRevoked": False,
         "metadata": {"clientApp": "mobile_app", "permissions": ["user.profile", "user.orders"]}},
        {"tokenId": "token_refresh_002", "userId": "user_456", "tokenType": "refresh_token",
         "scopes": ["refresh"], "createdAt": now + timedelta(seconds=10), "isRevoked": False,
         "metadata": {"clientApp": "web_app", "permissions": ["user.profile"]}},
        {"tokenId": "token_temp_003", "userId": "user_789", "tokenType": "temporary",
         "scopes": ["admin"], "createdAt": now + timedelta(seconds=20), "isRevoked": False,
         "metadata": {"clientApp": "admin_panel", "permissions": ["admin.users", "admin.system"]}},
    ]


def seed_ttl_data(db: Database, now=None) -> dict:
    """Upsert sessions and tokens; re-running refreshes their expiry times."""
    now = now or utcnow()
    for doc in ttl_sessions(now):
        db.sessions.update_one({"sessionId": doc["sessionId"]}, {"$set": doc}, upsert=True)
    for doc in ttl_tokens(now):
        db.user_tokens.update_one({"tokenId": doc["tokenId"]}, {"$set": doc}, upsert=True)
    counts = {
        "sessions": db.sessions.count_documents({}),
        "user_tokens": db.user_tokens.count_documents({}),
    }
    log_event(logger, logging.INFO, "seed.ttl_data", "TTL sample data inserted.", **counts)
    return counts


def expiration_timeline(db: Database, now) -> list:
    """``(kind, id, seconds_left, expires_at)`` tuples in expiry order."""
    timeline = []
    for s in db.sessions.find().sort("expiresAt", 1):
        expires = s["expiresAt"]
        timeline.append(("session", s["sessionId"], round((expires - now).total_seconds()), expires))
    for t in db.user_tokens.find().sort("createdAt", 1):
        expires = t["createdAt"] + timedelta(seconds=TOKEN_TTL_SECONDS)
        timeline.append(("token", t["tokenId"], round((expires - now).total_seconds()), expires))
    return timeline


def main(argv=None):
    p = argparse.ArgumentParser(description="Insert sample data for the change stream demos")
    p.add_argument("--config", help="Path to mongo_servers.yml")
    p.add_argument("--db", help="Target database (default from config or MONGO_DB)")
    p.add_argument("--ttl", action="store_true", help="Also insert TTL expiration demo data")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)
    setup_logging(args.log_level)

    try:
        cfg = load_config(args.config)
        with connect_primary(cfg["servers"], credentials_from(cfg)) as client:
            db = client[args.db or database_name(cfg)]
            for name, count in seed_sample_data(db).items():
                print(f"{name}: {count}")
            if args.ttl:
                now = utcnow()
                seed_ttl_data(db, now)
                print(f"\nTTL expiration timeline (now: {now.isoformat()}Z):")
                for kind, ident, secs, expires in expiration_timeline(db, now):
                    print(f"{kind} {ident}: expires in {secs} seconds ({expires.isoformat()}Z)")
    except BootstrapError as e:
        print(f"Error: {e}")
        return e.exit_code
    except (PyMongoError, ConnectionError) as e:
        print(f"Error inserting sample data: {e}")
        return 1
    print("Sample data insertion completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
