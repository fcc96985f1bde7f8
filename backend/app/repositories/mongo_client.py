"""MongoDB Client - Connection and Collection Management"""
from typing import Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

PRINCIPALS = "principals"
TICKETS = "tickets"
AUDIT_EVENTS = "audit_events"
ENTERPRISE_ROLES = "enterprise_roles"
INAPP_NOTIFICATIONS = "inapp_notifications"

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    return get_database()[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    principals = db[PRINCIPALS]
    principals.create_index("principal_id", unique=True)
    principals.create_index("email", unique=True)
    principals.create_index([("role", ASCENDING), ("created_by", ASCENDING)])
    principals.create_index("profile.role_id", sparse=True)
    # One admin per enterprise id; this is also the routing lookup
    principals.create_index(
        "enterprise.enterprise_id",
        name="uniq_admin_enterprise_id",
        unique=True,
        partialFilterExpression={
            "role": "admin",
            "enterprise.enterprise_id": {"$type": "string"},
        },
    )
    principals.create_index(
        "product_access.access_link",
        name="uniq_access_link",
        unique=True,
        partialFilterExpression={"product_access.access_link": {"$type": "string"}},
    )

    tickets = db[TICKETS]
    tickets.create_index("ticket_id", unique=True)
    tickets.create_index([("assigned_admin_id", ASCENDING), ("status", ASCENDING)])
    tickets.create_index([("enterprise_id", ASCENDING), ("created_at", DESCENDING)])
    tickets.create_index([("submitted_by", ASCENDING), ("status", ASCENDING)])
    tickets.create_index([("forwarded_to_superadmin", ASCENDING), ("created_at", DESCENDING)])

    audit_events = db[AUDIT_EVENTS]
    audit_events.create_index("audit_event_id", unique=True)
    audit_events.create_index([("target_id", ASCENDING), ("timestamp", DESCENDING)])
    audit_events.create_index("timestamp", background=True)
    audit_events.create_index("correlation_id")

    roles = db[ENTERPRISE_ROLES]
    roles.create_index("role_id", unique=True)
    roles.create_index([("enterprise_id", ASCENDING), ("name", ASCENDING)], unique=True)

    notifications = db[INAPP_NOTIFICATIONS]
    notifications.create_index("notification_id", unique=True)
    notifications.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])
    notifications.create_index([("recipient_id", ASCENDING), ("is_read", ASCENDING)])
    # TTL: documents go away once expires_at passes
    notifications.create_index("expires_at", expireAfterSeconds=0)

    logger.info("MongoDB indexes created successfully")
