# ----------------------------
# MongoDB Setup
# ----------------------------

from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, ReturnDocument

DEFAULT_DB_NAME = "medsupply"

# collection names
USERS = "users"
CONTENT = "content"
MESSAGES = "messages"


def get_database(config):
    # MongoClient connects lazily, so a bad URI only shows up on the first round trip
    client = MongoClient(
        config.MONGODB_URI,
        serverSelectionTimeoutMS=config.MONGODB_TIMEOUT_MS,
        tz_aware=True,
    )
    if config.MONGODB_DB:
        return client[config.MONGODB_DB]
    return client.get_default_database(default=DEFAULT_DB_NAME)


def to_object_id(value):
    """Parse a document id; raises InvalidId when the value can't be one."""
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would mint a fresh id instead of failing
    if not isinstance(value, str):
        raise InvalidId(f"{value!r} is not a valid ObjectId")
    return ObjectId(value)


def to_utc(value):
    # naive datetimes (date-only input, or a client without tz_aware) are UTC
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize(doc):
    """Turn a stored document into a JSON-ready dict (ObjectId -> str, exposed as _id and id, dates in UTC)."""
    if doc is None:
        return None
    data = {k: to_utc(v) for k, v in doc.items()}
    if "_id" in data:
        data["_id"] = str(data["_id"])
        data["id"] = data["_id"]
    return data


class MongoStore:
    """
    Persistence handle for the users, content and messages collections.

    Every lookup is an exact-match filter on a single collection. Errors from
    the server are left as pymongo.errors.PyMongoError for the caller to handle;
    a malformed id raises bson.errors.InvalidId, a well-formed one that matches
    nothing is not an error.
    """

    def __init__(self, db):
        self.db = db

    def collection(self, name):
        return self.db[name]

    def ensure_indexes(self):
        # MongoDB skips index creation if the index already exists
        self.collection(USERS).create_index("username", unique=True)
        self.collection(CONTENT).create_index("userId")

    def ping(self):
        return self.db.command("ping")

    def close(self):
        self.db.client.close()

    def find(self, name, filter=None):
        return list(self.collection(name).find(filter or {}))

    def find_one(self, name, filter):
        return self.collection(name).find_one(filter)

    def insert(self, name, doc):
        doc = dict(doc)
        result = self.collection(name).insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def update_by_id(self, name, id, fields):
        oid = to_object_id(id)
        if not fields:
            return self.collection(name).find_one({"_id": oid})
        return self.collection(name).find_one_and_update(
            {"_id": oid},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )

    def delete_by_id(self, name, id):
        oid = to_object_id(id)
        return self.collection(name).delete_one({"_id": oid}).deleted_count


"""

Terminal code MongoDB:
mongosh
    use medsupply
    show collections
    db.users.getIndexes()
    db.content.find({ userId: "<id>" })
    db.messages.find()
exit

"""
