"""
In-memory stand-in for the motor database/collection API used by the services.

Supports the query and update subset the inventory code relies on: dotted and
positional paths, ``$set``/``$inc``/``$setOnInsert``, upserts, unique indexes
and cursor ``sort``/``limit``/``to_list``. Every operation yields to the event
loop once before touching data so that ``asyncio.gather`` interleaves
concurrent callers between operations, the way a real server would, while
each single operation stays atomic.
"""

import asyncio
import copy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

_MISSING = object()


def _resolve(node, parts):
    """All values reachable at ``parts``; arrays are traversed implicitly."""
    if not parts:
        return [node]
    head, rest = parts[0], parts[1:]
    if isinstance(node, dict):
        if head in node:
            return _resolve(node[head], rest)
        return []
    if isinstance(node, list):
        if head.isdigit():
            index = int(head)
            return _resolve(node[index], rest) if index < len(node) else []
        values = []
        for element in node:
            if isinstance(element, dict):
                values.extend(_resolve(element, parts))
        return values
    return []


def _flatten(values):
    flat = []
    for value in values:
        flat.append(value)
        if isinstance(value, list):
            flat.extend(value)
    return flat


def _equals(values, expected) -> bool:
    if expected is None:
        return not values or any(v is None for v in values)
    return any(v == expected for v in _flatten(values))


def _compare(values, op, expected) -> bool:
    for value in _flatten(values):
        if value is None or isinstance(value, (list, dict)):
            continue
        try:
            if op == "$gte" and value >= expected:
                return True
            if op == "$gt" and value > expected:
                return True
            if op == "$lte" and value <= expected:
                return True
            if op == "$lt" and value < expected:
                return True
        except TypeError:
            continue
    return False


def _match_condition(values, condition) -> bool:
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, expected in condition.items():
            if op == "$ne":
                if _equals(values, expected):
                    return False
            elif op in ("$gte", "$gt", "$lte", "$lt"):
                if not _compare(values, op, expected):
                    return False
            elif op == "$in":
                if not any(_equals(values, candidate) for candidate in expected):
                    return False
            elif op == "$nin":
                if any(_equals(values, candidate) for candidate in expected):
                    return False
            elif op == "$exists":
                if bool(values) != bool(expected):
                    return False
            elif op == "$type":
                if expected != "array":
                    raise NotImplementedError(f"$type {expected}")
                if not any(isinstance(v, list) for v in values):
                    return False
            elif op == "$elemMatch":
                if not any(
                    isinstance(v, list) and any(isinstance(el, dict) and matches(el, expected) for el in v)
                    for v in values
                ):
                    return False
            else:
                raise NotImplementedError(f"Query operator {op}")
        return True
    return _equals(values, condition)


def matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif not _match_condition(_resolve(doc, key.split(".")), condition):
            return False
    return True


def _get(doc, parts):
    node = doc
    for part in parts:
        if isinstance(node, dict):
            if part not in node:
                return _MISSING
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            return _MISSING
    return node


def _set(doc, parts, value):
    node = doc
    for part in parts[:-1]:
        if isinstance(node, list):
            node = node[int(part)]
            continue
        if not isinstance(node.get(part), (dict, list)):
            node[part] = {}
        node = node[part]
    last = parts[-1]
    if isinstance(node, list):
        index = int(last)
        if index == len(node):
            node.append(value)
        else:
            node[index] = value
    else:
        node[last] = value


def apply_update(doc, update, inserting=False):
    for op, fields in update.items():
        if op == "$setOnInsert" and not inserting:
            continue
        for path, value in fields.items():
            parts = path.split(".")
            if op in ("$set", "$setOnInsert"):
                _set(doc, parts, copy.deepcopy(value))
            elif op == "$inc":
                current = _get(doc, parts)
                _set(doc, parts, (0 if current is _MISSING or current is None else current) + value)
            else:
                raise NotImplementedError(f"Update operator {op}")


class MockCursor:

    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self._limit = 0

    def sort(self, key, direction=1):
        keys = [(key, direction)] if isinstance(key, str) else list(key)
        for field, order in reversed(keys):
            def sort_key(doc, field=field):
                values = _resolve(doc, field.split("."))
                value = values[0] if values else None
                return (value is not None, value)
            self._docs.sort(key=sort_key, reverse=order < 0)
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def _results(self):
        return self._docs[: self._limit] if self._limit else self._docs

    async def to_list(self, length: Optional[int] = None):
        await asyncio.sleep(0)
        results = self._results()
        return results[:length] if length else results

    def __aiter__(self):
        self._iter = iter(self._results())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class MockCollection:

    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.unique_fields: List[str] = []
        self.calls: List[str] = []
        # Exceptions to raise from a named operation, consumed in order
        self.failures: Dict[str, List[Exception]] = {}

    async def _enter(self, operation: str):
        await asyncio.sleep(0)
        self.calls.append(operation)
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    def fail_next(self, operation: str, exc: Exception):
        self.failures.setdefault(operation, []).append(exc)

    def _check_unique(self, doc):
        for field in self.unique_fields:
            value = _get(doc, field.split("."))
            if value is _MISSING:
                continue
            for existing in self.docs:
                if existing is not doc and _get(existing, field.split(".")) == value:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {field}", 11000)

    async def create_index(self, keys, unique=False, name=None, **kwargs):
        await self._enter("create_index")
        fields = [keys] if isinstance(keys, str) else [k for k, _ in keys]
        if unique:
            self.unique_fields.append(".".join(fields))
        return name or "_".join(fields)

    async def insert_one(self, doc):
        await self._enter("insert_one")
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self._check_unique(doc)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def insert_many(self, docs):
        ids = []
        for doc in docs:
            ids.append((await self.insert_one(doc)).inserted_id)
        return SimpleNamespace(inserted_ids=ids)

    def _first(self, query):
        for doc in self.docs:
            if matches(doc, query):
                return doc
        return None

    async def find_one(self, query=None, *args, **kwargs):
        await self._enter("find_one")
        doc = self._first(query or {})
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query=None, *args, **kwargs):
        self.calls.append("find")
        return MockCursor([copy.deepcopy(doc) for doc in self.docs if matches(doc, query or {})])

    async def count_documents(self, query):
        await self._enter("count_documents")
        return sum(1 for doc in self.docs if matches(doc, query))

    def _upsert(self, query, update):
        doc = {k: copy.deepcopy(v) for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        doc.setdefault("_id", ObjectId())
        apply_update(doc, update, inserting=True)
        self._check_unique(doc)
        self.docs.append(doc)
        return doc

    async def update_one(self, query, update, upsert=False, **kwargs):
        await self._enter("update_one")
        doc = self._first(query)
        if doc is None:
            if upsert:
                created = self._upsert(query, update)
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=created["_id"])
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        before = copy.deepcopy(doc)
        apply_update(doc, update)
        return SimpleNamespace(matched_count=1, modified_count=int(before != doc), upserted_id=None)

    async def find_one_and_update(
        self, query, update, return_document=ReturnDocument.BEFORE, upsert=False, **kwargs
    ):
        await self._enter("find_one_and_update")
        doc = self._first(query)
        if doc is None:
            if upsert:
                return copy.deepcopy(self._upsert(query, update))
            return None
        before = copy.deepcopy(doc)
        apply_update(doc, update)
        return copy.deepcopy(doc if return_document == ReturnDocument.AFTER else before)

    def get(self, _id) -> Optional[Dict[str, Any]]:
        """Synchronous peek used by assertions."""
        for doc in self.docs:
            if doc["_id"] == _id:
                return doc
        return None


class MockDatabase:

    def __init__(self, name: str = "test_db"):
        self.name = name
        self.collections: Dict[str, MockCollection] = {}

    def __getitem__(self, name: str) -> MockCollection:
        if name not in self.collections:
            self.collections[name] = MockCollection(name)
        return self.collections[name]

    async def command(self, name, *args, **kwargs):
        await asyncio.sleep(0)
        if name == "ping":
            return {"ok": 1.0}
        raise NotImplementedError(name)

    async def list_collection_names(self):
        await asyncio.sleep(0)
        return list(self.collections.keys())
