from __future__ import annotations

import copy
import itertools
import threading
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from tournament_engine import (
    RegistrationGuard,
    TournamentOrchestrator,
    TournamentStorage,
)
from tournament_engine.models import TournamentConfig


def _conditional_failure(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


def _transaction_canceled(reasons: list[str]) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "TransactionCanceledException",
                "Message": "Transaction cancelled",
            },
            "CancellationReasons": [{"Code": reason} for reason in reasons],
        },
        "TransactWriteItems",
    )


def evaluate_condition(condition, item: dict[str, object] | None) -> bool:
    expression = condition.get_expression()
    operator = expression["operator"]
    values = expression["values"]
    if operator == "AND":
        return all(evaluate_condition(value, item) for value in values)
    if operator == "OR":
        return any(evaluate_condition(value, item) for value in values)
    if operator == "NOT":
        return not evaluate_condition(values[0], item)

    name = values[0].name
    if operator == "attribute_not_exists":
        return item is None or name not in item
    if operator == "attribute_exists":
        return item is not None and name in item
    current = None if item is None else item.get(name)
    if operator == "=":
        return current == values[1]
    if operator == "begins_with":
        return isinstance(current, str) and current.startswith(values[1])
    raise NotImplementedError(f"Unsupported condition operator {operator}")


class FakeTable:
    """In-memory stand-in for a DynamoDB ``Table`` resource."""

    def __init__(self, name: str = "tournaments") -> None:
        self.name = name
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self._lock = threading.Lock()
        self.meta = SimpleNamespace(
            client=SimpleNamespace(transact_write_items=self.transact_write_items)
        )

    def get_item(self, *, Key, **_kwargs):
        with self._lock:
            item = self.items.get((Key["pk"], Key["sk"]))
            return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(self, *, Item, ConditionExpression=None, **_kwargs):
        key = (Item["pk"], Item["sk"])
        with self._lock:
            current = self.items.get(key)
            if ConditionExpression is not None and not evaluate_condition(
                ConditionExpression, current
            ):
                raise _conditional_failure("PutItem")
            self.items[key] = copy.deepcopy(Item)
        return {}

    def delete_item(self, *, Key, ConditionExpression=None, **_kwargs):
        key = (Key["pk"], Key["sk"])
        with self._lock:
            current = self.items.get(key)
            if ConditionExpression is not None and not evaluate_condition(
                ConditionExpression, current
            ):
                raise _conditional_failure("DeleteItem")
            self.items.pop(key, None)
        return {}

    def transact_write_items(self, *, TransactItems, **_kwargs):
        """Mimic the resource client: every condition passes or nothing is written."""
        with self._lock:
            reasons = []
            puts = []
            for action in TransactItems:
                (kind, request), = action.items()
                if kind == "Put":
                    key = (request["Item"]["pk"], request["Item"]["sk"])
                    puts.append((key, request["Item"]))
                elif kind == "ConditionCheck":
                    key = (request["Key"]["pk"], request["Key"]["sk"])
                else:
                    raise NotImplementedError(f"Unsupported transaction action {kind}")
                condition = request.get("ConditionExpression")
                passed = condition is None or evaluate_condition(
                    condition, self.items.get(key)
                )
                reasons.append("None" if passed else "ConditionalCheckFailed")
            if any(reason != "None" for reason in reasons):
                raise _transaction_canceled(reasons)
            for key, item in puts:
                self.items[key] = copy.deepcopy(item)
        return {}

    def query(self, *, KeyConditionExpression, Select="ALL_ATTRIBUTES", **_kwargs):
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression.get_expression()["values"]:
            expression = condition.get_expression()
            key, value = expression["values"]
            if key.name == "pk":
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        with self._lock:
            items = [
                copy.deepcopy(self.items[key])
                for key in sorted(self.items)
                if key[0] == pk_value and key[1].startswith(sk_prefix)
            ]
        if Select == "COUNT":
            return {"Count": len(items)}
        return {"Items": items, "Count": len(items)}

    def keys_with_prefix(self, pk: str, sk_prefix: str) -> list[tuple[str, str]]:
        return [
            key
            for key in sorted(self.items)
            if key[0] == pk and key[1].startswith(sk_prefix)
        ]


def sequential_ids(prefix: str = "id"):
    counter = itertools.count(1)
    lock = threading.Lock()

    def factory() -> str:
        with lock:
            return f"{prefix}-{next(counter)}"

    return factory


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(table: FakeTable) -> TournamentStorage:
    return TournamentStorage(table)


@pytest.fixture
def guard(storage: TournamentStorage) -> RegistrationGuard:
    return RegistrationGuard(storage, id_factory=sequential_ids("couple"))


@pytest.fixture
def orchestrator(storage: TournamentStorage) -> TournamentOrchestrator:
    return TournamentOrchestrator(
        storage,
        defaults=TournamentConfig(min_entrants=2, max_entrants=32),
        id_factory=sequential_ids(),
    )


@pytest.fixture
def open_tournament(orchestrator: TournamentOrchestrator):
    tournament = orchestrator.create_tournament("club-1", "Spring Open")
    return orchestrator.open_registration(tournament.tournament_id)
