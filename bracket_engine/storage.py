from __future__ import annotations

import logging

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .draft import DraftState, Selection
from .models import Bracket

log = logging.getLogger(__name__)

_CONDITIONAL_FAILURE = "ConditionalCheckFailedException"


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITIONAL_FAILURE


class EngineStorage:
    """DynamoDB persistence for brackets and draft state.

    Engine operations never call this; the application loads a snapshot,
    applies an operation and writes the result back.
    """

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Engine table is not configured")

    # ----- Brackets -----
    def save_bracket(self, bracket: Bracket) -> None:
        self.ensure_table()
        self._table.put_item(Item=bracket.to_item())
        for row in bracket.match_rows():
            self._table.put_item(Item=row)
        log.debug("Saved bracket %s", bracket.tournament_id)

    def get_bracket(self, tournament_id: str) -> Bracket | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Bracket.key(tournament_id))
        item = resp.get("Item")
        if not item:
            return None
        return Bracket.from_item(item)

    def list_match_rows(self, tournament_id: str) -> list[dict]:
        self.ensure_table()
        resp = self._table.query(
            KeyConditionExpression=Key("pk").eq(Bracket.PK_TEMPLATE % tournament_id)
            & Key("sk").begins_with("MATCH#"),
            Select="ALL_ATTRIBUTES",
        )
        rows = list(resp.get("Items", []))
        rows.sort(key=lambda row: str(row.get("sk", "")))
        return rows

    def delete_bracket(self, tournament_id: str) -> None:
        self.ensure_table()
        for row in self.list_match_rows(tournament_id):
            self._table.delete_item(Key={"pk": row["pk"], "sk": row["sk"]})
        self._table.delete_item(Key=Bracket.key(tournament_id))

    # ----- Drafts -----
    def get_draft_state(self, match_id: str) -> DraftState | None:
        self.ensure_table()
        resp = self._table.get_item(Key=DraftState.key(match_id))
        item = resp.get("Item")
        if not item:
            return None
        return DraftState.from_item(item)

    def save_draft_state(
        self, state: DraftState, *, expected_version: int | None = None
    ) -> bool:
        """Write ``state`` unless another writer committed since it was read.

        ``expected_version`` defaults to ``state.version - 1``, the version the
        transition was computed from.
        """
        self.ensure_table()
        if expected_version is None:
            expected_version = state.version - 1
        try:
            self._table.put_item(
                Item=state.to_item(),
                ConditionExpression="attribute_not_exists(pk) OR #version = :expected",
                ExpressionAttributeNames={"#version": "version"},
                ExpressionAttributeValues={":expected": expected_version},
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                log.debug(
                    "Draft %s changed underneath version %s",
                    state.match_id,
                    expected_version,
                )
                return False
            raise
        return True

    def record_selection(self, match_id: str, selection: Selection) -> bool:
        """Store one selection row; False if the phase already has one."""
        self.ensure_table()
        item: dict[str, object] = {
            "pk": DraftState.PK_TEMPLATE % match_id,
            "sk": DraftState.SELECTION_SK_TEMPLATE % selection.phase_index,
            "match_id": match_id,
        }
        item.update(selection.to_dict())
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(pk)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    def list_selections(self, match_id: str) -> list[Selection]:
        self.ensure_table()
        resp = self._table.query(
            KeyConditionExpression=Key("pk").eq(DraftState.PK_TEMPLATE % match_id)
            & Key("sk").begins_with("SELECTION#"),
            Select="ALL_ATTRIBUTES",
        )
        selections = [Selection.from_dict(item) for item in resp.get("Items", [])]
        selections.sort(key=lambda entry: entry.phase_index)
        return selections


__all__ = ["EngineStorage"]
