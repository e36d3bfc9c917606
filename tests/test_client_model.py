from __future__ import annotations

from tierboard_client.model import TIERS, apply_event, empty_board, move_item, new_item


def _board() -> dict:
    board = empty_board()
    board["unranked"] = [{"id": "1", "name": "a"}, {"id": "2", "name": "b"}]
    return board


def test_move_item_between_tiers() -> None:
    board = _board()
    assert move_item(board, "1", "S")
    assert board["S"] == [{"id": "1", "name": "a"}]
    assert board["unranked"] == [{"id": "2", "name": "b"}]

    assert move_item(board, "1", "unranked")
    assert board["unranked"][-1]["id"] == "1"
    assert board["S"] == []


def test_move_item_unknown_id_or_tier() -> None:
    board = _board()
    assert not move_item(board, "404", "S")
    assert not move_item(board, "1", "F")
    assert board == _board()


def test_new_item_trims_and_skips_blank() -> None:
    assert new_item("   ") is None
    item = new_item("  새 아이템 ", now=1700000000.123)
    assert item == {"id": "1700000000123", "name": "새 아이템"}


def test_new_item_clips_long_name() -> None:
    item = new_item("x" * 150, now=1.0)
    assert item is not None
    assert len(item["name"]) == 100


def test_apply_event_initial_and_tier_updates() -> None:
    board = _board()
    incoming = empty_board()
    incoming["A"] = [{"id": "5", "name": "e"}]

    updated = apply_event(board, {"ev": "tierUpdated", "tierData": incoming})

    assert updated == incoming
    assert set(updated) == set(TIERS)
    assert apply_event(board, {"ev": "initialData", "tierData": None}) is board


def test_apply_event_item_added_appends_to_unranked() -> None:
    board = _board()
    updated = apply_event(board, {"ev": "itemAdded", "item": {"id": "9", "name": "X"}})
    assert updated["unranked"][-1] == {"id": "9", "name": "X"}
    assert len(updated["unranked"]) == 3


def test_client_shares_bucket_constants_with_server() -> None:
    from tierboard import board as server_board
    from tierboard_client import model

    assert model.TIERS is server_board.TIERS
    assert model.UNRANKED == server_board.UNRANKED
    assert model.MAX_NAME_LENGTH == server_board.MAX_NAME_LENGTH
    assert model.empty_board() == server_board.empty_board()
