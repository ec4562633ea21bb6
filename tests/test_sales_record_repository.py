"""
tests/test_sales_record_repository.py

Owner scoping and ordering of SalesRecordRepository.
"""

from __future__ import annotations

import datetime as dt
import uuid

import pytest

from app.domain.sales import SalesRecordInput
from app.repositories.sales_record_repository import SalesRecordRepository


def _row(name: str, day: int, quantity: float = 1.0) -> SalesRecordInput:
    return SalesRecordInput(
        salesperson_name=name,
        city="La Ceiba",
        business_type="Tienda",
        presentation="500g",
        quantity=quantity,
        date=dt.date(2024, 1, day),
    )


@pytest.fixture()
def repo(db_session) -> SalesRecordRepository:
    return SalesRecordRepository(db_session)


class TestSalesRecordRepository:
    def test_bulk_insert_assigns_ids(self, repo, db_session, owner_id) -> None:
        ids = repo.bulk_insert([_row("Ana", 1), _row("Luis", 2)], owner_id=owner_id, source_file="a.xlsx")
        db_session.commit()

        assert len(ids) == 2
        assert all(isinstance(record_id, uuid.UUID) for record_id in ids)

    def test_empty_insert_is_noop(self, repo, owner_id) -> None:
        assert repo.bulk_insert([], owner_id=owner_id, source_file=None) == []

    def test_batches_cover_every_row(self, repo, db_session, owner_id) -> None:
        rows = [_row(f"V{i}", 1 + i % 28) for i in range(7)]
        ids = repo.bulk_insert(rows, owner_id=owner_id, source_file="a.xlsx", batch_size=3)
        db_session.commit()

        assert len(set(ids)) == 7
        assert len(repo.list_by_owner(owner_id)) == 7

    def test_list_is_owner_scoped_and_newest_first(self, repo, db_session, owner_id, other_owner_id) -> None:
        repo.bulk_insert([_row("Ana", 1), _row("Luis", 9)], owner_id=owner_id, source_file="a.xlsx")
        repo.bulk_insert([_row("Intruso", 5)], owner_id=other_owner_id, source_file="b.xlsx")
        db_session.commit()

        records = repo.list_by_owner(owner_id)

        assert [record.salesperson_name for record in records] == ["Luis", "Ana"]
        assert {record.owner_id for record in records} == {owner_id}
        assert records[0].source_file == "a.xlsx"

    def test_delete_by_id_respects_owner(self, repo, db_session, owner_id, other_owner_id) -> None:
        (record_id,) = repo.bulk_insert([_row("Ana", 1)], owner_id=owner_id, source_file=None)
        db_session.commit()

        assert repo.delete_by_id(owner_id=other_owner_id, record_id=record_id) == 0
        assert repo.delete_by_id(owner_id=owner_id, record_id=record_id) == 1
        assert repo.delete_by_id(owner_id=owner_id, record_id=record_id) == 0

    def test_delete_by_ids_ignores_foreign_and_duplicate_ids(self, repo, db_session, owner_id, other_owner_id) -> None:
        mine = repo.bulk_insert([_row("Ana", 1), _row("Luis", 2)], owner_id=owner_id, source_file=None)
        theirs = repo.bulk_insert([_row("Eva", 3)], owner_id=other_owner_id, source_file=None)
        db_session.commit()

        deleted = repo.delete_by_ids(owner_id=owner_id, record_ids=[*mine, mine[0], *theirs])
        db_session.commit()

        assert deleted == 2
        assert repo.list_by_owner(owner_id) == []
        assert len(repo.list_by_owner(other_owner_id)) == 1

    def test_delete_by_ids_empty(self, repo, owner_id) -> None:
        assert repo.delete_by_ids(owner_id=owner_id, record_ids=[]) == 0
