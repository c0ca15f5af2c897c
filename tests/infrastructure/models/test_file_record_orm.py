from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, UniqueConstraint

from sparks.domain.models.file_record import FileRecord
from sparks.infrastructure.models import FileRecordModel
from sparks.infrastructure.models.base import NAMING_CONVENTION


def test_orm_round_trip_preserves_fields() -> None:
    record = FileRecord(
        name="a.txt",
        size=3,
        product_id="P1",
        step_id=1,
        sub_step_id=2,
        system_generated=True,
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 2),
    )

    restored = FileRecordModel.from_domain(record).to_domain()

    assert restored == record


def test_update_from_domain_keeps_identity() -> None:
    original = FileRecord(name="a.txt", product_id="P1", created_at=datetime(2024, 1, 1))
    model = FileRecordModel.from_domain(original)
    changed = original.model_copy(
        update={"id": "other", "size": 9, "created_at": datetime(2025, 1, 1)}
    )

    model.update_from_domain(changed)

    assert model.id == original.id
    assert model.created_at == datetime(2024, 1, 1)
    assert model.size == 9


def test_unique_constraint_per_product_name() -> None:
    constraints = {c.name for c in FileRecordModel.__table__.constraints}

    assert "uq_file_records_product_id_name" in constraints


def test_index_name_matches_migration() -> None:
    indexes = {index.name for index in FileRecordModel.__table__.indexes}

    assert indexes == {"ix_file_records_product_id"}


def test_naming_convention_joins_all_constraint_columns() -> None:
    table = Table(
        "step_notes",
        MetaData(naming_convention=NAMING_CONVENTION),
        Column("id", Integer, primary_key=True),
        Column("product_id", String(255)),
        Column("step_id", Integer),
        UniqueConstraint("product_id", "step_id"),
    )

    names = {c.name for c in table.constraints}

    assert "uq_step_notes_product_id_step_id" in names
