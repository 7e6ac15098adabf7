from __future__ import annotations

import unittest
from unittest.mock import patch

from app.services.schema_guard import REQUIRED_ENUM_VALUES, REQUIRED_TABLE_COLUMNS, verify_runtime_schema


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(
        self,
        *,
        columns_by_table: dict[str, set[str]],
        enums: list[dict[str, object]],
        tables: set[str] | None = None,
    ):
        self._columns_by_table = columns_by_table
        self._enums = enums
        self._tables = set(columns_by_table) if tables is None else tables

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": item} for item in columns]

    def has_table(self, table_name: str) -> bool:
        return table_name in self._tables

    def get_enums(self):  # type: ignore[no-untyped-def]
        return self._enums


def _complete_columns() -> dict[str, set[str]]:
    return {table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()}


def _complete_enums() -> list[dict[str, object]]:
    return [{"name": name, "labels": sorted(labels)} for name, labels in REQUIRED_ENUM_VALUES.items()]


class SchemaGuardTests(unittest.TestCase):
    def test_verify_runtime_schema_ok_when_required_columns_exist(self) -> None:
        columns = _complete_columns()
        columns["employees"].add("full_name")
        fake_inspector = _FakeInspector(
            columns_by_table=columns,
            enums=_complete_enums(),
            tables=set(columns) | {"project_assignments"},
        )
        fake_engine = _FakeEngine("0005_audit_logs")

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])
        self.assertEqual(result.to_dict()["issue_count"], 0)

    def test_missing_project_assignments_is_only_a_warning(self) -> None:
        fake_inspector = _FakeInspector(columns_by_table=_complete_columns(), enums=_complete_enums())

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0005_audit_logs"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, ["OPTIONAL_TABLE_MISSING:project_assignments"])

    def test_verify_runtime_schema_reports_missing_columns(self) -> None:
        columns = _complete_columns()
        columns["employees"] = {"id", "full_name"}
        columns["monthly_summaries"] = {"id", "status"}
        enums = [
            {"name": "monthly_summary_status", "labels": ["DRAFT", "SIGNED_BY_STAFF", "APPROVED"]},
            {"name": "leave_request_status", "labels": ["pending", "approved", "rejected", "cancelled"]},
        ]
        fake_inspector = _FakeInspector(columns_by_table=columns, enums=enums)
        fake_engine = _FakeEngine("")

        with patch("app.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:employees:hours_source,payment_type", result.issues)
        self.assertTrue(any(item.startswith("MISSING_COLUMNS:monthly_summaries:") for item in result.issues))
        self.assertIn("MISSING_ENUM_VALUES:monthly_summary_status:REJECTED", result.issues)
        self.assertIn("ENUM_NOT_FOUND:hours_source", result.warnings)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)


if __name__ == "__main__":
    unittest.main()
