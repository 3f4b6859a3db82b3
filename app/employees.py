import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from .errors import StoreUnavailable
from .schemas import Employee

logger = structlog.get_logger("loyalty.employees")


def normalize_id(value: str | None) -> str:
    return (value or "").strip().lower()


class EmployeeDirectory:
    """
    Read-only employee dataset keyed by normalized employee id.

    Backed either by an in-memory list or by a JSON file that is re-read when
    its mtime changes, so HR can drop in a new export without a restart.
    """

    def __init__(self, employees: list[Employee] | None = None, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._index: dict[str, Employee] = {}
        self._mtime: float | None = None
        if employees is not None:
            self._index = self._build_index(employees)

    @classmethod
    def from_file(cls, path: str | Path) -> "EmployeeDirectory":
        return cls(path=path)

    def find_employee(self, employee_id: str | None) -> Employee | None:
        target = normalize_id(employee_id)
        if not target:
            return None
        return self._employees().get(target)

    def all(self) -> list[Employee]:
        return list(self._employees().values())

    def _employees(self) -> dict[str, Employee]:
        if self.path is None:
            return self._index

        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError as exc:
            logger.error("employee_directory_missing", file=str(self.path))
            raise StoreUnavailable("Employee directory file is missing", file=str(self.path)) from exc
        except OSError as exc:
            raise StoreUnavailable("Cannot read employee directory", file=str(self.path)) from exc

        if mtime != self._mtime:
            self._index = self._read_file()
            self._mtime = mtime
        return self._index

    def _read_file(self) -> dict[str, Employee]:
        try:
            rows = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except OSError as exc:
            raise StoreUnavailable("Cannot read employee directory", file=str(self.path)) from exc
        except ValueError as exc:
            logger.error("employee_directory_corrupt", file=str(self.path), error=str(exc))
            raise StoreUnavailable("Employee directory is unreadable", file=str(self.path)) from exc

        if not isinstance(rows, list):
            logger.error("employee_directory_corrupt", file=str(self.path), error="expected a JSON array")
            raise StoreUnavailable("Employee directory is unreadable", file=str(self.path))

        employees = []
        for row in rows:
            try:
                employees.append(Employee.model_validate(row))
            except ValidationError as exc:
                logger.warning("employee_record_skipped", file=str(self.path), error=str(exc))
        logger.info("employee_directory_loaded", file=str(self.path), employees=len(employees))
        return self._build_index(employees)

    @staticmethod
    def _build_index(employees: list[Employee]) -> dict[str, Employee]:
        index: dict[str, Employee] = {}
        for employee in employees:
            key = normalize_id(employee.employee_id)
            if key in index:
                logger.warning("employee_duplicate_id", employee_id=employee.employee_id)
                continue
            index[key] = employee
        return index
