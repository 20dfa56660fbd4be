# Overview: Pytest coverage for the retrying transaction boundary.

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from stockledger.errors import NotFoundError, StorageError
from stockledger.extensions import db
from stockledger.models import Store
from stockledger.services.concurrency import run_with_retry


def _locked():
    return OperationalError("UPDATE stock", {}, Exception("database is locked"))


class TestRunWithRetry:
    def test_lock_errors_are_retried_until_success(self, app):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) < 3:
                raise _locked()
            return "done"

        assert run_with_retry(_op, attempts=3) == "done"
        assert len(calls) == 3

    def test_exhausted_attempts_raise_storage_error(self, app, store):
        calls = []

        def _op():
            calls.append(1)
            db.session.add(Store(name=f"Ghost {len(calls)}"))
            db.session.flush()
            raise _locked()

        with pytest.raises(StorageError) as exc_info:
            run_with_retry(_op, attempts=4)

        assert len(calls) == 4
        assert exc_info.value.status_code == 503
        assert db.session.query(Store).count() == 1

    def test_stale_rows_are_retried(self, app):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("row changed underneath")
            return len(calls)

        assert run_with_retry(_op) == 2

    def test_attempts_default_to_config(self, app):
        app.config["LEDGER_RETRY_ATTEMPTS"] = 2
        calls = []

        def _op():
            calls.append(1)
            raise _locked()

        with pytest.raises(StorageError):
            run_with_retry(_op)
        assert len(calls) == 2

    def test_other_storage_errors_are_not_retried(self, app):
        calls = []

        def _op():
            calls.append(1)
            raise IntegrityError("INSERT", {}, Exception("constraint failed"))

        with pytest.raises(StorageError):
            run_with_retry(_op, attempts=5)
        assert len(calls) == 1

    def test_domain_errors_propagate_unchanged(self, app, store):
        calls = []

        def _op():
            calls.append(1)
            db.session.add(Store(name="Rolled back"))
            db.session.flush()
            raise NotFoundError("Product not found")

        with pytest.raises(NotFoundError):
            run_with_retry(_op, attempts=3)
        assert len(calls) == 1
        assert db.session.query(Store).count() == 1
