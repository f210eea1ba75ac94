import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from models.db_storage import DBStorage
from models.user import User
from services.errors import InfrastructureError, StoreUnavailable, TransactionFailed


@pytest.fixture
def storage():
    storage = DBStorage("sqlite://")
    storage.reload()
    yield storage
    storage.close()


def _count_users(storage):
    with storage.transaction() as session:
        return session.query(User).count()


def test_commit_on_success(storage):
    with storage.transaction() as session:
        session.add(User(email="a@x.com", password_hash="x", display_name="A"))
    assert _count_users(storage) == 1


def test_rollback_on_any_error(storage):
    with pytest.raises(RuntimeError):
        with storage.transaction() as session:
            session.add(User(email="a@x.com", password_hash="x", display_name="A"))
            session.flush()
            raise RuntimeError("boom")
    assert _count_users(storage) == 0


def test_connectivity_errors_become_store_unavailable(storage):
    with pytest.raises(StoreUnavailable) as excinfo:
        with storage.transaction():
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))
    assert excinfo.value.retryable is True


def test_other_sqlalchemy_errors_become_transaction_failed(storage):
    with pytest.raises(TransactionFailed) as excinfo:
        with storage.transaction():
            raise SQLAlchemyError("deadlock detected")
    assert isinstance(excinfo.value, InfrastructureError)


def test_reload_is_idempotent(storage):
    storage.reload()
    storage.reload()
    assert _count_users(storage) == 0
