from decimal import Decimal

from app.core.config import Settings
from app.db.session import engine_options


def test_sqlite_engine_skips_server_pool_options() -> None:
    options = engine_options("sqlite+aiosqlite:///:memory:")
    assert options == {"connect_args": {"check_same_thread": False}}


def test_postgres_engine_recycles_connections() -> None:
    options = engine_options("postgresql+asyncpg://ledger:secret@db:5432/school")
    assert options["pool_pre_ping"] is True
    assert options["pool_recycle"] == 300


def test_ledger_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("LEDGER_AMOUNT_TOLERANCE", "0.5")
    monkeypatch.setenv("LEDGER_ALLOW_OVERPAYMENT", "false")
    settings = Settings()
    assert settings.ledger_amount_tolerance == Decimal("0.5")
    assert settings.ledger_allow_overpayment is False
    assert settings.jwt_algorithm == "HS256"
