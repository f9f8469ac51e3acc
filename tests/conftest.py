import os
import pytest
from cryptography.fernet import Fernet

# Ensure critical env vars are set before bloodhub imports
os.environ.setdefault("FIELD_ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("AUTH_MODE", "dev_stub")
os.environ.setdefault("LOG_JSON", "false")


@pytest.fixture
def db_session(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")

    from bloodhub.config import get_settings
    from bloodhub.database import reset_engine, get_engine, get_sessionmaker
    from bloodhub.models.base import Base
    from bloodhub.services.encryption import get_cipher

    get_settings.cache_clear()
    get_cipher.cache_clear()
    reset_engine()
    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        reset_engine()


@pytest.fixture
def network(db_session):
    """One hospital and one blood bank roughly 6 km apart, with A+ and O- stock."""
    from bloodhub.models.blood_request import BloodGroup
    from bloodhub.models.blood_stock import BloodStock
    from bloodhub.models.organization import Organization, OrganizationType

    hospital = Organization(
        org_type=OrganizationType.HOSPITAL,
        name="Bir Hospital",
        code="HOSP-1",
        address="Mahaboudha, Kathmandu",
        latitude=27.7045,
        longitude=85.3131,
    )
    blood_bank = Organization(
        org_type=OrganizationType.BLOOD_BANK,
        name="Central Blood Bank",
        code="BANK-1",
        address="Exhibition Road, Kathmandu",
        latitude=27.6766,
        longitude=85.3659,
    )
    db_session.add_all([hospital, blood_bank])
    db_session.flush()
    db_session.add_all(
        [
            BloodStock(blood_bank_id=blood_bank.id, blood_group=BloodGroup.A_POS, units=10),
            BloodStock(blood_bank_id=blood_bank.id, blood_group=BloodGroup.O_NEG, units=3),
        ]
    )
    db_session.commit()
    return {"hospital": hospital, "blood_bank": blood_bank}
