import random
from faker import Faker
from sqlalchemy.orm import Session

from bloodhub.config import get_settings
from bloodhub.database import get_sessionmaker, init_db
from bloodhub.models.blood_request import BloodGroup
from bloodhub.models.blood_stock import BloodStock
from bloodhub.models.organization import Organization, OrganizationType
from bloodhub.services.blood_requests import BloodRequestService

fake = Faker("en_IN")

# Bounding box around the Kathmandu valley so distances stay realistic.
LAT_RANGE = (27.60, 27.80)
LON_RANGE = (85.20, 85.45)

CONDITIONS = [
    "Stable",
    "Routine transfusion",
    "Post-operative bleeding",
    "Severe anemia",
    "Trauma with hemorrhage",
    "Elective surgery",
    "Dengue with low platelets",
]
DEPARTMENTS = ["General Ward", "ICU", "Emergency", "Maternity", "Oncology", "Surgery", "Pediatrics"]


def _organization(org_type: OrganizationType, with_location: bool = True) -> Organization:
    suffix = "Hospital" if org_type == OrganizationType.HOSPITAL else "Blood Bank"
    return Organization(
        org_type=org_type,
        name=f"{fake.city()} {suffix}",
        code=fake.unique.bothify(text="ORG-####"),
        address=fake.street_address(),
        city=fake.city(),
        phone=fake.phone_number()[:32],
        email=fake.company_email(),
        latitude=round(random.uniform(*LAT_RANGE), 6) if with_location else None,
        longitude=round(random.uniform(*LON_RANGE), 6) if with_location else None,
        is_verified=True,
    )


def generate_synthetic_network(db: Session, hospitals: int = 10, banks: int = 4, requests: int = 40) -> None:
    hospital_rows = [_organization(OrganizationType.HOSPITAL, random.random() > 0.1) for _ in range(hospitals)]
    bank_rows = [_organization(OrganizationType.BLOOD_BANK) for _ in range(banks)]
    db.add_all(hospital_rows + bank_rows)
    db.flush()

    for bank in bank_rows:
        for group in BloodGroup:
            db.add(BloodStock(blood_bank_id=bank.id, blood_group=group, units=random.randint(0, 60)))
    db.commit()

    service = BloodRequestService(db)
    created = 0
    for _ in range(requests):
        bank = random.choice(bank_rows)
        group = random.choice(list(BloodGroup))
        available = service.stocks.available_units(bank.id, group)
        if available == 0:
            continue
        service.create_request(
            random.choice(hospital_rows).id,
            bank.id,
            group,
            random.randint(1, min(available, 8)),
            patient_age=random.randint(0, 95),
            patient_condition=random.choice(CONDITIONS),
            department=random.choice(DEPARTMENTS),
            medical_reason=fake.sentence(nb_words=8),
            actor="SEED",
        )
        created += 1
    print(f"Seeded {hospitals} hospitals, {banks} blood banks, {created} requests")


if __name__ == "__main__":
    settings = get_settings()
    if settings.ENVIRONMENT != "dev" or not settings.SYNTHETIC_DATA_MODE:
        raise SystemExit("Synthetic data generation is only permitted in dev with SYNTHETIC_DATA_MODE=true")

    init_db()
    db = get_sessionmaker()()
    try:
        generate_synthetic_network(db)
    finally:
        db.close()

    print("Synthetic data generation complete")
