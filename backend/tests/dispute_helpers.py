from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import math

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Appointment, Home, User, UserType
from app.models.base import BaseModel
from app.schemas.home_size_dispute import DisputeCreate, EvidencePhotoIn
from app.utils.errors import CodecError

JPEG = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQ"
PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg"


class FakeCodec:
    """Reversible stand-in for the Fernet codec; rejects anything unprefixed."""

    PREFIX = "enc::"

    def encrypt(self, plain: str) -> str:
        return self.PREFIX + plain

    def decrypt(self, cipher: str) -> str:
        if not cipher.startswith(self.PREFIX):
            raise CodecError("not ciphertext")
        return cipher[len(self.PREFIX):]


class BrokenCodec:
    def encrypt(self, plain: str) -> str:
        raise CodecError("Failed to encrypt field.")

    def decrypt(self, cipher: str) -> str:
        raise CodecError("Failed to decrypt field.")


def make_sessionmaker():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False)


def setup_db():
    return make_sessionmaker()()


@dataclass
class World:
    cleaner: User
    other_cleaner: User
    homeowner: User
    other_homeowner: User
    owner: User
    hr: User
    home: Home
    appointment: Appointment
    upcoming: Appointment
    past: Appointment


def seed(db, beds=2, baths=Decimal("1"), price=Decimal("100"), codec=None) -> World:
    codec = codec or FakeCodec()
    users = {
        "cleaner": User(email=codec.encrypt("casey@test.com"), first_name=codec.encrypt("Casey"), last_name=codec.encrypt("Clean"), user_type=UserType.CLEANER),
        "other_cleaner": User(email="olive@test.com", first_name="Olive", last_name="Other", user_type=UserType.CLEANER),
        "homeowner": User(email=codec.encrypt("hana@test.com"), first_name=codec.encrypt("Hana"), last_name=codec.encrypt("Home"), user_type=UserType.HOMEOWNER),
        "other_homeowner": User(email="ned@test.com", first_name="Ned", last_name="Neighbour", user_type=UserType.HOMEOWNER),
        "owner": User(email="owner@test.com", first_name="Oscar", last_name="Owner", user_type=UserType.OWNER),
        "hr": User(email="hr@test.com", first_name="Harriet", last_name="Resources", user_type=UserType.HR),
    }
    db.add_all(users.values())
    db.commit()

    home = Home(
        homeowner_id=users["homeowner"].id,
        num_beds=beds,
        num_baths=baths,
        address=codec.encrypt("12 Harbour Road"),
        nickname="Beach house",
    )
    db.add(home)
    db.commit()

    cleaner_ids = [users["cleaner"].id]
    appointment = Appointment(home_id=home.id, homeowner_id=home.homeowner_id, date=date(2099, 1, 1), price=price, assigned_cleaner_ids=cleaner_ids)
    upcoming = Appointment(home_id=home.id, homeowner_id=home.homeowner_id, date=date(2099, 2, 1), price=Decimal("120"), assigned_cleaner_ids=[])
    past = Appointment(home_id=home.id, homeowner_id=home.homeowner_id, date=date(2000, 1, 1), price=Decimal("90"), completed=True, assigned_cleaner_ids=cleaner_ids)
    db.add_all([appointment, upcoming, past])
    db.commit()
    for obj in [*users.values(), home, appointment, upcoming, past]:
        db.refresh(obj)
    return World(home=home, appointment=appointment, upcoming=upcoming, past=past, **users)


def photos_for(beds, baths, image=JPEG):
    photos = [EvidencePhotoIn(room_type="bedroom", room_number=n, image=image) for n in range(1, int(beds) + 1)]
    photos += [
        EvidencePhotoIn(room_type="bathroom", room_number=n, image=image)
        for n in range(1, int(math.ceil(Decimal(str(baths)))) + 1)
    ]
    return photos


def make_claim(appointment_id, beds=4, baths=Decimal("2"), note="Two extra bedrooms upstairs", photos=None) -> DisputeCreate:
    return DisputeCreate(
        appointment_id=appointment_id,
        reported_beds=beds,
        reported_baths=Decimal(str(baths)),
        cleaner_note=note,
        photos=photos if photos is not None else photos_for(beds, baths),
    )
