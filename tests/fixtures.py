"""Database fixtures for pageql tests (shared).

The data set is derived from the person number alone, so tests can compute
their expectations in plain Python with the helpers below.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from tests.models import Address, Gender, Group, Person, PersonGroup, Phone, PhoneType

PERSON_COUNT = 200
ADDRESS_COUNT = 20
LAST_NAMES = ("Smith", "Jones", "Brown", "Taylor", "Wilson")
CITIES = ("Berlin", "Paris", "London", "Vienna")
BIRTH_BASE = date(1950, 1, 1)


def person_ids():
    return range(1, PERSON_COUNT + 1)


def last_name_of(i):
    return LAST_NAMES[i % len(LAST_NAMES)]


def nickname_of(i):
    return None if i % 3 == 0 else f"Nick{i}"


def gender_of(i):
    return list(Gender)[i % len(Gender)]


def birth_date_of(i):
    return BIRTH_BASE + timedelta(days=97 * i)


def is_deleted(i):
    return i % 50 == 0


def address_id_of(i):
    return None if i % 25 == 0 else (i % ADDRESS_COUNT) + 1


def city_of_address(a):
    return CITIES[a % len(CITIES)]


def city_of(i):
    a = address_id_of(i)
    return None if a is None else city_of_address(a)


def phone_numbers_of(i):
    return [f"0{(i * 37 + j * 11) % 1000:03d}-{j}" for j in range(i % 4)]


def groups_of(i):
    groups = []
    if i % 2 == 0:
        groups.append(Group.USER)
    if i % 3 == 0:
        groups.append(Group.DEVELOPER)
    if i % 7 == 0:
        groups.append(Group.ADMIN)
    return groups


def create_people(session: Session):
    """Add the addresses and persons to the session and flush them."""
    addresses = [
        Address(
            id=a,
            street=f"Street {a}",
            house_number=a,
            city=city_of_address(a),
            postcode=f"{10000 + a}",
            country=None if a % 5 == 0 else "Europe",
        )
        for a in range(1, ADDRESS_COUNT + 1)
    ]
    session.add_all(addresses)
    people = []
    for i in person_ids():
        person = Person(
            id=i,
            first_name=f"First{i:03d}",
            last_name=last_name_of(i),
            nickname=nickname_of(i),
            email=f"person{i}@example.com",
            gender=gender_of(i),
            date_of_birth=birth_date_of(i),
            deleted=is_deleted(i),
            address_id=address_id_of(i),
        )
        person.phones = [
            Phone(number=number, type=list(PhoneType)[j % len(PhoneType)])
            for j, number in enumerate(phone_numbers_of(i))
        ]
        person.group_links = [PersonGroup(group=group) for group in groups_of(i)]
        people.append(person)
    session.add_all(people)
    session.flush()
    return people


@pytest.fixture(scope="function")
def populated(session: Session):
    people = create_people(session)
    session.commit()
    return people


@pytest.fixture(scope="function")
async def async_populated(async_session: AsyncSession):
    people = await async_session.run_sync(create_people)
    await async_session.commit()
    return people
