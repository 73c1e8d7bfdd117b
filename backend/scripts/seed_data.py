"""Fill the database with demo musicians, jams and join requests

    python -m scripts.seed_data --users 40 --seed 7
"""

import argparse
import datetime
import logging
import random

from sqlmodel import Session

from models.common import get_db
from models.jam import Jam, JamMember, MemberStatus
from models.profile import ExperienceLevel, Profile
from utils import setup_logs

logger = logging.getLogger("jammer.seed")

CITIES = [
    ("London", "UK", 51.5074, -0.1278),
    ("Manchester", "UK", 53.4808, -2.2426),
    ("Bristol", "UK", 51.4545, -2.5879),
    ("Austin", "USA", 30.2672, -97.7431),
    ("Berlin", "Germany", 52.52, 13.405),
    ("Tokyo", "Japan", 35.6762, 139.6503),
]
FIRST_NAMES = ["Alex", "Taylor", "Jordan", "Casey", "Riley", "Morgan", "Quinn", "Harper"]
LAST_NAMES = ["Hudson", "Brooks", "Ellis", "Monroe", "Reed", "Hendrix", "Rivers", "Lane"]

# persona, instruments, genres, availability
ARCHETYPES = [
    ("weekend guitarist", ["guitar", "vocals", "bass"], ["rock", "blues", "indie"], "Friday nights"),
    ("jazz improviser", ["piano", "saxophone", "trumpet", "drums"], ["jazz", "blues"], "late-night hangs"),
    ("electronic producer", ["keyboard", "piano", "vocals"], ["electronic", "pop"], "studio weekends"),
    ("folk storyteller", ["guitar", "banjo", "mandolin", "violin"], ["folk", "country"], "Sunday mornings"),
    ("vocal arranger", ["vocals", "piano", "guitar"], ["pop", "r&b", "soul"], "weekday evenings"),
]
HOST_RATIO = 0.5


def jitter(rng: random.Random, value: float) -> float:
    """Move a coordinate by up to ~5km so musicians don't all sit on the city centre"""
    return round(value + rng.uniform(-0.05, 0.05), 5)


def make_profile(rng: random.Random, index: int) -> Profile:
    persona, instruments, genres, availability = rng.choice(ARCHETYPES)
    city, country, lat, lng = rng.choice(CITIES)
    picked_genres = rng.sample(genres, k=rng.randint(1, len(genres)))
    return Profile(
        id=f"seed-{index:03d}",
        display_name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
        instruments=rng.sample(instruments, k=rng.randint(1, 2)),
        genres=picked_genres,
        experience_level=rng.choice(list(ExperienceLevel)).value,
        bio=f"{persona.capitalize()} into {' and '.join(picked_genres)}.",
        availability=availability,
        city=city,
        country=country,
        lat=jitter(rng, lat),
        lng=jitter(rng, lng),
    )


def make_jam(rng: random.Random, host: Profile, now: datetime.datetime) -> Jam:
    return Jam(
        host_id=host.id,
        title=f"{host.city} {host.genres[0].capitalize()} Night",
        description=f"{host.display_name} is hosting a relaxed session, bring your ideas.",
        jam_time=now + datetime.timedelta(days=rng.randint(1, 30), hours=rng.randint(0, 12)),
        city=host.city,
        country=host.country,
        lat=host.lat,
        lng=host.lng,
        desired_instruments=rng.sample(
            ["bass", "drums", "piano", "vocals", "guitar", "saxophone"], k=2
        ),
        max_attendees=rng.randint(4, 10),
    )


def seed(session: Session, users: int = 30, rng: random.Random | None = None) -> dict:
    rng = rng or random.Random()
    now = datetime.datetime.now(datetime.timezone.utc)

    profiles = [make_profile(rng, index) for index in range(users)]
    session.add_all(profiles)
    session.commit()

    jams = [make_jam(rng, p, now) for p in profiles if rng.random() < HOST_RATIO]
    session.add_all(jams)
    session.commit()

    requests = 0
    for jam in jams:
        nearby = [p for p in profiles if p.city == jam.city and p.id != jam.host_id]
        for guest in rng.sample(nearby, k=min(len(nearby), 3)):
            session.add(
                JamMember(
                    jam_id=jam.id,
                    user_id=guest.id,
                    status=rng.choice([MemberStatus.pending, MemberStatus.approved]),
                )
            )
            requests += 1
    session.commit()

    summary = {"profiles": len(profiles), "jams": len(jams), "requests": requests}
    logger.info(f"Seeded {summary}")
    return summary


if __name__ == "__main__":  # pragma: no cover
    setup_logs()
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--users", type=int, default=30)
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    args = parser.parse_args()

    with get_db() as db:
        seed(db, users=args.users, rng=random.Random(args.seed))
