"""
init_stores.py
--------------
One-shot script to create / migrate every school's store.
Safe to run any number of times: migrations are additive and seeding only
touches stores whose subjects table is still empty. Nothing is deleted.

Usage:
    python init_stores.py            # migrate all schools
    python init_stores.py --seed     # migrate, then seed empty stores
"""

import argparse
import asyncio

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.logging import configure_logging, get_logger
from phrofs.db.registry import TenantStoreRegistry, store_registry
from phrofs.models import Professor, Subject

logger = get_logger(__name__)

SAMPLE_SUBJECTS = [
    ("CS101", "Introduction to Computer Science", 3.2),
    ("CS102", "Data Structures and Algorithms", 4.1),
    ("MATH201", "Calculus II", 3.8),
    ("ENG150", "Academic Writing", 2.5),
    ("PHYS101", "General Physics", 3.6),
]

# (name, subject code, photo, workload, teaching style, tips, plus points)
SAMPLE_PROFESSORS = [
    ("Dr. Reyes", "CS101", "/images/reyes.jpg", "Moderate", "Clear explanations", "Review weekly", "Gives bonus points"),
    ("Prof. Santos", "CS102", "/images/santos.jpg", "Heavy", "Challenging but fair", "Practice problem sets", "Very approachable"),
    ("Ms. Cruz", "MATH201", "/images/cruz.jpg", "Light", "Friendly & supportive", "Participate actively", "Good feedback"),
    ("Dr. Lee", "ENG150", "/images/lee.jpg", "Moderate", "Engaging lectures", "Complete readings", "Accessible outside class"),
    ("Prof. Garcia", "PHYS101", "/images/garcia.jpg", "Heavy", "Hands-on approach", "Attend lab sessions", "Patient with questions"),
]


async def seed_store(db: AsyncSession, school: str) -> bool:
    """Insert sample data when the store has no subjects. Returns True if seeded."""
    existing = await db.scalar(select(func.count()).select_from(Subject))
    if existing:
        logger.info("Store already has subjects, skipping seed", school=school, subjects=existing)
        return False

    subjects = {}
    for code, name, difficulty in SAMPLE_SUBJECTS:
        subject = Subject(code=code, name=name, difficulty_avg=difficulty)
        db.add(subject)
        subjects[code] = subject
    await db.flush()

    for name, code, photo, workload, style, tips, plus in SAMPLE_PROFESSORS:
        db.add(
            Professor(
                name=name,
                subject_id=subjects[code].id,
                photo_path=photo,
                workload=workload,
                teaching_style=style,
                tips=tips,
                plus_points=plus,
            )
        )
    await db.commit()
    logger.info(
        "Store seeded",
        school=school,
        subjects=len(SAMPLE_SUBJECTS),
        professors=len(SAMPLE_PROFESSORS),
    )
    return True


async def init_all(registry: TenantStoreRegistry, seed: bool = False) -> None:
    for school in registry.schools:
        async with registry.session(school) as db:
            if seed:
                await seed_store(db, school)
        logger.info("Store ready", school=school, path=str(registry.store_path(school)))
    await registry.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or migrate every school store.")
    parser.add_argument("--seed", action="store_true", help="seed sample data into empty stores")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(init_all(store_registry, seed=args.seed))


if __name__ == "__main__":
    main()
