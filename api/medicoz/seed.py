from __future__ import annotations

import logging
from datetime import datetime

from . import models
from .db import SessionLocal

logger = logging.getLogger(__name__)


def _cover(text: str) -> str:
    return f"https://via.placeholder.com/400x400/7f1e16/e2d6c7?text={text}"


EPISODES: list[dict] = [
    {
        "slug": "understanding-pcos",
        "title": "Understanding PCOS: Breaking Down the Myths",
        "description": "A comprehensive discussion about Polycystic Ovary Syndrome, its symptoms, and management strategies.",
        "episode_number": 1,
        "release_date": datetime(2024, 1, 15),
        "cover_image": _cover("PCOS+Health"),
        "tags": ["PCOS", "Hormones", "Health"],
    },
    {
        "slug": "mental-health-matters",
        "title": "Mental Health Matters: Breaking the Stigma",
        "description": "An open conversation about mental health, anxiety, and self-care practices for women.",
        "episode_number": 2,
        "release_date": datetime(2024, 1, 22),
        "cover_image": _cover("Mental+Health"),
        "tags": ["Mental Health", "Self-Care", "Wellness"],
    },
    {
        "slug": "fertility-journey",
        "title": "The Fertility Journey: Stories and Science",
        "description": "Real stories and medical insights about fertility, conception, and reproductive health.",
        "episode_number": 3,
        "release_date": datetime(2024, 1, 29),
        "cover_image": _cover("Fertility+Journey"),
        "tags": ["Fertility", "Pregnancy", "Reproductive Health"],
    },
    {
        "slug": "menstrual-health",
        "title": "Menstrual Health: More Than Just a Period",
        "description": "Deep dive into menstrual health, cycle tracking, and understanding your body.",
        "episode_number": 4,
        "release_date": datetime(2024, 2, 5),
        "cover_image": _cover("Menstrual+Health"),
        "tags": ["Menstruation", "Cycle", "Health"],
    },
    {
        "slug": "nutrition-wellness",
        "title": "Nutrition and Wellness for Every Stage",
        "description": "Evidence-based nutrition advice tailored for different life stages and health goals.",
        "episode_number": 5,
        "release_date": datetime(2024, 2, 12),
        "cover_image": _cover("Nutrition+Wellness"),
        "tags": ["Nutrition", "Wellness", "Diet"],
    },
]


def ensure_seed_data() -> None:
    """Insert the episode catalog if the table is empty."""
    db = SessionLocal()
    try:
        existing = db.query(models.Episode).count()
        if existing:
            logger.info(f"ensure_seed_data: {existing} episodes present, skipping.")
            return
        db.add_all(models.Episode(**episode) for episode in EPISODES)
        db.commit()
        logger.info(f"ensure_seed_data: inserted {len(EPISODES)} episodes.")
    finally:
        db.close()


if __name__ == "__main__":
    from .db import init_db

    logging.basicConfig(level="INFO")
    init_db()
    ensure_seed_data()
